"""System API — health check and trading calendar status."""

from datetime import date

from fastapi import APIRouter

from tranche.services.price_cache import expected_close_date
from tranche.services.trading_calendar import market_calendar

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/calendar")
def calendar_status(day: date | None = None):
    """Holiday-table coverage and whether `day` (default today) is a session."""
    today = market_calendar.local_now().date()
    day = day or today
    return {
        **market_calendar.coverage(today),
        "date": day.isoformat(),
        "is_trading_day": market_calendar.is_trading_day(day),
        "previous_trading_day": market_calendar.last_trading_day_before(day).isoformat(),
        "expected_close_date": expected_close_date().isoformat(),
    }
