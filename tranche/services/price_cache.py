"""Per-symbol price cache with a calendar-anchored staleness policy.

An entry is refreshed only when it is missing or stale (or a caller forces
it). Refreshes for several symbols run concurrently; each result is written as
soon as its fetch completes and a failure for one symbol never affects the
others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlmodel import Session, select

from tranche.config import settings
from tranche.exceptions import InsufficientDataError
from tranche.models.price_cache import PriceCacheEntry
from tranche.services import strategy_engine
from tranche.services.quote_source import Quote, QuoteSource, QuoteSourceError
from tranche.services.trading_calendar import TradingCalendar, market_calendar
from tranche.utils.timeutils import utc_now

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------

def expected_close_date(
    now: datetime | None = None,
    calendar: TradingCalendar | None = None,
    market_close_hour: int | None = None,
) -> date:
    """Session date whose close the cache should hold at `now`.

    The cache shows the previous session's close, so after today's close and
    before it the expectation is the same: the last trading day before now.
    Both branches currently resolve to the same day.
    """
    calendar = calendar or market_calendar
    close_hour = settings.market_close_hour if market_close_hour is None else market_close_hour
    local_now = calendar.local_now(now)

    if calendar.is_trading_day(local_now) and local_now.hour >= close_hour:
        return calendar.last_trading_day_before(local_now)
    return calendar.last_trading_day_before(local_now)


def is_stale(
    entry: PriceCacheEntry | None,
    now: datetime | None = None,
    calendar: TradingCalendar | None = None,
    market_close_hour: int | None = None,
) -> bool:
    if entry is None or entry.close_date is None:
        return True
    calendar = calendar or market_calendar
    saved_day = calendar.local_date(entry.close_date)
    return saved_day < expected_close_date(now, calendar, market_close_hour)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_price(session: Session, symbol: str) -> PriceCacheEntry | None:
    return session.exec(
        select(PriceCacheEntry).where(PriceCacheEntry.symbol == symbol.upper())
    ).first()


def upsert_price(
    session: Session,
    symbol: str,
    quote: Quote,
    rsi: strategy_engine.RsiReading | None = None,
) -> PriceCacheEntry:
    """Insert or replace the cached close and RSI for a symbol."""
    symbol = symbol.upper()
    entry = get_price(session, symbol)
    if entry is None:
        entry = PriceCacheEntry(symbol=symbol, close_price=quote.previous_close)

    entry.close_price = quote.previous_close
    entry.close_date = quote.previous_close_date
    entry.rsi = rsi.rsi if rsi else None
    entry.rsi_recommend = rsi.recommend if rsi else None
    entry.rsi_change = rsi.change if rsi else None
    entry.updated_at = utc_now()

    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

@dataclass
class RefreshReport:
    refreshed: list[str] = field(default_factory=list)
    fresh: list[str] = field(default_factory=list)  # cache hit, not fetched
    failed: dict[str, str] = field(default_factory=dict)  # symbol -> failure kind
    not_started: list[str] = field(default_factory=list)  # skipped after cancellation


async def refresh_prices(
    symbols: list[str],
    source: QuoteSource,
    bind=None,
    force: bool = False,
    cancel: asyncio.Event | None = None,
    calendar: TradingCalendar | None = None,
    now: datetime | None = None,
    max_concurrency: int | None = None,
    rsi_period: int | None = None,
) -> RefreshReport:
    """Fetch quotes for missing or stale symbols and write each into the cache.

    Once `cancel` is set no further fetch starts; fetches already in flight
    finish and write their result.
    """
    if bind is None:
        from tranche.database import engine as bind

    period = rsi_period or settings.rsi_period
    report = RefreshReport()
    unique = list(dict.fromkeys(s.strip().upper() for s in symbols if s.strip()))

    due: list[str] = []
    with Session(bind) as session:
        for symbol in unique:
            if force or is_stale(get_price(session, symbol), now=now, calendar=calendar):
                due.append(symbol)
            else:
                report.fresh.append(symbol)

    if not due:
        return report

    semaphore = asyncio.Semaphore(max_concurrency or settings.quote_max_concurrency)

    async def _refresh_one(symbol: str):
        async with semaphore:
            if cancel is not None and cancel.is_set():
                report.not_started.append(symbol)
                return
            try:
                quote = await source.fetch(symbol)
            except QuoteSourceError as e:
                logger.warning(f"[{symbol}] Quote refresh failed ({e.kind}): {e}")
                report.failed[symbol] = e.kind
                return
            except Exception as e:
                logger.error(f"[{symbol}] Unexpected quote error: {e}", exc_info=True)
                report.failed[symbol] = "error"
                return

            try:
                reading = strategy_engine.rsi_snapshot(quote.closes, period)
            except InsufficientDataError as e:
                logger.info(f"[{symbol}] RSI unavailable: {e}")
                reading = None

            try:
                with Session(bind) as session:
                    upsert_price(session, symbol, quote, reading)
            except Exception as e:
                logger.error(f"[{symbol}] Failed to store quote: {e}", exc_info=True)
                report.failed[symbol] = "storage"
                return

            report.refreshed.append(symbol)

    await asyncio.gather(*(_refresh_one(symbol) for symbol in due))
    logger.info(
        f"Price refresh: {len(report.refreshed)} refreshed, {len(report.fresh)} fresh, "
        f"{len(report.failed)} failed, {len(report.not_started)} not started"
    )
    return report
