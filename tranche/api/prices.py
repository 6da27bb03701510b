"""Price cache API."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from tranche.api.deps import get_bind, get_quote_source
from tranche.database import get_session
from tranche.models.price_cache import PriceCacheEntry
from tranche.schemas.settlement import PriceRead
from tranche.services import price_cache

router = APIRouter(prefix="/api/prices", tags=["prices"])


def _read(entry: PriceCacheEntry) -> PriceRead:
    data = PriceRead.model_validate(entry)
    data.is_stale = price_cache.is_stale(entry)
    return data


@router.get("", response_model=list[PriceRead])
def list_prices(session: Session = Depends(get_session)):
    entries = session.exec(select(PriceCacheEntry).order_by(PriceCacheEntry.symbol)).all()
    return [_read(entry) for entry in entries]


@router.get("/{symbol}", response_model=PriceRead)
def get_price(symbol: str, session: Session = Depends(get_session)):
    entry = price_cache.get_price(session, symbol)
    if not entry:
        raise HTTPException(status_code=404, detail=f"No cached price for {symbol.upper()}")
    return _read(entry)


@router.post("/{symbol}/refresh", response_model=PriceRead)
async def refresh_price(
    symbol: str,
    bind=Depends(get_bind),
    source=Depends(get_quote_source),
):
    """Fetch a fresh quote for one symbol regardless of staleness."""
    report = await price_cache.refresh_prices([symbol], source, bind=bind, force=True)
    symbol = symbol.strip().upper()
    if symbol in report.failed:
        raise HTTPException(status_code=502, detail=f"Quote refresh failed: {report.failed[symbol]}")
    with Session(bind) as session:
        return _read(price_cache.get_price(session, symbol))
