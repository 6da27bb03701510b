"""Portfolio API — per-instrument summaries with order guides."""

from fastapi import APIRouter, Depends

from tranche.api.deps import get_bind, get_quote_source
from tranche.config import settings
from tranche.services.portfolio import SummaryOptions, assemble_portfolio

router = APIRouter(prefix="/api/portfolio", tags=["portfolio"])


@router.get("")
async def portfolio_summary(
    refresh: bool = True,
    force: bool = False,
    include_fee: bool | None = None,
    bind=Depends(get_bind),
    source=Depends(get_quote_source),
):
    """Summaries for every active instrument and the portfolio totals.

    With `refresh` missing or stale quotes are fetched first; `force` refetches
    every symbol. Symbols whose refresh failed keep their cached price.
    """
    options = SummaryOptions(
        include_fee=settings.include_fee if include_fee is None else include_fee
    )
    summary, report = await assemble_portfolio(
        bind=bind,
        source=source if refresh else None,
        options=options,
        force=force,
    )
    return {
        "summary": summary,
        "refresh": report,
    }
