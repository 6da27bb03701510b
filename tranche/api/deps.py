"""Shared API dependencies."""

from fastapi import HTTPException, status

from tranche.config import settings
from tranche.exceptions import (
    BackupFormatError,
    InstrumentNotFoundError,
    InvalidInstrumentError,
    InvalidTradeError,
    NoOpenTradesError,
    TradeNotFoundError,
    TrancheError,
)
from tranche.services.quote_source import YahooQuoteSource

_STATUS_BY_ERROR = {
    InstrumentNotFoundError: status.HTTP_404_NOT_FOUND,
    TradeNotFoundError: status.HTTP_404_NOT_FOUND,
    NoOpenTradesError: status.HTTP_409_CONFLICT,
    InvalidTradeError: status.HTTP_409_CONFLICT,
    InvalidInstrumentError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BackupFormatError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def http_error(error: TrancheError) -> HTTPException:
    """Translate a domain error into the matching HTTP response."""
    code = _STATUS_BY_ERROR.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(error))


def get_bind():
    """Engine used by endpoints that open their own sessions."""
    from tranche.database import engine
    return engine


async def get_quote_source():
    """Yield a quote client for the duration of one request."""
    async with YahooQuoteSource(
        base_url=settings.quote_base_url,
        timeout=settings.quote_timeout_seconds,
    ) as source:
        yield source
