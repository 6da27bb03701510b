"""Quote retrieval.

Daily closes come from the Yahoo Finance chart endpoint. The last bar of the
series is the current (possibly in-progress) session; the bar before it is the
previous completed session whose close is cached.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import httpx
import pandas as pd

from tranche.config import settings
from tranche.exceptions import TrancheError

logger = logging.getLogger(__name__)


class QuoteSourceError(TrancheError):
    """Base class for per-symbol quote failures."""
    kind = "error"

    def __init__(self, symbol: str, message: str = ""):
        self.symbol = symbol
        super().__init__(f"{symbol}: {message or self.kind}")


class QuoteNotFoundError(QuoteSourceError):
    kind = "not_found"


class QuoteRateLimitedError(QuoteSourceError):
    kind = "rate_limited"


class QuoteNetworkError(QuoteSourceError):
    kind = "network"


class QuoteResponseError(QuoteSourceError):
    kind = "invalid_response"


@dataclass
class Quote:
    symbol: str
    current_price: float
    previous_close: float
    previous_close_date: datetime | None
    closes: list[float] = field(default_factory=list)  # ascending, oldest first

    @property
    def change(self) -> float:
        return self.current_price - self.previous_close

    @property
    def change_pct(self) -> float:
        if self.previous_close <= 0:
            return 0.0
        return self.change / self.previous_close * 100


class QuoteSource(Protocol):
    async def fetch(self, symbol: str) -> Quote:
        ...


class YahooQuoteSource:
    """Async Yahoo Finance chart client."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.quote_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.quote_timeout_seconds,
            headers={"User-Agent": "tranche-tracker/0.1"},
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def fetch(self, symbol: str) -> Quote:
        url = f"{self.base_url}/{symbol}"
        try:
            response = await self._client.get(url, params={"interval": "1d", "range": "1mo"})
        except httpx.TimeoutException as e:
            raise QuoteNetworkError(symbol, f"timeout: {e}") from e
        except httpx.TransportError as e:
            raise QuoteNetworkError(symbol, str(e)) from e

        if response.status_code == 404:
            raise QuoteNotFoundError(symbol)
        if response.status_code == 429:
            raise QuoteRateLimitedError(symbol)
        if response.status_code >= 400:
            raise QuoteResponseError(symbol, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise QuoteResponseError(symbol, "response is not JSON") from e
        quote = _parse_chart(symbol, payload)
        logger.debug(
            f"[{symbol}] {len(quote.closes)} closes, previous close {quote.previous_close:.2f}"
        )
        return quote


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_chart(symbol: str, payload: dict) -> Quote:
    """Parse a chart response into a Quote.

    Shape: {"chart": {"result": [{"meta": {"regularMarketPrice": ...},
            "timestamp": [...], "indicators": {"quote": [{"close": [...]}]}}],
            "error": null}}
    """
    chart = payload.get("chart") if isinstance(payload, dict) else None
    if not isinstance(chart, dict):
        raise QuoteResponseError(symbol, "missing chart")

    error = chart.get("error")
    if error:
        code = str(error.get("code", "")) if isinstance(error, dict) else str(error)
        if code.lower().replace(" ", "") == "notfound":
            raise QuoteNotFoundError(symbol)
        raise QuoteResponseError(symbol, code or "chart error")

    results = chart.get("result") or []
    if not results:
        raise QuoteNotFoundError(symbol)
    result = results[0]

    meta = result.get("meta") or {}
    price = meta.get("regularMarketPrice")
    if price is None:
        raise QuoteResponseError(symbol, "missing regularMarketPrice")

    closes = _parse_closes(result)
    previous_close = float(meta.get("previousClose") or meta.get("chartPreviousClose") or price)
    previous_close_date = None
    if len(closes) >= 2:
        previous_close = float(closes.iloc[-2])
        previous_close_date = closes.index[-2].to_pydatetime()

    return Quote(
        symbol=symbol,
        current_price=float(price),
        previous_close=previous_close,
        previous_close_date=previous_close_date,
        closes=[float(v) for v in closes.values],
    )


def _parse_closes(result: dict) -> pd.Series:
    """Close price Series indexed by UTC session timestamp, nulls dropped."""
    timestamps = result.get("timestamp") or []
    try:
        raw = result["indicators"]["quote"][0].get("close") or []
    except (KeyError, IndexError, TypeError):
        return pd.Series(dtype=float)

    if not timestamps or len(timestamps) != len(raw):
        return pd.Series(dtype=float)

    df = pd.DataFrame({"t": timestamps, "close": raw})
    df["t"] = pd.to_datetime(df["t"], unit="s", utc=True)
    df["close"] = pd.to_numeric(df["close"], errors="coerce")
    df = df.set_index("t").sort_index()
    return df["close"].dropna()
