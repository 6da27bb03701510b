"""PriceCacheEntry model — last known close and RSI per symbol."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class PriceCacheEntry(SQLModel, table=True):
    __tablename__ = "price_cache"

    id: int | None = Field(default=None, primary_key=True)
    symbol: str = Field(index=True, unique=True)
    close_price: float
    close_date: datetime | None = None  # None until the source reports a session date
    rsi: float | None = None
    rsi_recommend: float | None = None  # 30 / 50 / 70
    rsi_change: float | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
