"""Trade model — append-only buy/sell event for one instrument."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Trade(SQLModel, table=True):
    __tablename__ = "trade"

    id: int | None = Field(default=None, primary_key=True)
    instrument_id: int = Field(foreign_key="instrument.id", index=True)
    side: str  # "BUY" or "SELL"
    order_style: str = "LOC"  # "LOC", "LIMIT", "MOC"
    trade_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    price: float
    quantity: int
    fee: float = 0.0
    amount: float = 0.0  # price * quantity
    is_settled: bool = Field(default=False, index=True)  # flips once, at settlement
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
