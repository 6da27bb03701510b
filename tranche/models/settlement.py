"""Settlement model — immutable record of one closed cycle."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Settlement(SQLModel, table=True):
    __tablename__ = "settlement"

    id: int | None = Field(default=None, primary_key=True)
    instrument_id: int | None = Field(default=None, foreign_key="instrument.id", index=True)

    # Snapshot of the instrument at close time
    symbol: str = Field(index=True)
    label: str | None = None
    variant: str = "v3.0"
    seed_amount: float
    tranches: int
    per_trade_amount: float

    start_date: datetime
    end_date: datetime
    total_buy_amount: float
    total_sell_amount: float
    total_fee: float
    buy_count: int
    sell_count: int
    profit: float
    profit_rate: float
    trading_days: int  # calendar days between first and last trade
    seed_usage_rate: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
