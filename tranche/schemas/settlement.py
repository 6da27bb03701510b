"""Pydantic schemas for settlement and price cache reads."""

from datetime import datetime
from pydantic import BaseModel


class SettlementRead(BaseModel):
    id: int
    instrument_id: int | None
    symbol: str
    label: str | None
    variant: str
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
    trading_days: int
    seed_usage_rate: float
    created_at: datetime

    model_config = {"from_attributes": True}


class ReopenRequest(BaseModel):
    start_date: datetime | None = None


class PriceRead(BaseModel):
    symbol: str
    close_price: float
    close_date: datetime | None
    rsi: float | None
    rsi_recommend: float | None
    rsi_change: float | None
    updated_at: datetime
    is_stale: bool = False

    model_config = {"from_attributes": True}
