"""Pydantic schemas for the JSON backup document.

Keys are camelCase so files written by earlier releases of the app load
unchanged. Required fields are validated up front per record; dates accept the
historical format variants and fall back to "now" when unparseable.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, field_validator

from tranche.utils.constants import (
    ORDER_LOC,
    VALID_ORDER_STYLES,
    VALID_SIDES,
    VALID_VARIANTS,
    VARIANT_V3,
)
from tranche.utils.timeutils import as_utc, utc_now

logger = logging.getLogger(__name__)

# Tried in order; all are read as UTC
_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]


def parse_backup_date(value: Any) -> datetime:
    """Parse an exported date string; unparseable input becomes the current time."""
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str) or not value.strip():
        return utc_now()

    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.warning(f"Unparseable backup date {text!r}, using current time")
        return utc_now()


def format_backup_date(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


BackupDate = Annotated[datetime, BeforeValidator(parse_backup_date)]

_RECORD_CONFIG = {"populate_by_name": True, "extra": "ignore"}


class BackupInstrument(BaseModel):
    id: int
    symbol: str = Field(min_length=1)
    label: str | None = Field(default=None, alias="nickname")
    variant: str = Field(default=VARIANT_V3, alias="version")
    seed_amount: float = Field(gt=0, alias="seedMoney")
    tranches: int = Field(default=20, gt=0, alias="divisions")
    sell_target_pct: float = Field(default=15.0, alias="sellTargetPercent")
    compound_pct: float = Field(default=50.0, ge=0, le=100, alias="compoundRate")
    per_trade_amount: float | None = Field(default=None, alias="currentBuyAmount")
    accumulated_profit: float = Field(default=0.0, alias="accumulatedProfit")
    start_date: BackupDate = Field(default_factory=utc_now, alias="startDate")
    is_active: bool = Field(default=True, alias="isActive")
    created_at: BackupDate = Field(default_factory=utc_now, alias="createdAt")

    model_config = _RECORD_CONFIG

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("variant")
    @classmethod
    def _validate_variant(cls, value: str) -> str:
        if value not in VALID_VARIANTS:
            raise ValueError(f"must be one of: {', '.join(VALID_VARIANTS)}")
        return value


class BackupTrade(BaseModel):
    instrument_ref: int = Field(alias="stockId")
    trade_date: BackupDate = Field(default_factory=utc_now, alias="tradeDate")
    side: str = Field(alias="tradeType")
    order_style: str = Field(default=ORDER_LOC, alias="orderType")
    price: float = Field(gt=0)
    quantity: int = Field(gt=0)
    fee: float = Field(default=0.0, ge=0)
    is_settled: bool = Field(default=False, alias="isSettlement")
    created_at: BackupDate = Field(default_factory=utc_now, alias="createdAt")

    model_config = _RECORD_CONFIG

    @field_validator("side")
    @classmethod
    def _validate_side(cls, value: str) -> str:
        text = value.strip().upper()
        if text not in VALID_SIDES:
            raise ValueError(f"must be one of: {', '.join(VALID_SIDES)}")
        return text

    @field_validator("order_style")
    @classmethod
    def _validate_order_style(cls, value: str) -> str:
        text = value.strip().upper()
        if text not in VALID_ORDER_STYLES:
            raise ValueError(f"must be one of: {', '.join(VALID_ORDER_STYLES)}")
        return text


class BackupSettlement(BaseModel):
    instrument_ref: int | None = Field(default=None, alias="stockId")
    symbol: str = Field(min_length=1)
    label: str | None = Field(default=None, alias="nickname")
    variant: str = Field(default=VARIANT_V3, alias="version")
    start_date: BackupDate = Field(default_factory=utc_now, alias="startDate")
    end_date: BackupDate = Field(default_factory=utc_now, alias="endDate")
    seed_amount: float = Field(default=0.0, alias="seedMoney")
    tranches: int = Field(default=20, alias="divisions")
    per_trade_amount: float = Field(default=0.0, alias="buyAmountPerTrade")
    total_buy_amount: float = Field(default=0.0, alias="totalBuyAmount")
    total_sell_amount: float = Field(default=0.0, alias="totalSellAmount")
    total_fee: float = Field(default=0.0, alias="totalFee")
    profit: float = 0.0
    profit_rate: float = Field(default=0.0, alias="profitRate")
    buy_count: int = Field(default=0, alias="buyCount")
    sell_count: int = Field(default=0, alias="sellCount")
    trading_days: int = Field(default=0, alias="tradingDays")
    seed_usage_rate: float = Field(default=0.0, alias="seedUsageRate")
    created_at: BackupDate = Field(default_factory=utc_now, alias="createdAt")

    model_config = _RECORD_CONFIG


class BackupDocument(BaseModel):
    """Top-level envelope. Records stay raw here and are decoded one by one."""
    version: str
    app_name: str | None = Field(default=None, alias="appName")
    exported_at: str | None = Field(default=None, alias="exportedAt")
    stocks: list[Any] = Field(default_factory=list)
    trades: list[Any] = Field(default_factory=list)
    settlements: list[Any] = Field(default_factory=list)

    model_config = _RECORD_CONFIG

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        # Some exports wrote the version as a bare number
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value
