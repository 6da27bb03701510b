"""Pydantic schemas for Trade API."""

from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_validator

from tranche.utils.constants import ORDER_LOC, VALID_ORDER_STYLES, VALID_SIDES
from tranche.utils.timeutils import as_utc


def _check_choice(value: str, allowed: list[str]) -> str:
    text = value.strip().upper()
    if text not in allowed:
        raise ValueError(f"must be one of: {', '.join(allowed)}")
    return text


class TradeCreate(BaseModel):
    side: str
    order_style: str = ORDER_LOC
    trade_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    price: float = Field(gt=0)
    quantity: int = Field(gt=0)
    fee: float = Field(default=0.0, ge=0)

    @field_validator("side")
    @classmethod
    def _validate_side(cls, value: str) -> str:
        return _check_choice(value, VALID_SIDES)

    @field_validator("order_style")
    @classmethod
    def _validate_order_style(cls, value: str) -> str:
        return _check_choice(value, VALID_ORDER_STYLES)

    @field_validator("trade_date")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TradeUpdate(BaseModel):
    """Correction edit; unset fields are left alone."""
    side: str | None = None
    order_style: str | None = None
    trade_date: datetime | None = None
    price: float | None = Field(default=None, gt=0)
    quantity: int | None = Field(default=None, gt=0)
    fee: float | None = Field(default=None, ge=0)

    @field_validator("side")
    @classmethod
    def _validate_optional_side(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _check_choice(value, VALID_SIDES)

    @field_validator("order_style")
    @classmethod
    def _validate_optional_order_style(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _check_choice(value, VALID_ORDER_STYLES)

    @field_validator("trade_date")
    @classmethod
    def _optional_to_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class TradeRead(BaseModel):
    id: int
    instrument_id: int
    side: str
    order_style: str
    trade_date: datetime
    price: float
    quantity: int
    fee: float
    amount: float
    is_settled: bool
    created_at: datetime

    model_config = {"from_attributes": True}
