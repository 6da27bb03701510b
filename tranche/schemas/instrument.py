"""Pydantic schemas for Instrument API."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from tranche.utils.constants import VALID_VARIANTS, VARIANT_V3, preset_for
from tranche.utils.timeutils import as_utc


class InstrumentCreate(BaseModel):
    symbol: str = Field(min_length=1, max_length=16)
    label: str | None = Field(default=None, max_length=120)
    variant: str = VARIANT_V3
    seed_amount: float = Field(gt=0)
    # None -> taken from the variant preset
    tranches: int | None = Field(default=None, gt=0)
    sell_target_pct: float | None = Field(default=None, gt=0)
    compound_pct: float | None = Field(default=None, ge=0, le=100)
    start_date: datetime | None = None

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        text = value.strip().upper()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("label")
    @classmethod
    def _trim_label(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("variant")
    @classmethod
    def _validate_variant(cls, value: str) -> str:
        if value not in VALID_VARIANTS:
            allowed = ", ".join(VALID_VARIANTS)
            raise ValueError(f"must be one of: {allowed}")
        return value

    @field_validator("start_date")
    @classmethod
    def _start_to_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _apply_preset(self):
        preset = preset_for(self.symbol, self.variant)
        if self.tranches is None:
            self.tranches = int(preset["tranches"])
        if self.sell_target_pct is None:
            self.sell_target_pct = preset["sell_target_pct"]
        if self.compound_pct is None:
            self.compound_pct = preset["compound_pct"]
        return self


class InstrumentUpdate(BaseModel):
    label: str | None = Field(default=None, max_length=120)
    variant: str | None = None
    seed_amount: float | None = Field(default=None, gt=0)
    tranches: int | None = Field(default=None, gt=0)
    sell_target_pct: float | None = Field(default=None, gt=0)
    compound_pct: float | None = Field(default=None, ge=0, le=100)
    per_trade_amount: float | None = Field(default=None, gt=0)
    start_date: datetime | None = None

    @field_validator("variant")
    @classmethod
    def _validate_optional_variant(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if value not in VALID_VARIANTS:
            allowed = ", ".join(VALID_VARIANTS)
            raise ValueError(f"must be one of: {allowed}")
        return value


class InstrumentRead(BaseModel):
    id: int
    symbol: str
    label: str | None
    variant: str
    seed_amount: float
    tranches: int
    sell_target_pct: float
    compound_pct: float
    per_trade_amount: float
    accumulated_profit: float
    start_date: datetime
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
