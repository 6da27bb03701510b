"""Instrument model — one staged-accumulation cycle configuration per symbol."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Instrument(SQLModel, table=True):
    __tablename__ = "instrument"

    id: int | None = Field(default=None, primary_key=True)
    symbol: str = Field(index=True)  # e.g. "TQQQ"
    label: str | None = None
    variant: str = "v3.0"  # "v3.0" or "v2.2"

    # Strategy parameters
    seed_amount: float
    tranches: int = 20
    sell_target_pct: float = 15.0
    compound_pct: float = 50.0  # 0-100

    # Runtime state
    per_trade_amount: float = 0.0  # seed_amount / tranches until compounding kicks in
    accumulated_profit: float = 0.0  # across all closed cycles
    start_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_name(self) -> str:
        if self.label:
            return f"{self.symbol} ({self.label})"
        return self.symbol

    @property
    def base_per_trade_amount(self) -> float:
        """Uncompounded tranche size; per_trade_amount never drops below it."""
        return self.seed_amount / self.tranches if self.tranches > 0 else 0.0
