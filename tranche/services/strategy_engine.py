"""Stateless staged-accumulation strategy math.

All functions are pure computation with no I/O or database access. The stage
metric measures how many tranches of the per-trade amount are currently
deployed; it selects the regime (first half, second half, quarter mode) and
the "star" percentage that drives the daily buy/sell guide.
"""

import math
from dataclasses import dataclass, field

import numpy as np

from tranche.exceptions import InsufficientDataError
from tranche.utils.constants import (
    ORDER_LIMIT,
    ORDER_LOC,
    ORDER_MOC,
    RSI_BUCKET_MAX,
    RSI_BUCKETS,
)


# ---------------------------------------------------------------------------
# Stage and regime
# ---------------------------------------------------------------------------

def ceil2(value: float) -> float:
    """Round up to two decimals.

    The product is rounded to 9 places first so float noise such as
    0.07 * 100 == 7.000000000000001 does not bump the result a full cent.
    """
    return math.ceil(round(value * 100, 9)) / 100


def stage_metric(invested_amount: float, per_trade_amount: float) -> float:
    """Deployed amount in tranche units, rounded up to 0.01. 0 if per-trade amount is not positive."""
    if per_trade_amount <= 0:
        return 0.0
    return ceil2(invested_amount / per_trade_amount)


def star_percent(sell_target_pct: float, tranches: int, stage: float) -> float:
    """star% = target% - (target% / (N/2)) * stage."""
    half = tranches / 2
    if half <= 0:
        return sell_target_pct
    return sell_target_pct - (sell_target_pct / half) * stage


def is_first_half(stage: float, tranches: int) -> bool:
    return stage < tranches / 2


def is_quarter_mode(stage: float, tranches: int) -> bool:
    """Final partial tranche: buying stops and only liquidation selling is guided."""
    return tranches - 1 < stage < tranches


def regime_label(stage: float, tranches: int) -> str:
    if is_quarter_mode(stage, tranches):
        return "quarter"
    return "first_half" if is_first_half(stage, tranches) else "second_half"


# ---------------------------------------------------------------------------
# Sizing helpers
# ---------------------------------------------------------------------------

def initial_per_trade_amount(seed_amount: float, tranches: int) -> float:
    if tranches <= 0:
        return 0.0
    return seed_amount / tranches


def compounded_per_trade_amount(
    current: float,
    realized_profit: float,
    compound_pct: float,
    seed_amount: float,
    tranches: int,
) -> float:
    """Fold a share of realized profit into the tranche size.

    Never returns less than the uncompounded seed_amount / tranches.
    """
    floor = initial_per_trade_amount(seed_amount, tranches)
    if tranches <= 0:
        return max(current, floor)
    grown = current + (realized_profit * compound_pct / 100) / tranches
    return max(grown, floor)


def break_even_price(bought_amount: float, bought_fee: float, bought_quantity: int) -> float:
    if bought_quantity <= 0:
        return 0.0
    return (bought_amount + bought_fee) / bought_quantity


def seed_usage_rate(total_buy_amount: float, seed_amount: float) -> float:
    if seed_amount <= 0:
        return 0.0
    return total_buy_amount / seed_amount * 100


def limit_sell_price(avg_cost: float, sell_target_pct: float) -> float:
    return avg_cost * (1 + sell_target_pct / 100)


# ---------------------------------------------------------------------------
# Order guides
# ---------------------------------------------------------------------------

@dataclass
class OrderGuide:
    """One suggested order for today."""
    side: str  # "BUY" or "SELL"
    kind: str  # "star", "average", "quarter", "limit"
    order_style: str  # "LOC", "LIMIT", "MOC"
    price: float | None  # None for market-on-close
    quantity: int


@dataclass
class PositionState:
    """Inputs the guides need, taken from the open-cycle ledger and instrument config."""
    avg_cost: float
    total_quantity: int
    per_trade_amount: float
    sell_target_pct: float
    tranches: int
    stage: float = field(default=0.0)

    @property
    def star_percent(self) -> float:
        return star_percent(self.sell_target_pct, self.tranches, self.stage)

    @property
    def is_first_half(self) -> bool:
        return is_first_half(self.stage, self.tranches)

    @property
    def is_quarter_mode(self) -> bool:
        return is_quarter_mode(self.stage, self.tranches)

    @property
    def star_price(self) -> float:
        return self.avg_cost * (1 + self.star_percent / 100)


def _affordable(amount: float, price: float) -> int:
    if price <= 0:
        return 0
    return int(math.floor(amount / price))


def buy_guide(state: PositionState) -> list[OrderGuide]:
    """Buy orders for the current regime.

    First half splits the per-trade amount between a star% order and an
    average-cost order; second half puts it all on the star% order; quarter
    mode buys nothing.
    """
    if state.is_quarter_mode:
        return []

    star_price = state.star_price
    if state.is_first_half:
        half = state.per_trade_amount / 2
        return [
            OrderGuide("BUY", "star", ORDER_LOC, star_price, _affordable(half, star_price)),
            OrderGuide("BUY", "average", ORDER_LOC, state.avg_cost, _affordable(half, state.avg_cost)),
        ]

    return [
        OrderGuide("BUY", "star", ORDER_LOC, star_price, _affordable(state.per_trade_amount, star_price)),
    ]


def sell_guide(state: PositionState) -> list[OrderGuide]:
    """Sell orders: a quarter at star% + 0.01 and the rest at the target, or a quarter MOC in quarter mode."""
    quarter = state.total_quantity // 4
    if state.is_quarter_mode:
        return [OrderGuide("SELL", "quarter", ORDER_MOC, None, quarter)]

    return [
        OrderGuide("SELL", "star", ORDER_LOC, state.star_price + 0.01, quarter),
        OrderGuide(
            "SELL", "limit", ORDER_LIMIT,
            limit_sell_price(state.avg_cost, state.sell_target_pct),
            state.total_quantity - quarter,
        ),
    ]


# ---------------------------------------------------------------------------
# RSI
# ---------------------------------------------------------------------------

@dataclass
class RsiReading:
    rsi: float
    change: float | None
    recommend: float


def compute_rsi(closes, period: int = 14) -> float:
    """Wilder-smoothed RSI over ascending closes.

    Raises InsufficientDataError with fewer than period + 1 closes.
    """
    values = np.asarray(closes, dtype=float)
    if period <= 0 or len(values) < period + 1:
        raise InsufficientDataError(
            f"RSI({period}) needs at least {period + 1} closes, got {len(values)}"
        )

    deltas = np.diff(values)
    gains = np.maximum(deltas, 0.0)
    losses = np.maximum(-deltas, 0.0)

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi_recommendation(rsi: float) -> float:
    """Map an RSI reading to one of the advisory buckets 30 / 50 / 70."""
    for upper, bucket in RSI_BUCKETS:
        if rsi <= upper:
            return bucket
    return RSI_BUCKET_MAX


def rsi_snapshot(closes, period: int = 14) -> RsiReading:
    """Current RSI, its change versus one session earlier, and the advisory bucket."""
    values = list(closes)
    rsi = compute_rsi(values, period)
    try:
        change = rsi - compute_rsi(values[:-1], period)
    except InsufficientDataError:
        change = None
    return RsiReading(rsi=rsi, change=change, recommend=rsi_recommendation(rsi))
