"""Open-cycle position aggregation.

Holdings, average cost and realized profit are recomputed from the unsettled
trades on every read; there is no running balance to keep in sync with edits.
Aggregation is a plain sum, so trade order does not matter.
"""

from dataclasses import dataclass
from typing import Iterable, Protocol

from tranche.services import strategy_engine
from tranche.utils.constants import SIDE_BUY


class TradeLike(Protocol):
    side: str
    quantity: int
    amount: float
    fee: float


@dataclass
class LedgerAggregate:
    bought_qty: int = 0
    sold_qty: int = 0
    bought_amount: float = 0.0
    sold_amount: float = 0.0
    bought_fee: float = 0.0
    sold_fee: float = 0.0
    buy_count: int = 0
    sell_count: int = 0

    @property
    def current_qty(self) -> int:
        return self.bought_qty - self.sold_qty

    @property
    def avg_cost(self) -> float:
        """Weighted buy price over every share bought this cycle, held or already sold."""
        lifetime_qty = self.current_qty + self.sold_qty
        if lifetime_qty <= 0:
            return 0.0
        return self.bought_amount / lifetime_qty

    @property
    def holding_cost(self) -> float:
        return self.avg_cost * self.current_qty

    @property
    def realized_profit(self) -> float:
        """Profit on shares sold this cycle. Buy-side fees are not deducted here."""
        return self.sold_amount - self.avg_cost * self.sold_qty - self.sold_fee

    @property
    def break_even_price(self) -> float:
        return strategy_engine.break_even_price(self.bought_amount, self.bought_fee, self.bought_qty)

    @property
    def total_fee(self) -> float:
        return self.bought_fee + self.sold_fee


def aggregate(trades: Iterable[TradeLike]) -> LedgerAggregate:
    """Sum unsettled trades for one instrument."""
    agg = LedgerAggregate()
    for trade in trades:
        if trade.side == SIDE_BUY:
            agg.bought_qty += trade.quantity
            agg.bought_amount += trade.amount
            agg.bought_fee += trade.fee
            agg.buy_count += 1
        else:
            agg.sold_qty += trade.quantity
            agg.sold_amount += trade.amount
            agg.sold_fee += trade.fee
            agg.sell_count += 1
    return agg


def sell_realized_profit(agg: LedgerAggregate, amount: float, quantity: int, fee: float) -> float:
    """Profit a prospective sell would realize against the current average cost."""
    return amount - agg.avg_cost * quantity - fee
