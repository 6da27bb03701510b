"""Cycle settlement: close an instrument's open cycle into a permanent record.

Settlement marks every unsettled trade as settled, writes one Settlement row
with a snapshot of the instrument parameters, books the profit into the
instrument's accumulated profit, deactivates the instrument and, when
compounding is enabled, grows its per-trade amount. All of it commits in one
transaction or not at all.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlmodel import Session, select

from tranche.exceptions import InvalidInstrumentError, NoOpenTradesError
from tranche.models.settlement import Settlement
from tranche.services import position_ledger, strategy_engine
from tranche.services.instruments import get_instrument
from tranche.services.trade_book import open_trades
from tranche.utils.timeutils import as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SettlementTotals:
    total_buy_amount: float
    total_sell_amount: float
    total_fee: float
    buy_count: int
    sell_count: int
    start_date: datetime
    end_date: datetime

    @property
    def profit(self) -> float:
        return self.total_sell_amount - self.total_buy_amount - self.total_fee

    @property
    def profit_rate(self) -> float:
        if self.total_buy_amount <= 0:
            return 0.0
        return self.profit / self.total_buy_amount * 100

    @property
    def trading_days(self) -> int:
        """Whole calendar days between the first and last trade."""
        return (self.end_date - self.start_date).days


def compute_totals(trades) -> SettlementTotals:
    """Totals over every unsettled trade of the cycle, held or already sold."""
    trades = list(trades)
    if not trades:
        raise NoOpenTradesError("No unsettled trades to settle")

    agg = position_ledger.aggregate(trades)
    dates = [as_utc(t.trade_date) for t in trades]
    return SettlementTotals(
        total_buy_amount=agg.bought_amount,
        total_sell_amount=agg.sold_amount,
        total_fee=agg.total_fee,
        buy_count=agg.buy_count,
        sell_count=agg.sell_count,
        start_date=min(dates),
        end_date=max(dates),
    )


def settle_instrument(session: Session, instrument_id: int) -> Settlement:
    """Close the open cycle of an instrument atomically."""
    instrument = get_instrument(session, instrument_id)
    trades = open_trades(session, instrument_id)
    if not trades:
        raise NoOpenTradesError(f"{instrument.display_name} has no unsettled trades")

    totals = compute_totals(trades)

    try:
        settlement = Settlement(
            instrument_id=instrument.id,
            symbol=instrument.symbol,
            label=instrument.label,
            variant=instrument.variant,
            seed_amount=instrument.seed_amount,
            tranches=instrument.tranches,
            per_trade_amount=instrument.per_trade_amount,
            start_date=totals.start_date,
            end_date=totals.end_date,
            total_buy_amount=totals.total_buy_amount,
            total_sell_amount=totals.total_sell_amount,
            total_fee=totals.total_fee,
            buy_count=totals.buy_count,
            sell_count=totals.sell_count,
            profit=totals.profit,
            profit_rate=totals.profit_rate,
            trading_days=totals.trading_days,
            seed_usage_rate=strategy_engine.seed_usage_rate(
                totals.total_buy_amount, instrument.seed_amount
            ),
        )
        session.add(settlement)

        for trade in trades:
            trade.is_settled = True
            session.add(trade)

        instrument.accumulated_profit += totals.profit
        instrument.is_active = False
        if instrument.compound_pct > 0:
            instrument.per_trade_amount = strategy_engine.compounded_per_trade_amount(
                current=instrument.per_trade_amount,
                realized_profit=totals.profit,
                compound_pct=instrument.compound_pct,
                seed_amount=instrument.seed_amount,
                tranches=instrument.tranches,
            )
        instrument.updated_at = utc_now()
        session.add(instrument)

        session.commit()
    except Exception:
        session.rollback()
        logger.error(f"[{instrument_id}] Settlement rolled back", exc_info=True)
        raise

    session.refresh(settlement)
    logger.info(
        f"[{settlement.symbol}] Settled {len(trades)} trades: profit={settlement.profit:.2f} "
        f"({settlement.profit_rate:.2f}%), days={settlement.trading_days}"
    )
    return settlement


def reopen_instrument(session: Session, instrument_id: int, start_date: datetime | None = None):
    """Start a new cycle on a settled instrument, keeping its compounded tranche size."""
    instrument = get_instrument(session, instrument_id)
    if instrument.is_active:
        raise InvalidInstrumentError(f"{instrument.display_name} already has an open cycle")

    instrument.is_active = True
    instrument.start_date = as_utc(start_date) if start_date else utc_now()
    instrument.updated_at = utc_now()
    session.add(instrument)
    session.commit()
    session.refresh(instrument)
    return instrument


def list_settlements(
    session: Session,
    instrument_id: int | None = None,
    symbol: str | None = None,
) -> list[Settlement]:
    stmt = select(Settlement).order_by(Settlement.end_date.desc())
    if instrument_id is not None:
        stmt = stmt.where(Settlement.instrument_id == instrument_id)
    if symbol:
        stmt = stmt.where(Settlement.symbol == symbol.strip().upper())
    return list(session.exec(stmt).all())
