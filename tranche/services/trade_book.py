"""Recording and correcting trades.

A profitable sell immediately compounds into the instrument's per-trade
amount, using the open-cycle average cost from before the sell.
"""

import logging
from datetime import datetime

from sqlmodel import Session, select

from tranche.exceptions import InvalidTradeError, TradeNotFoundError
from tranche.models.instrument import Instrument
from tranche.models.trade import Trade
from tranche.schemas.trade import TradeCreate, TradeUpdate
from tranche.services import position_ledger, strategy_engine
from tranche.services.instruments import get_instrument
from tranche.utils.constants import SIDE_SELL
from tranche.utils.timeutils import utc_now

logger = logging.getLogger(__name__)


def open_trades(session: Session, instrument_id: int) -> list[Trade]:
    """Unsettled trades of the current cycle."""
    return list(session.exec(
        select(Trade)
        .where(Trade.instrument_id == instrument_id)
        .where(Trade.is_settled == False)  # noqa: E712
    ).all())


def list_trades(
    session: Session,
    instrument_id: int | None = None,
    settled: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Trade]:
    stmt = select(Trade).order_by(Trade.trade_date.desc())
    if instrument_id is not None:
        stmt = stmt.where(Trade.instrument_id == instrument_id)
    if settled is not None:
        stmt = stmt.where(Trade.is_settled == settled)
    if start is not None:
        stmt = stmt.where(Trade.trade_date >= start)
    if end is not None:
        stmt = stmt.where(Trade.trade_date <= end)
    stmt = stmt.offset(offset).limit(limit)
    return list(session.exec(stmt).all())


def record_trade(session: Session, instrument_id: int, data: TradeCreate) -> Trade:
    """Append a trade to the open cycle of an instrument."""
    instrument = get_instrument(session, instrument_id)
    if not instrument.is_active:
        raise InvalidTradeError(
            f"{instrument.display_name} is settled; reopen it before recording trades"
        )
    agg = position_ledger.aggregate(open_trades(session, instrument_id))
    amount = data.price * data.quantity

    if data.side == SIDE_SELL and data.quantity > agg.current_qty:
        raise InvalidTradeError(
            f"Cannot sell {data.quantity} {instrument.symbol}: only {agg.current_qty} held"
        )

    trade = Trade(
        instrument_id=instrument_id,
        side=data.side,
        order_style=data.order_style,
        trade_date=data.trade_date,
        price=data.price,
        quantity=data.quantity,
        fee=data.fee,
        amount=amount,
    )
    session.add(trade)

    if data.side == SIDE_SELL:
        profit = position_ledger.sell_realized_profit(agg, amount, data.quantity, data.fee)
        _compound_after_sell(instrument, profit)
        session.add(instrument)

    session.commit()
    session.refresh(trade)
    logger.info(
        f"[{instrument.symbol}] Recorded {trade.side} {trade.quantity} @ {trade.price:.2f} "
        f"(fee {trade.fee:.2f})"
    )
    return trade


def _compound_after_sell(instrument: Instrument, profit: float):
    if profit <= 0 or instrument.compound_pct <= 0:
        return
    before = instrument.per_trade_amount
    instrument.per_trade_amount = strategy_engine.compounded_per_trade_amount(
        current=instrument.per_trade_amount,
        realized_profit=profit,
        compound_pct=instrument.compound_pct,
        seed_amount=instrument.seed_amount,
        tranches=instrument.tranches,
    )
    instrument.updated_at = utc_now()
    logger.info(
        f"[{instrument.symbol}] Compounded profit {profit:.2f}: "
        f"per-trade {before:.2f} -> {instrument.per_trade_amount:.2f}"
    )


def correct_trade(session: Session, trade_id: int, data: TradeUpdate) -> Trade:
    """Correction edit. Settlement records already written are not touched."""
    trade = session.get(Trade, trade_id)
    if trade is None:
        raise TradeNotFoundError(f"Trade {trade_id} not found")

    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(trade, key, value)
    trade.amount = trade.price * trade.quantity

    if not trade.is_settled:
        held = position_ledger.aggregate(open_trades(session, trade.instrument_id)).current_qty
        if held < 0:
            session.rollback()
            raise InvalidTradeError(
                f"Correction would leave {held} shares held for instrument {trade.instrument_id}"
            )

    session.add(trade)
    session.commit()
    session.refresh(trade)
    return trade


def delete_trade(session: Session, trade_id: int):
    trade = session.get(Trade, trade_id)
    if trade is None:
        raise TradeNotFoundError(f"Trade {trade_id} not found")
    if trade.is_settled:
        raise InvalidTradeError(f"Trade {trade_id} belongs to a settled cycle")

    remaining = [t for t in open_trades(session, trade.instrument_id) if t.id != trade.id]
    held = position_ledger.aggregate(remaining).current_qty
    if held < 0:
        raise InvalidTradeError(
            f"Deleting trade {trade_id} would leave {held} shares held; remove later sells first"
        )

    session.delete(trade)
    session.commit()
