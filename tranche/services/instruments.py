"""Instrument lifecycle helpers shared by the API and CLI."""

import logging

from sqlmodel import Session, select

from tranche.exceptions import InstrumentNotFoundError, InvalidInstrumentError
from tranche.models.instrument import Instrument
from tranche.schemas.instrument import InstrumentCreate, InstrumentUpdate
from tranche.services import strategy_engine
from tranche.utils.timeutils import utc_now

logger = logging.getLogger(__name__)


def get_instrument(session: Session, instrument_id: int) -> Instrument:
    instrument = session.get(Instrument, instrument_id)
    if instrument is None:
        raise InstrumentNotFoundError(f"Instrument {instrument_id} not found")
    return instrument


def list_instruments(
    session: Session,
    active: bool | None = None,
    symbol: str | None = None,
) -> list[Instrument]:
    stmt = select(Instrument).order_by(Instrument.created_at)
    if active is not None:
        stmt = stmt.where(Instrument.is_active == active)
    if symbol:
        stmt = stmt.where(Instrument.symbol == symbol.strip().upper())
    return list(session.exec(stmt).all())


def create_instrument(session: Session, data: InstrumentCreate) -> Instrument:
    payload = data.model_dump(exclude_none=True)
    instrument = Instrument(**payload)
    instrument.per_trade_amount = strategy_engine.initial_per_trade_amount(
        instrument.seed_amount, instrument.tranches
    )
    session.add(instrument)
    session.commit()
    session.refresh(instrument)
    logger.info(
        f"Created instrument {instrument.display_name}: seed={instrument.seed_amount:.2f} "
        f"N={instrument.tranches} per_trade={instrument.per_trade_amount:.2f}"
    )
    return instrument


def update_instrument(session: Session, instrument_id: int, data: InstrumentUpdate) -> Instrument:
    """Apply a partial update, keeping per_trade_amount at or above seed / N."""
    instrument = get_instrument(session, instrument_id)
    update_data = data.model_dump(exclude_unset=True)
    explicit_amount = update_data.pop("per_trade_amount", None)

    for key, value in update_data.items():
        if value is not None:
            setattr(instrument, key, value)

    floor = instrument.base_per_trade_amount
    if explicit_amount is not None:
        if explicit_amount < floor:
            raise InvalidInstrumentError(
                f"per_trade_amount {explicit_amount:.2f} is below seed/tranches {floor:.2f}"
            )
        instrument.per_trade_amount = explicit_amount
    else:
        instrument.per_trade_amount = max(instrument.per_trade_amount, floor)

    instrument.updated_at = utc_now()
    session.add(instrument)
    session.commit()
    session.refresh(instrument)
    return instrument


def delete_instrument(session: Session, instrument_id: int):
    """Delete an instrument with its trades; settlement records keep their snapshot."""
    from tranche.models.settlement import Settlement
    from tranche.models.trade import Trade

    instrument = get_instrument(session, instrument_id)
    for trade in session.exec(select(Trade).where(Trade.instrument_id == instrument_id)).all():
        session.delete(trade)
    for settlement in session.exec(
        select(Settlement).where(Settlement.instrument_id == instrument_id)
    ).all():
        settlement.instrument_id = None
        session.add(settlement)
    session.delete(instrument)
    session.commit()
