"""Shared fixtures: in-memory database and small record factories."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from tranche.database import create_db_and_tables
from tranche.models.instrument import Instrument
from tranche.models.trade import Trade
from tranche.services.trading_calendar import TradingCalendar


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def calendar():
    holidays = {
        2026: frozenset({
            date(2026, 1, 1),
            date(2026, 1, 19),
            date(2026, 7, 3),
            date(2026, 11, 26),
            date(2026, 12, 25),
        }),
    }
    return TradingCalendar("America/New_York", holidays)


@pytest.fixture
def make_instrument(session):
    def _make(**overrides) -> Instrument:
        values = {
            "symbol": "TQQQ",
            "seed_amount": 10_000.0,
            "tranches": 20,
            "sell_target_pct": 15.0,
            "compound_pct": 50.0,
            "per_trade_amount": 500.0,
            "start_date": datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc),
        }
        values.update(overrides)
        instrument = Instrument(**values)
        session.add(instrument)
        session.commit()
        session.refresh(instrument)
        return instrument
    return _make


@pytest.fixture
def add_trade(session):
    def _add(
        instrument: Instrument,
        side: str,
        price: float,
        quantity: int,
        fee: float = 0.0,
        trade_date: datetime | None = None,
        is_settled: bool = False,
    ) -> Trade:
        trade = Trade(
            instrument_id=instrument.id,
            side=side,
            trade_date=trade_date or datetime(2026, 3, 2, 21, 0, tzinfo=timezone.utc),
            price=price,
            quantity=quantity,
            fee=fee,
            amount=price * quantity,
            is_settled=is_settled,
        )
        session.add(trade)
        session.commit()
        session.refresh(trade)
        return trade
    return _add
