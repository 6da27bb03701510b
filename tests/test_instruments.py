"""Tests for instrument schemas and lifecycle helpers."""

import pytest
from pydantic import ValidationError
from sqlmodel import select

from tranche.exceptions import InstrumentNotFoundError, InvalidInstrumentError
from tranche.models.settlement import Settlement
from tranche.models.trade import Trade
from tranche.schemas.instrument import InstrumentCreate, InstrumentUpdate
from tranche.services import instruments
from tranche.services.settlement import settle_instrument


class TestCreateSchema:
    def test_v3_preset(self):
        data = InstrumentCreate(symbol=" tqqq ", seed_amount=10_000)
        assert data.symbol == "TQQQ"
        assert (data.tranches, data.sell_target_pct, data.compound_pct) == (20, 15.0, 50.0)

    def test_v2_preset(self):
        data = InstrumentCreate(symbol="TQQQ", variant="v2.2", seed_amount=10_000)
        assert (data.tranches, data.sell_target_pct, data.compound_pct) == (40, 10.0, 0.0)

    def test_high_volatility_target(self):
        assert InstrumentCreate(symbol="SOXL", seed_amount=1).sell_target_pct == 20.0
        assert InstrumentCreate(symbol="SOXL", variant="v2.2", seed_amount=1).sell_target_pct == 12.0

    def test_explicit_values_win(self):
        data = InstrumentCreate(symbol="TQQQ", seed_amount=1, tranches=30, compound_pct=0)
        assert data.tranches == 30
        assert data.compound_pct == 0

    @pytest.mark.parametrize("overrides", [
        {"seed_amount": 0},
        {"tranches": 0},
        {"compound_pct": 101},
        {"compound_pct": -1},
        {"variant": "v9"},
        {"symbol": "   "},
    ])
    def test_rejects_invalid(self, overrides):
        payload = {"symbol": "TQQQ", "seed_amount": 1000, **overrides}
        with pytest.raises(ValidationError):
            InstrumentCreate(**payload)


class TestLifecycle:
    def test_create_sets_initial_tranche_size(self, session):
        instrument = instruments.create_instrument(
            session, InstrumentCreate(symbol="TQQQ", seed_amount=10_000, label="main")
        )
        assert instrument.per_trade_amount == 500.0
        assert instrument.is_active is True
        assert instrument.display_name == "TQQQ (main)"

    def test_get_missing(self, session):
        with pytest.raises(InstrumentNotFoundError):
            instruments.get_instrument(session, 404)

    def test_list_filters(self, session, make_instrument):
        make_instrument(symbol="TQQQ")
        make_instrument(symbol="SOXL", is_active=False)
        assert len(instruments.list_instruments(session)) == 2
        assert [i.symbol for i in instruments.list_instruments(session, active=True)] == ["TQQQ"]
        assert [i.symbol for i in instruments.list_instruments(session, symbol="soxl")] == ["SOXL"]

    def test_update_raises_floor(self, session, make_instrument):
        instrument = make_instrument()
        updated = instruments.update_instrument(
            session, instrument.id, InstrumentUpdate(seed_amount=20_000)
        )
        assert updated.per_trade_amount == 1_000.0

    def test_update_rejects_amount_below_floor(self, session, make_instrument):
        instrument = make_instrument()
        with pytest.raises(InvalidInstrumentError):
            instruments.update_instrument(
                session, instrument.id, InstrumentUpdate(per_trade_amount=400.0)
            )

    def test_update_accepts_amount_above_floor(self, session, make_instrument):
        instrument = make_instrument()
        updated = instruments.update_instrument(
            session, instrument.id, InstrumentUpdate(per_trade_amount=650.0, label="alt")
        )
        assert updated.per_trade_amount == 650.0
        assert updated.label == "alt"

    def test_delete_keeps_settlement_snapshot(self, session, make_instrument, add_trade):
        instrument = make_instrument()
        add_trade(instrument, "BUY", 50.0, 10)
        settle_instrument(session, instrument.id)
        add_trade(instrument, "BUY", 40.0, 5)

        instruments.delete_instrument(session, instrument.id)

        assert session.exec(select(Trade)).all() == []
        (settlement,) = session.exec(select(Settlement)).all()
        assert settlement.instrument_id is None
        assert settlement.symbol == "TQQQ"
