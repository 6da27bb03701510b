"""Tests for cycle settlement and reopening."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlmodel import select

from tranche.exceptions import InvalidInstrumentError, NoOpenTradesError
from tranche.models.instrument import Instrument
from tranche.models.settlement import Settlement
from tranche.models.trade import Trade
from tranche.services.settlement import (
    compute_totals,
    list_settlements,
    reopen_instrument,
    settle_instrument,
)


@pytest.fixture
def open_cycle(make_instrument, add_trade):
    instrument = make_instrument()
    add_trade(instrument, "BUY", 50.0, 10, fee=1.0,
              trade_date=datetime(2026, 3, 2, 20, 0, tzinfo=timezone.utc))
    add_trade(instrument, "SELL", 60.0, 4, fee=1.0,
              trade_date=datetime(2026, 3, 12, 20, 0, tzinfo=timezone.utc))
    return instrument


class TestSettle:
    def test_creates_record_and_closes_cycle(self, session, open_cycle):
        record = settle_instrument(session, open_cycle.id)

        assert record.total_buy_amount == 500.0
        assert record.total_sell_amount == 240.0
        assert record.total_fee == 2.0
        assert record.profit == pytest.approx(240.0 - 500.0 - 2.0)
        assert record.profit_rate == pytest.approx(record.profit / 500.0 * 100)
        assert record.trading_days == 10
        assert record.seed_usage_rate == pytest.approx(5.0)
        assert (record.buy_count, record.sell_count) == (1, 1)
        assert record.per_trade_amount == 500.0
        assert record.symbol == "TQQQ"

        trades = session.exec(select(Trade).where(Trade.instrument_id == open_cycle.id)).all()
        assert all(t.is_settled for t in trades)

        instrument = session.get(Instrument, open_cycle.id)
        assert instrument.is_active is False
        assert instrument.accumulated_profit == pytest.approx(record.profit)
        # A loss never shrinks the tranche below seed / N
        assert instrument.per_trade_amount >= 500.0

    def test_profitable_cycle_compounds(self, session, make_instrument, add_trade):
        instrument = make_instrument()
        add_trade(instrument, "BUY", 50.0, 10)
        add_trade(instrument, "SELL", 70.0, 10)

        record = settle_instrument(session, instrument.id)

        assert record.profit == pytest.approx(200.0)
        refreshed = session.get(Instrument, instrument.id)
        assert refreshed.per_trade_amount == pytest.approx(500.0 + 200.0 * 0.5 / 20)

    def test_no_compounding_when_disabled(self, session, make_instrument, add_trade):
        instrument = make_instrument(compound_pct=0.0)
        add_trade(instrument, "BUY", 50.0, 10)
        add_trade(instrument, "SELL", 70.0, 10)

        settle_instrument(session, instrument.id)
        assert session.get(Instrument, instrument.id).per_trade_amount == 500.0

    def test_nothing_to_settle(self, session, make_instrument):
        instrument = make_instrument()
        with pytest.raises(NoOpenTradesError):
            settle_instrument(session, instrument.id)
        assert session.exec(select(Settlement)).all() == []
        assert session.get(Instrument, instrument.id).is_active is True

    def test_already_settled_trades_are_excluded(self, session, open_cycle, add_trade):
        add_trade(open_cycle, "BUY", 10.0, 100, is_settled=True)
        record = settle_instrument(session, open_cycle.id)
        assert record.total_buy_amount == 500.0

    def test_failure_rolls_back(self, session, open_cycle):
        with patch.object(session, "commit", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                settle_instrument(session, open_cycle.id)

        assert session.exec(select(Settlement)).all() == []
        trades = session.exec(select(Trade).where(Trade.instrument_id == open_cycle.id)).all()
        assert not any(t.is_settled for t in trades)
        assert session.get(Instrument, open_cycle.id).is_active is True


def test_compute_totals_requires_trades():
    with pytest.raises(NoOpenTradesError):
        compute_totals([])


class TestReopen:
    def test_reopen_keeps_compounded_amount(self, session, make_instrument, add_trade):
        instrument = make_instrument()
        add_trade(instrument, "BUY", 50.0, 10)
        add_trade(instrument, "SELL", 70.0, 10)
        settle_instrument(session, instrument.id)
        compounded = session.get(Instrument, instrument.id).per_trade_amount

        start = datetime(2026, 4, 1, 14, 0, tzinfo=timezone.utc)
        reopened = reopen_instrument(session, instrument.id, start_date=start)

        assert reopened.is_active is True
        assert reopened.per_trade_amount == compounded
        assert reopened.start_date.replace(tzinfo=timezone.utc) == start

    def test_reopen_active_instrument_rejected(self, session, make_instrument):
        instrument = make_instrument()
        with pytest.raises(InvalidInstrumentError):
            reopen_instrument(session, instrument.id)


def test_list_settlements_filters(session, make_instrument, add_trade):
    first = make_instrument(symbol="TQQQ")
    second = make_instrument(symbol="SOXL", sell_target_pct=20.0)
    for instrument in (first, second):
        add_trade(instrument, "BUY", 50.0, 10)
        settle_instrument(session, instrument.id)

    assert len(list_settlements(session)) == 2
    assert [s.symbol for s in list_settlements(session, symbol="soxl")] == ["SOXL"]
    assert [s.instrument_id for s in list_settlements(session, instrument_id=first.id)] == [first.id]
