"""Tests for JSON backup export and import."""

import json
from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select

from tranche.database import create_db_and_tables
from tranche.exceptions import BackupFormatError
from tranche.models.instrument import Instrument
from tranche.models.settlement import Settlement
from tranche.models.trade import Trade
from tranche.schemas.backup import parse_backup_date
from tranche.services.backup import dumps_backup, export_backup, import_backup
from tranche.services.settlement import settle_instrument


@pytest.fixture
def populated(session, make_instrument, add_trade):
    closed = make_instrument(symbol="SOXL", label="old", sell_target_pct=20.0)
    add_trade(closed, "BUY", 20.0, 25, fee=1.0)
    add_trade(closed, "SELL", 25.0, 25, fee=1.0)
    settle_instrument(session, closed.id)

    active = make_instrument(symbol="TQQQ", per_trade_amount=512.5)
    add_trade(active, "BUY", 50.0, 10, fee=0.5)
    return session


@pytest.fixture
def other_session():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    create_db_and_tables(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


class TestExport:
    def test_document_shape(self, populated):
        doc = export_backup(populated)
        assert doc["version"] == "1.0"
        assert {"appName", "exportedAt", "stocks", "trades", "settlements"} <= set(doc)
        assert [s["id"] for s in doc["stocks"]] == [1, 2]
        assert doc["stocks"][0]["seedMoney"] == 10_000.0
        assert doc["stocks"][0]["nickname"] == "old"
        assert {t["stockId"] for t in doc["trades"]} == {1, 2}
        assert doc["settlements"][0]["stockId"] == 1
        assert doc["trades"][0]["tradeDate"].endswith("Z")

    def test_dumps_is_json(self, populated):
        assert json.loads(dumps_backup(populated))["version"] == "1.0"


class TestRoundTrip:
    def test_restores_parameters_and_totals(self, populated, other_session):
        doc = export_backup(populated)
        result = import_backup(other_session, json.dumps(doc))

        assert (result.instruments, result.trades, result.settlements) == (2, 3, 1)
        assert result.skipped == []

        restored = {i.symbol: i for i in other_session.exec(select(Instrument)).all()}
        assert restored["TQQQ"].per_trade_amount == 512.5
        assert restored["TQQQ"].is_active is True
        assert restored["SOXL"].is_active is False
        assert restored["SOXL"].sell_target_pct == 20.0

        settlement = other_session.exec(select(Settlement)).one()
        original = populated.exec(select(Settlement)).one()
        assert settlement.instrument_id == restored["SOXL"].id
        assert settlement.profit == pytest.approx(original.profit)
        assert settlement.total_fee == pytest.approx(original.total_fee)

        trades = other_session.exec(select(Trade).where(Trade.instrument_id == restored["SOXL"].id)).all()
        assert len(trades) == 2
        assert all(t.is_settled for t in trades)


class TestImport:
    def _doc(self, **overrides):
        doc = {
            "version": "1.0",
            "stocks": [{"id": 7, "symbol": "tqqq", "seedMoney": 10000, "divisions": 20}],
            "trades": [{"stockId": 7, "tradeType": "BUY", "price": 50, "quantity": 10,
                        "tradeDate": "2026-03-02"}],
            "settlements": [],
        }
        doc.update(overrides)
        return doc

    def test_ids_are_remapped(self, other_session):
        result = import_backup(other_session, self._doc())
        instrument = other_session.exec(select(Instrument)).one()
        trade = other_session.exec(select(Trade)).one()
        assert result.instruments == 1
        assert instrument.symbol == "TQQQ"
        assert instrument.per_trade_amount == 500.0
        assert trade.instrument_id == instrument.id
        assert trade.amount == 500.0

    def test_missing_version_aborts(self, other_session):
        doc = self._doc()
        del doc["version"]
        with pytest.raises(BackupFormatError):
            import_backup(other_session, doc)
        assert other_session.exec(select(Instrument)).all() == []

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", b"42"])
    def test_invalid_document(self, other_session, payload):
        with pytest.raises(BackupFormatError):
            import_backup(other_session, payload)

    def test_numeric_version_accepted(self, other_session):
        assert import_backup(other_session, self._doc(version=1.0)).instruments == 1

    def test_malformed_records_are_skipped(self, other_session):
        doc = self._doc(
            stocks=[
                {"id": 1, "symbol": "TQQQ", "seedMoney": 10000},
                {"id": 2, "symbol": "SOXL"},
                "garbage",
            ],
            trades=[
                {"stockId": 1, "tradeType": "BUY", "price": 50, "quantity": 10},
                {"stockId": 1, "tradeType": "HOLD", "price": 50, "quantity": 10},
                {"stockId": 99, "tradeType": "BUY", "price": 50, "quantity": 10},
            ],
            settlements=[{"stockId": 42, "symbol": "FNGU", "profit": 12.5}],
        )
        result = import_backup(other_session, doc)

        assert (result.instruments, result.trades, result.settlements) == (1, 1, 1)
        skipped = {(s.section, s.index) for s in result.skipped}
        assert skipped == {("stocks", 1), ("stocks", 2), ("trades", 1), ("trades", 2)}
        assert any("seedMoney" in s.reason for s in result.skipped)

        orphan = other_session.exec(select(Settlement)).one()
        assert orphan.instrument_id is None
        assert orphan.profit == 12.5

    def test_tranche_size_never_below_floor(self, other_session):
        doc = self._doc(stocks=[
            {"id": 1, "symbol": "TQQQ", "seedMoney": 10000, "divisions": 20, "currentBuyAmount": 100},
        ])
        import_backup(other_session, doc)
        assert other_session.exec(select(Instrument)).one().per_trade_amount == 500.0


class TestDateParsing:
    @pytest.mark.parametrize("text,expected", [
        ("2026-03-02T21:15:30.123Z", datetime(2026, 3, 2, 21, 15, 30, 123000, tzinfo=timezone.utc)),
        ("2026-03-02T21:15:30.123", datetime(2026, 3, 2, 21, 15, 30, 123000, tzinfo=timezone.utc)),
        ("2026-03-02T21:15:30Z", datetime(2026, 3, 2, 21, 15, 30, tzinfo=timezone.utc)),
        ("2026-03-02T21:15:30", datetime(2026, 3, 2, 21, 15, 30, tzinfo=timezone.utc)),
        ("2026-03-02 21:15:30", datetime(2026, 3, 2, 21, 15, 30, tzinfo=timezone.utc)),
        ("2026-03-02", datetime(2026, 3, 2, tzinfo=timezone.utc)),
        ("2026-03-02T21:15:30+09:00", datetime(2026, 3, 2, 12, 15, 30, tzinfo=timezone.utc)),
    ])
    def test_accepted_formats(self, text, expected):
        assert parse_backup_date(text) == expected

    def test_unparseable_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        parsed = parse_backup_date("next tuesday")
        assert parsed >= before
