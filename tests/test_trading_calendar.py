"""Tests for exchange-local trading-day detection."""

import logging
from datetime import date, datetime, timezone

from tranche.services.trading_calendar import US_MARKET_HOLIDAYS, TradingCalendar


class TestTradingDay:
    def test_weekend_is_closed(self, calendar):
        assert calendar.is_trading_day(date(2026, 3, 7)) is False  # Saturday
        assert calendar.is_trading_day(date(2026, 3, 8)) is False  # Sunday
        assert calendar.is_trading_day(date(2026, 3, 9)) is True

    def test_holiday_is_closed(self, calendar):
        assert calendar.is_holiday(date(2026, 11, 26)) is True
        assert calendar.is_trading_day(date(2026, 11, 26)) is False

    def test_uses_exchange_local_date(self, calendar):
        # 02:00 UTC Tuesday is still Monday evening in New York
        moment = datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc)
        assert calendar.local_date(moment) == date(2026, 3, 9)

    def test_naive_datetime_read_as_utc(self, calendar):
        assert calendar.local_date(datetime(2026, 3, 10, 2, 0)) == date(2026, 3, 9)

    def test_missing_year_warns_once(self, calendar, caplog):
        with caplog.at_level(logging.WARNING):
            assert calendar.is_trading_day(date(2031, 1, 1)) is True
            assert calendar.is_trading_day(date(2031, 1, 2)) is True
        warnings = [r for r in caplog.records if "2031" in r.getMessage()]
        assert len(warnings) == 1


class TestLastTradingDayBefore:
    def test_monday_looks_back_to_friday(self, calendar):
        assert calendar.last_trading_day_before(date(2026, 3, 9)) == date(2026, 3, 6)

    def test_skips_holiday(self, calendar):
        # Friday after Thanksgiving -> Wednesday
        assert calendar.last_trading_day_before(date(2026, 11, 27)) == date(2026, 11, 25)

    def test_long_weekend(self, calendar):
        # Monday July 6 2026: Friday July 3 is the observed holiday
        assert calendar.last_trading_day_before(date(2026, 7, 6)) == date(2026, 7, 2)

    def test_gives_up_after_lookback(self):
        closed = frozenset(date(2026, 5, d) for d in range(1, 32))
        calendar = TradingCalendar("America/New_York", {2026: closed})
        assert calendar.last_trading_day_before(date(2026, 5, 31)) == date(2026, 5, 21)


class TestCoverage:
    def test_builtin_table_years(self):
        assert {2025, 2026, 2027} <= set(US_MARKET_HOLIDAYS)

    def test_coverage_flags(self, calendar):
        report = calendar.coverage(date(2026, 6, 1))
        assert report["years"] == [2026]
        assert report["current_year"] is True
        assert report["next_year"] is False
