"""Exchange trading-day calendar.

Trading-day boundaries are defined in exchange-local time, so every datetime is
converted to the exchange timezone before its weekday or holiday is evaluated.
Naive datetimes are treated as UTC.

Holiday data is a static, manually curated table keyed by year and must be
extended every year. For a year with no entries the calendar falls back to
weekday-only detection and logs a warning.
"""

import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from tranche.config import settings
from tranche.utils.timeutils import as_utc

logger = logging.getLogger(__name__)

# NYSE full-day closures: https://www.nyse.com/markets/hours-calendars
US_MARKET_HOLIDAYS: dict[int, frozenset[date]] = {
    2025: frozenset({
        date(2025, 1, 1),    # New Year's Day
        date(2025, 1, 20),   # MLK Day
        date(2025, 2, 17),   # Presidents' Day
        date(2025, 4, 18),   # Good Friday
        date(2025, 5, 26),   # Memorial Day
        date(2025, 6, 19),   # Juneteenth
        date(2025, 7, 4),    # Independence Day
        date(2025, 9, 1),    # Labor Day
        date(2025, 11, 27),  # Thanksgiving
        date(2025, 12, 25),  # Christmas
    }),
    2026: frozenset({
        date(2026, 1, 1),    # New Year's Day
        date(2026, 1, 19),   # MLK Day
        date(2026, 2, 16),   # Presidents' Day
        date(2026, 4, 3),    # Good Friday
        date(2026, 5, 25),   # Memorial Day
        date(2026, 6, 19),   # Juneteenth
        date(2026, 7, 3),    # Independence Day (observed)
        date(2026, 9, 7),    # Labor Day
        date(2026, 11, 26),  # Thanksgiving
        date(2026, 12, 25),  # Christmas
    }),
    2027: frozenset({
        date(2027, 1, 1),    # New Year's Day
        date(2027, 1, 18),   # MLK Day
        date(2027, 2, 15),   # Presidents' Day
        date(2027, 3, 26),   # Good Friday
        date(2027, 5, 31),   # Memorial Day
        date(2027, 6, 18),   # Juneteenth (observed)
        date(2027, 7, 5),    # Independence Day (observed)
        date(2027, 9, 6),    # Labor Day
        date(2027, 11, 25),  # Thanksgiving
        date(2027, 12, 24),  # Christmas (observed)
    }),
}

# Longest backward scan for the previous session
MAX_LOOKBACK_DAYS = 10


class TradingCalendar:
    """Weekday + holiday-table calendar for one exchange."""

    def __init__(
        self,
        tz_name: str = "America/New_York",
        holidays: dict[int, frozenset[date]] | None = None,
    ):
        self.tz = ZoneInfo(tz_name)
        self.holidays = US_MARKET_HOLIDAYS if holidays is None else holidays
        self._warned_years: set[int] = set()

    def local_date(self, value: datetime | date) -> date:
        """Exchange-local calendar date of a datetime; plain dates pass through."""
        if isinstance(value, datetime):
            return as_utc(value).astimezone(self.tz).date()
        return value

    def local_now(self, now: datetime | None = None) -> datetime:
        now = now or datetime.now(self.tz)
        return as_utc(now).astimezone(self.tz)

    def has_holidays_for(self, year: int) -> bool:
        return year in self.holidays

    def is_holiday(self, value: datetime | date) -> bool:
        day = self.local_date(value)
        year_holidays = self.holidays.get(day.year)
        if year_holidays is None:
            self._warn_missing_year(day.year)
            return False
        return day in year_holidays

    def is_trading_day(self, value: datetime | date) -> bool:
        day = self.local_date(value)
        if day.weekday() >= 5:  # Saturday / Sunday
            return False
        return not self.is_holiday(day)

    def last_trading_day_before(self, value: datetime | date) -> date:
        """Most recent trading day strictly before `value`.

        Scans back at most MAX_LOOKBACK_DAYS; if nothing qualifies the last
        scanned day is returned.
        """
        start = self.local_date(value)
        check = start
        for offset in range(1, MAX_LOOKBACK_DAYS + 1):
            check = start - timedelta(days=offset)
            if self.is_trading_day(check):
                return check
        logger.warning(f"No trading day within {MAX_LOOKBACK_DAYS} days before {start}")
        return check

    def coverage(self, today: date | None = None) -> dict:
        """Holiday-table coverage for the current and next year."""
        today = today or self.local_now().date()
        return {
            "timezone": str(self.tz),
            "years": sorted(self.holidays),
            "current_year": self.has_holidays_for(today.year),
            "next_year": self.has_holidays_for(today.year + 1),
        }

    def _warn_missing_year(self, year: int):
        if year in self._warned_years:
            return
        self._warned_years.add(year)
        logger.warning(
            f"No holiday data for {year}; falling back to weekday-only trading days"
        )


market_calendar = TradingCalendar(settings.exchange_timezone)
