"""Tests for rb_common.datetime_utils."""

from datetime import UTC, datetime, timedelta, timezone

from src.rb_common.datetime_utils import add_months, days_until, ensure_utc, utc_now


class TestAddMonths:
    def test_simple(self) -> None:
        assert add_months(datetime(2026, 3, 10, tzinfo=UTC), 1) == datetime(2026, 4, 10, tzinfo=UTC)

    def test_year_rollover(self) -> None:
        assert add_months(datetime(2026, 11, 15, tzinfo=UTC), 3) == datetime(
            2027, 2, 15, tzinfo=UTC
        )

    def test_clamps_to_short_month(self) -> None:
        assert add_months(datetime(2026, 1, 31, tzinfo=UTC), 1) == datetime(
            2026, 2, 28, tzinfo=UTC
        )

    def test_clamps_to_leap_day(self) -> None:
        assert add_months(datetime(2028, 1, 31, tzinfo=UTC), 1) == datetime(
            2028, 2, 29, tzinfo=UTC
        )

    def test_twelve_months(self) -> None:
        assert add_months(datetime(2026, 5, 1, 8, 30, tzinfo=UTC), 12) == datetime(
            2027, 5, 1, 8, 30, tzinfo=UTC
        )

    def test_keeps_time_of_day(self) -> None:
        result = add_months(datetime(2026, 3, 10, 23, 59, 59, tzinfo=UTC), 6)
        assert (result.hour, result.minute, result.second) == (23, 59, 59)


class TestDaysUntil:
    NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

    def test_same_instant(self) -> None:
        assert days_until(self.NOW, self.NOW) == 0

    def test_partial_day_rounds_up(self) -> None:
        assert days_until(self.NOW + timedelta(hours=1), self.NOW) == 1

    def test_past_partial_day_rounds_toward_zero(self) -> None:
        assert days_until(self.NOW - timedelta(days=10, hours=12), self.NOW) == -10

    def test_naive_treated_as_utc(self) -> None:
        naive = datetime(2026, 3, 12, 12, 0)
        assert days_until(naive, self.NOW) == 2


class TestEnsureUtc:
    def test_converts_offset(self) -> None:
        ist = timezone(timedelta(hours=5, minutes=30))
        value = datetime(2026, 3, 10, 17, 30, tzinfo=ist)
        assert ensure_utc(value) == datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
        assert ensure_utc(value).utcoffset() == timedelta(0)

    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo is not None
