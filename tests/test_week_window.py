"""Tests for the pick window calculator."""

from datetime import date, timedelta

import pytest

from conftest import DURING_WEEK1, WEEK1_LOCK, WEEK1_OPEN, utc
from squadpicks.utils.week_window import WeekId, WeekWindow


@pytest.fixture
def window():
    return WeekWindow(
        timezone_name="Europe/Dublin",
        season_year=2025,
        season_start_date=date(2025, 9, 5),
        season_weeks=18,
        open_weekday=4,
        open_hour=5,
        lock_weekday=5,
        lock_hour=12,
    )


class TestWeekId:
    """Tests for week identifiers."""

    def test_parse_and_format(self):
        """Test the canonical YYYY-WN text form round-trips."""
        week_id = WeekId.parse("2025-W3")
        assert week_id == WeekId(2025, 3)
        assert str(week_id) == "2025-W3"

    def test_ordering(self):
        """Test week ids order by year, then week number."""
        assert WeekId(2025, 3) < WeekId(2025, 10) < WeekId(2026, 1)

    @pytest.mark.parametrize("value", ["2025-3", "2025-W", "W3", "2025-W0", "abc", ""])
    def test_parse_rejects_malformed(self, value):
        """Test malformed week ids raise ValueError."""
        with pytest.raises(ValueError):
            WeekId.parse(value)


class TestWindowState:
    """Tests for open and lock transitions."""

    def test_opens_exactly_at_open_anchor(self, window):
        """Test Friday 05:00 Irish time opens week 1."""
        state = window.window_state(WEEK1_OPEN)
        assert state.week_id == WeekId(2025, 1)
        assert state.is_open is True
        assert state.is_locked is False

    def test_lock_is_31_hours_after_open(self, window):
        """Test the default anchors give a 31 hour window."""
        opens_at, locks_at = window.week_bounds("2025-W1")
        assert opens_at == WEEK1_OPEN
        assert locks_at == WEEK1_LOCK
        assert locks_at - opens_at == timedelta(hours=31)

    def test_open_just_before_lock(self, window):
        """Test the window is still open one second before the lock anchor."""
        state = window.window_state(WEEK1_LOCK - timedelta(seconds=1))
        assert state.is_open is True
        assert state.is_locked is False

    def test_locked_at_lock_instant(self, window):
        """Test the lock anchor itself is locked (half-open interval)."""
        state = window.window_state(WEEK1_LOCK)
        assert state.week_id == WeekId(2025, 1)
        assert state.is_open is False
        assert state.is_locked is True

    def test_stays_on_week_until_next_open(self, window):
        """Test the week number only advances at the next open anchor."""
        sunday = utc(2025, 9, 7, 20)
        assert window.window_state(sunday).week_id == WeekId(2025, 1)
        assert window.window_state(sunday).is_locked is True

        next_open = utc(2025, 9, 12, 4)
        state = window.window_state(next_open)
        assert state.week_id == WeekId(2025, 2)
        assert state.is_open is True

    def test_before_season_start(self, window):
        """Test instants before the season map to week 1, neither open nor locked."""
        state = window.window_state(utc(2025, 8, 1))
        assert state.week_id == WeekId(2025, 1)
        assert state.is_open is False
        assert state.is_locked is False

    def test_clamps_after_last_week(self, window):
        """Test instants after the season clamp to the final week."""
        state = window.window_state(utc(2026, 3, 1))
        assert state.week_id == WeekId(2025, 18)
        assert state.is_locked is True

    def test_naive_datetime_is_utc(self, window):
        """Test naive instants are read as UTC."""
        naive = DURING_WEEK1.replace(tzinfo=None)
        assert window.window_state(naive) == window.window_state(DURING_WEEK1)


class TestDaylightSaving:
    """Tests for anchors across the October clock change."""

    def test_open_anchor_follows_wall_clock(self, window):
        """Test week 9 opens at 05:00 GMT (05:00 UTC) after clocks go back."""
        opens_at, _ = window.week_bounds("2025-W9")
        assert opens_at == utc(2025, 10, 31, 5)

        week8_open, _ = window.week_bounds("2025-W8")
        assert week8_open == utc(2025, 10, 24, 4)

    def test_hour_before_new_open_is_previous_week(self, window):
        """Test 04:30 UTC on the first GMT Friday is still week 8."""
        state = window.window_state(utc(2025, 10, 31, 4, 30))
        assert state.week_id == WeekId(2025, 8)
        assert state.is_locked is True

        assert window.current_week_id(utc(2025, 10, 31, 5)) == WeekId(2025, 9)


class TestWeekQueries:
    """Tests for per-week helpers."""

    def test_is_open_for_other_week(self, window):
        """Test only the current week accepts picks."""
        assert window.is_open_for("2025-W1", DURING_WEEK1) is True
        assert window.is_open_for("2025-W2", DURING_WEEK1) is False

    def test_is_week_locked(self, window):
        """Test lock state of an arbitrary week."""
        assert window.is_week_locked("2025-W1", WEEK1_LOCK) is True
        assert window.is_week_locked("2025-W2", WEEK1_LOCK) is False

    def test_week_outside_season(self, window):
        """Test bounds of weeks outside the season raise ValueError."""
        with pytest.raises(ValueError):
            window.week_bounds("2025-W19")
        with pytest.raises(ValueError):
            window.week_bounds("2024-W1")

    def test_season_week_ids_up_to(self, window):
        """Test listing weeks up to and including a given week."""
        assert window.season_week_ids(up_to="2025-W3") == [
            WeekId(2025, 1),
            WeekId(2025, 2),
            WeekId(2025, 3),
        ]
        assert len(window.season_week_ids()) == 18


class TestConfiguration:
    """Tests for anchor validation."""

    def test_start_date_must_be_open_weekday(self):
        """Test a season start on the wrong weekday is rejected."""
        with pytest.raises(ValueError):
            WeekWindow("Europe/Dublin", 2025, date(2025, 9, 4), 18, 4, 5, 5, 12)

    def test_lock_must_precede_next_open(self):
        """Test a same-day lock at or before the open hour is rejected."""
        with pytest.raises(ValueError):
            WeekWindow("Europe/Dublin", 2025, date(2025, 9, 5), 18, 4, 5, 4, 5)

    def test_invalid_weekday(self):
        """Test weekdays outside 0..6 are rejected."""
        with pytest.raises(ValueError):
            WeekWindow("Europe/Dublin", 2025, date(2025, 9, 5), 18, 4, 5, 7, 12)
