"""
Pick window calculator

Maps an instant to the competition week and to whether picks for that week
are open or locked. Weeks open at a fixed weekday/hour ("open anchor") and
lock at the first lock weekday/hour after it ("lock anchor"), both read on the
wall clock of the reference timezone so DST changes never move the anchors.

Everything here is a pure function of the instant passed in and the static
season configuration.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import NamedTuple

import pytz
from flask import current_app

from squadpicks.utils.timezone_utils import ensure_utc

WEEK_ID_PATTERN = re.compile(r"^(\d{4})-W(\d{1,2})$")


class WeekId(NamedTuple):
    """Season year plus week number, ordered by (year, number)"""

    year: int
    number: int

    def __str__(self):
        return f"{self.year}-W{self.number}"

    @classmethod
    def parse(cls, value):
        """Parse the canonical 'YYYY-WN' form (e.g. '2025-W3')"""
        if isinstance(value, WeekId):
            return value

        match = WEEK_ID_PATTERN.match(str(value).strip())
        if not match:
            raise ValueError(f"Invalid week id: {value!r} (expected YYYY-WN)")

        year, number = int(match.group(1)), int(match.group(2))
        if number < 1:
            raise ValueError(f"Invalid week number in {value!r}")

        return cls(year, number)


class WindowState(NamedTuple):
    week_id: WeekId
    is_open: bool
    is_locked: bool
    opens_at: datetime
    locks_at: datetime

    def to_dict(self):
        return {
            "week_id": str(self.week_id),
            "is_open": self.is_open,
            "is_locked": self.is_locked,
            "opens_at": self.opens_at.isoformat(),
            "locks_at": self.locks_at.isoformat(),
        }


class WeekWindow:
    """Static season calendar for the pick window"""

    def __init__(
        self,
        timezone_name,
        season_year,
        season_start_date,
        season_weeks,
        open_weekday,
        open_hour,
        lock_weekday,
        lock_hour,
    ):
        for name, weekday in (("open", open_weekday), ("lock", lock_weekday)):
            if not 0 <= weekday <= 6:
                raise ValueError(f"Invalid {name} weekday {weekday} (0=Monday..6=Sunday)")
        for name, hour in (("open", open_hour), ("lock", lock_hour)):
            if not 0 <= hour <= 23:
                raise ValueError(f"Invalid {name} hour {hour}")
        if season_weeks < 1:
            raise ValueError("A season needs at least one week")
        if season_start_date.weekday() != open_weekday:
            raise ValueError(
                f"Season start {season_start_date.isoformat()} is not on the open weekday"
            )

        lock_offset_days = (lock_weekday - open_weekday) % 7
        if lock_offset_days == 0 and lock_hour <= open_hour:
            # Would lock at or after the next open anchor
            raise ValueError("Lock anchor must fall before the next open anchor")

        self.timezone = pytz.timezone(timezone_name)
        self.season_year = season_year
        self.season_start_date = season_start_date
        self.season_weeks = season_weeks
        self.open_hour = open_hour
        self.lock_hour = lock_hour
        self._lock_offset_days = lock_offset_days
        self._bounds_cache = {}

    @classmethod
    def from_config(cls, config):
        start = config["SEASON_START_DATE"]
        if not isinstance(start, date):
            start = date.fromisoformat(str(start))

        return cls(
            timezone_name=config["TIMEZONE"],
            season_year=int(config["SEASON_YEAR"]),
            season_start_date=start,
            season_weeks=int(config["SEASON_WEEKS"]),
            open_weekday=int(config["PICKS_OPEN_WEEKDAY"]),
            open_hour=int(config["PICKS_OPEN_HOUR"]),
            lock_weekday=int(config["PICKS_LOCK_WEEKDAY"]),
            lock_hour=int(config["PICKS_LOCK_HOUR"]),
        )

    def _local_instant(self, day, hour):
        naive = datetime.combine(day, time(hour))
        return self.timezone.localize(naive, is_dst=False).astimezone(pytz.UTC)

    def _bounds(self, number):
        bounds = self._bounds_cache.get(number)
        if bounds is None:
            open_day = self.season_start_date + timedelta(weeks=number - 1)
            lock_day = open_day + timedelta(days=self._lock_offset_days)
            bounds = (
                self._local_instant(open_day, self.open_hour),
                self._local_instant(lock_day, self.lock_hour),
            )
            self._bounds_cache[number] = bounds
        return bounds

    def _check_week(self, week_id):
        week_id = WeekId.parse(week_id)
        if week_id.year != self.season_year or not 1 <= week_id.number <= self.season_weeks:
            raise ValueError(f"Week {week_id} is outside the {self.season_year} season")
        return week_id

    def week_bounds(self, week_id):
        """Return (opens_at, locks_at) in UTC for a week of this season"""
        return self._bounds(self._check_week(week_id).number)

    def week_number_at(self, now):
        now = ensure_utc(now)
        first_open, _ = self._bounds(1)
        if now < first_open:
            return 1

        # Estimate from elapsed days, then correct for DST hour shifts
        number = min((now - first_open).days // 7 + 1, self.season_weeks)
        while number < self.season_weeks and self._bounds(number + 1)[0] <= now:
            number += 1
        while number > 1 and self._bounds(number)[0] > now:
            number -= 1
        return number

    def window_state(self, now):
        now = ensure_utc(now)
        number = self.week_number_at(now)
        opens_at, locks_at = self._bounds(number)

        return WindowState(
            week_id=WeekId(self.season_year, number),
            is_open=opens_at <= now < locks_at,
            is_locked=now >= locks_at,
            opens_at=opens_at,
            locks_at=locks_at,
        )

    def current_week_id(self, now):
        return self.window_state(now).week_id

    def is_open_for(self, week_id, now):
        """True when picks for this particular week may be submitted at `now`"""
        state = self.window_state(now)
        return state.is_open and state.week_id == WeekId.parse(week_id)

    def is_week_locked(self, week_id, now):
        _, locks_at = self.week_bounds(week_id)
        return ensure_utc(now) >= locks_at

    def season_week_ids(self, up_to=None):
        """All week ids of the season, optionally up to and including `up_to`"""
        last = self.season_weeks
        if up_to is not None:
            last = self._check_week(up_to).number
        return [WeekId(self.season_year, n) for n in range(1, last + 1)]


def get_week_window():
    """The pick window of the running application"""
    return current_app.extensions["week_window"]
