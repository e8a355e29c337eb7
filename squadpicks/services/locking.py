"""
Lock transition: submitted pick sets become locked once their week's lock
anchor has passed. Reads apply the same rule through
PickSet.effective_status, so the bulk update only has to catch up.
"""

import logging

from sqlalchemy import update

from squadpicks import db
from squadpicks.models import PickSet
from squadpicks.models.pick_set import STATUS_LOCKED, STATUS_SUBMITTED
from squadpicks.utils.cache_utils import invalidate_leaderboard_cache
from squadpicks.utils.timezone_utils import ensure_utc, get_utc_time
from squadpicks.utils.week_window import WeekId, get_week_window

logger = logging.getLogger(__name__)


def lock_week(week_id, now=None):
    """
    Move every submitted pick set of a week to locked.

    Returns:
        int: number of pick sets locked (0 before the lock anchor)
    """
    week_id = WeekId.parse(week_id)
    now = ensure_utc(now) if now is not None else get_utc_time()

    if not get_week_window().is_week_locked(week_id, now):
        return 0

    locked = db.session.execute(
        update(PickSet)
        .where(
            PickSet.season_year == week_id.year,
            PickSet.week_number == week_id.number,
            PickSet.status == STATUS_SUBMITTED,
        )
        .values(status=STATUS_LOCKED, locked_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()

    if locked:
        logger.info(f"Locked {locked} pick sets for {week_id}")
        invalidate_leaderboard_cache()
    return locked
