"""
Squad membership changes

Joining or leaving changes who appears in squad standings, so every change
drops the cached leaderboards.
"""

import logging

from squadpicks import db
from squadpicks.models import Squad
from squadpicks.utils.cache_utils import invalidate_leaderboard_cache

logger = logging.getLogger(__name__)


def join_squad(user_id, squad_name):
    """
    Add a user to a squad, creating the squad if needed.

    Returns:
        (Squad, SquadMember) for the user's open membership
    """
    squad = Squad.query.filter_by(name=squad_name).first()
    if not squad:
        squad = Squad(name=squad_name)
        db.session.add(squad)
        db.session.flush()
        logger.info(f"Created squad {squad_name}")

    membership = squad.add_member(user_id)
    db.session.commit()

    logger.info(f"User {user_id} joined squad {squad_name}")
    invalidate_leaderboard_cache()
    return squad, membership


def leave_squad(user_id, squad):
    """Close a user's membership; False when they were not a member"""
    if not squad.remove_member(user_id):
        return False

    db.session.commit()
    logger.info(f"User {user_id} left squad {squad.name}")
    invalidate_leaderboard_cache()
    return True
