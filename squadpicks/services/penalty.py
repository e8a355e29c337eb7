"""
Penalty Backfill

A user who misses a week is recorded as 0-for-3 once every game of that week
is final: a locked pick set whose three picks sit on the losing side of
three decided games. Spread math is bypassed; the picks are written already
graded as losses with zero payout.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from squadpicks import db
from squadpicks.errors import WeekNotCompleteError
from squadpicks.models import Game, Pick, PickSet, User
from squadpicks.models.pick import OUTCOME_LOSS, PENALTY_LINE_SOURCE
from squadpicks.models.pick_set import STATUS_DRAFT, STATUS_LOCKED
from squadpicks.utils.cache_utils import invalidate_leaderboard_cache
from squadpicks.utils.timezone_utils import ensure_utc, get_utc_time
from squadpicks.utils.week_window import WeekId, get_week_window

logger = logging.getLogger(__name__)

ELIGIBILITY_ACTIVE_BEFORE_LOCK = "active_before_lock"
ELIGIBILITY_ANY_PICK_HISTORY = "any_pick_history"
ELIGIBILITY_ALL = "all"
ELIGIBILITY_POLICIES = (
    ELIGIBILITY_ACTIVE_BEFORE_LOCK,
    ELIGIBILITY_ANY_PICK_HISTORY,
    ELIGIBILITY_ALL,
)


def _week_games(week_id):
    games = Game.get_games_for_week(week_id)
    unfinished = [game.id for game in games if not game.has_result]
    if unfinished:
        raise WeekNotCompleteError(week_id=week_id, unfinished_games=len(unfinished))
    return games


def _penalty_pick(game, now):
    side = game.losing_side
    return Pick(
        game_id=game.id,
        choice=side,
        spread_at_pick=0.0,
        line_source=PENALTY_LINE_SOURCE,
        outcome=OUTCOME_LOSS,
        result=f"Penalty: no picks submitted. Assigned {game.team_for(side)}, "
        f"lost {min(game.home_score, game.away_score)}-"
        f"{max(game.home_score, game.away_score)}",
        points=0.0,
        payout=0.0,
        graded_at=now,
    )


def backfill_missing_week(user_id, week_id, now=None, games=None):
    """
    Record a missed week as three losses.

    Args:
        user_id: User who missed the week
        week_id: WeekId or 'YYYY-WN'
        now: timestamp for locked_at / graded_at
        games: the week's games, already checked complete (batch use)

    Returns:
        PickSet created, or None when the user is unknown or inactive, already has a
        submitted or locked set, or the week has fewer than three decided games

    Raises:
        WeekNotCompleteError: the week still has games without a result
    """
    week_id = WeekId.parse(week_id)
    now = ensure_utc(now) if now is not None else get_utc_time()

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning(f"Cannot backfill {week_id} for user {user_id}: no active user")
        return None

    if games is None:
        games = _week_games(week_id)

    existing = PickSet.for_user_week(user_id, week_id)
    if existing is not None and existing.status != STATUS_DRAFT:
        return None

    required = int(current_app.config.get("PICKS_PER_WEEK", 3))
    # Ties have no losing side
    decided = [game for game in games if not game.is_tie][:required]
    if len(decided) < required:
        logger.warning(
            f"Cannot backfill {week_id} for user {user_id}: "
            f"only {len(decided)} decided games"
        )
        return None

    try:
        if existing is not None:
            # An abandoned draft gives way to the penalty set
            db.session.delete(existing)
            db.session.flush()

        pick_set = PickSet(
            user_id=user_id,
            season_year=week_id.year,
            week_number=week_id.number,
            status=STATUS_LOCKED,
            is_penalty=True,
            locked_at=now,
        )
        for game in decided:
            pick_set.picks.append(_penalty_pick(game, now))
        db.session.add(pick_set)
        db.session.commit()

    except IntegrityError:
        # The user's pick set for this week appeared concurrently
        db.session.rollback()
        logger.info(f"Skipped penalty for user {user_id} {week_id}: pick set already exists")
        return None

    logger.info(f"Penalty backfill: user {user_id} recorded 0-3 for {week_id}")
    invalidate_leaderboard_cache()
    return pick_set


def eligible_users(week_id, policy=None):
    """Active users the penalty rule applies to for a week"""
    policy = policy or current_app.config.get(
        "PENALTY_ELIGIBILITY", ELIGIBILITY_ACTIVE_BEFORE_LOCK
    )
    if policy not in ELIGIBILITY_POLICIES:
        raise ValueError(f"Unknown penalty eligibility policy: {policy!r}")

    users = User.query.filter(User.is_active.is_(True)).order_by(User.id).all()

    if policy == ELIGIBILITY_ACTIVE_BEFORE_LOCK:
        _, locks_at = get_week_window().week_bounds(week_id)
        return [
            user
            for user in users
            if user.created_at is not None and ensure_utc(user.created_at) < locks_at
        ]

    if policy == ELIGIBILITY_ANY_PICK_HISTORY:
        with_history = {
            user_id
            for (user_id,) in db.session.query(PickSet.user_id)
            .filter(PickSet.is_penalty.is_(False), PickSet.status != STATUS_DRAFT)
            .distinct()
        }
        return [user for user in users if user.id in with_history]

    return users


def backfill_week(week_id, now=None, policy=None):
    """
    Apply the penalty rule to every eligible user without picks for a week.

    Returns:
        dict with counts: created, skipped

    Raises:
        WeekNotCompleteError: the week still has games without a result
    """
    week_id = WeekId.parse(week_id)
    now = ensure_utc(now) if now is not None else get_utc_time()
    games = _week_games(week_id)

    counts = {"created": 0, "skipped": 0}
    if not games:
        return counts

    for user in eligible_users(week_id, policy):
        pick_set = backfill_missing_week(user.id, week_id, now=now, games=games)
        if pick_set is None:
            counts["skipped"] += 1
        else:
            counts["created"] += 1

    if counts["created"]:
        logger.info(f"Penalty backfill for {week_id}: {counts['created']} created")
    return counts


def backfill_completed_weeks(now=None):
    """
    Run the penalty rule over every locked week of the season whose games
    are all final. Weeks still in play are skipped.

    Returns:
        dict mapping week id text to the backfill_week counts
    """
    now = ensure_utc(now) if now is not None else get_utc_time()
    window = get_week_window()

    results = {}
    for week_id in window.season_week_ids(up_to=window.current_week_id(now)):
        if not window.is_week_locked(week_id, now):
            continue
        try:
            results[str(week_id)] = backfill_week(week_id, now=now)
        except WeekNotCompleteError:
            logger.debug(f"Penalty backfill: {week_id} still has unfinished games")
    return results
