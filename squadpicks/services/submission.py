"""
Pick Submission Validator

Validates a user's weekly pick set against the pick window and the game
schedule, then records it with the spread in effect at the submission
instant. Checks run in a fixed order so the first failing rule decides the
error a caller sees.
"""

import logging

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from squadpicks import db
from squadpicks.errors import (
    AlreadySubmittedError,
    DuplicateGameError,
    GameNotFoundError,
    InvalidChoiceError,
    InvalidPickCountError,
    LineUnavailableError,
    LockedWindowError,
    WeekMismatchError,
)
from squadpicks.models import Game, Pick, PickSet
from squadpicks.models.pick import CHOICES
from squadpicks.models.pick_set import STATUS_DRAFT, STATUS_SUBMITTED
from squadpicks.utils.cache_utils import invalidate_leaderboard_cache
from squadpicks.utils.timezone_utils import ensure_utc, get_utc_time
from squadpicks.utils.week_window import WeekId, get_week_window

logger = logging.getLogger(__name__)


def _picks_per_week():
    return int(current_app.config.get("PICKS_PER_WEEK", 3))


def _game_id(raw):
    """Integer game id, or None when the value cannot name a game"""
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _validate(user_id, week_id, picks, now, exact_count):
    """
    Run the submission rules in order and return the picks resolved to
    (game, choice, line) triples plus any existing pick set.
    """
    window = get_week_window()

    # 1. Window
    if not window.is_open_for(week_id, now):
        raise LockedWindowError(week_id=week_id)

    # 2. Count
    required = _picks_per_week()
    picks = list(picks or [])
    if exact_count and len(picks) != required:
        raise InvalidPickCountError(
            f"A pick set must contain exactly {required} picks", count=len(picks)
        )
    if not exact_count and len(picks) > required:
        raise InvalidPickCountError(
            f"A draft may hold at most {required} picks", count=len(picks)
        )

    # 3. Duplicate games
    game_ids = [_game_id(pick.get("game_id")) for pick in picks]
    seen = set()
    for game_id in game_ids:
        if game_id is None:
            continue
        if game_id in seen:
            raise DuplicateGameError(game_id=game_id)
        seen.add(game_id)

    # 4. Choice and game existence
    games = {}
    if seen:
        games = {game.id: game for game in Game.query.filter(Game.id.in_(seen)).all()}

    for pick, game_id in zip(picks, game_ids):
        if pick.get("choice") not in CHOICES:
            raise InvalidChoiceError(choice=pick.get("choice"))
        if game_id is None or game_id not in games:
            raise GameNotFoundError(game_id=pick.get("game_id"))

    # 5. Week
    for game_id in game_ids:
        if games[game_id].week_id != week_id:
            raise WeekMismatchError(game_id=game_id, week_id=week_id)

    # 6. Existing submission
    existing = PickSet.for_user_week(user_id, week_id)
    if existing is not None and existing.status != STATUS_DRAFT:
        raise AlreadySubmittedError(week_id=week_id)

    # 7. Line in effect at the submission instant
    preferred = current_app.config.get("PREFERRED_LINE_SOURCE")
    resolved = []
    for pick, game_id in zip(picks, game_ids):
        game = games[game_id]
        line = game.line_in_effect(now, preferred_source=preferred)
        if line is None:
            raise LineUnavailableError(game_id=game_id)
        resolved.append((game, pick["choice"], line))

    return resolved, existing


def _build_picks(resolved):
    return [
        Pick(
            game_id=game.id,
            choice=choice,
            spread_at_pick=line.spread,
            line_source=line.source,
        )
        for game, choice, line in resolved
    ]


def _replace_draft(pick_set, new_status, now):
    """
    Claim a draft for an update and drop its picks in the same transaction.

    The claim is conditional on the row still being a draft, so a concurrent
    submission that got there first makes this one lose.
    """
    values = {"status": new_status, "updated_at": now}
    if new_status == STATUS_SUBMITTED:
        values["submitted_at"] = now

    claimed = db.session.execute(
        update(PickSet)
        .where(PickSet.id == pick_set.id, PickSet.status == STATUS_DRAFT)
        .values(**values)
        .execution_options(synchronize_session=False)
    ).rowcount
    if not claimed:
        db.session.rollback()
        raise AlreadySubmittedError(week_id=str(pick_set.week_id))

    # Flush the deletes before inserting so a re-picked game does not trip
    # the unique key
    for pick in list(pick_set.picks):
        db.session.delete(pick)
    db.session.flush()
    db.session.expire(pick_set)
    return pick_set


def _store(user_id, week_id, resolved, existing, status, now):
    try:
        if existing is not None:
            pick_set = _replace_draft(existing, status, now)
        else:
            pick_set = PickSet(
                user_id=user_id,
                season_year=week_id.year,
                week_number=week_id.number,
                status=status,
                is_penalty=False,
                submitted_at=now if status == STATUS_SUBMITTED else None,
            )
            db.session.add(pick_set)

        for pick in _build_picks(resolved):
            pick_set.picks.append(pick)

        db.session.commit()

    except IntegrityError:
        # Another request created this user's pick set for the week first
        db.session.rollback()
        raise AlreadySubmittedError(week_id=str(week_id))

    return pick_set


def submit_picks(user_id, week_id, picks, now=None):
    """
    Validate and record a user's pick set for a week.

    Args:
        user_id: Submitting user
        week_id: WeekId or 'YYYY-WN'
        picks: sequence of {"game_id": ..., "choice": "home" | "away"}
        now: submission instant (defaults to the current UTC time)

    Returns:
        PickSet: the stored set in submitted status

    Raises:
        PickError subclass for the first rule the submission breaks
    """
    week_id = WeekId.parse(week_id)
    now = ensure_utc(now) if now is not None else get_utc_time()

    resolved, existing = _validate(user_id, week_id, picks, now, exact_count=True)
    pick_set = _store(user_id, week_id, resolved, existing, STATUS_SUBMITTED, now)

    logger.info(
        f"User {user_id} submitted picks for {week_id}: "
        + ", ".join(f"game {game.id} {choice} {line.spread:+g}" for game, choice, line in resolved)
    )

    invalidate_leaderboard_cache()
    return pick_set


def save_draft(user_id, week_id, picks, now=None):
    """
    Store up to three picks in draft status while the window is open.

    Draft picks carry the spread in effect now as a preview; submitting
    replaces them with freshly stamped rows.
    """
    week_id = WeekId.parse(week_id)
    now = ensure_utc(now) if now is not None else get_utc_time()

    resolved, existing = _validate(user_id, week_id, picks, now, exact_count=False)
    pick_set = _store(user_id, week_id, resolved, existing, STATUS_DRAFT, now)

    logger.debug(f"User {user_id} saved a draft for {week_id} ({len(resolved)} picks)")
    return pick_set
