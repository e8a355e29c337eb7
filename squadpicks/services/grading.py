"""
Grading Engine service

Writes grades computed by squadpicks.utils.scoring. A grade is written at most
once: the UPDATE only matches a pick whose outcome is still NULL, so two
graders racing on the same pick cannot both succeed.
"""

import logging
from collections import defaultdict

from flask import current_app
from sqlalchemy import update

from squadpicks import db
from squadpicks.errors import AlreadyGradedError, GameNotCompletedError
from squadpicks.models import Game, Pick, PickSet
from squadpicks.models.pick_set import STATUS_DRAFT
from squadpicks.utils import scoring
from squadpicks.utils.cache_utils import invalidate_leaderboard_cache
from squadpicks.utils.timezone_utils import ensure_utc, get_utc_time
from squadpicks.utils.week_window import WeekId

logger = logging.getLogger(__name__)


def grade_pick(pick, game=None, now=None, commit=True):
    """
    Grade one pick against its completed game.

    A pick that already carries a grade is left alone and its stored grade
    is returned, so repeated calls yield the same outcome and payout.

    Args:
        pick: Pick to grade
        game: the pick's Game (loaded from the pick when omitted)
        now: grading timestamp (defaults to the current UTC time)
        commit: commit the write; the sweep batches its own commit

    Returns:
        scoring.Grade stored on the pick

    Raises:
        GameNotCompletedError: the game has no final result yet
    """
    try:
        return _write_grade(pick, game, now, commit)
    except AlreadyGradedError as e:
        logger.debug(f"Pick {pick.id} already graded: {e.grade.outcome}")
        return e.grade


def _write_grade(pick, game, now, commit):
    """Write a grade once; AlreadyGradedError (with .grade) when one exists"""
    game = game or pick.game
    now = ensure_utc(now) if now is not None else get_utc_time()

    if pick.outcome is not None:
        raise AlreadyGradedError(grade=scoring.stored_grade(pick), pick_id=pick.id)

    grade = scoring.grade_pick(
        pick, game, payouts=scoring.payouts_from_config(current_app.config)
    )

    written = db.session.execute(
        update(Pick)
        .where(Pick.id == pick.id, Pick.outcome.is_(None))
        .values(
            outcome=grade.outcome,
            result=grade.result,
            points=grade.points,
            payout=grade.payout,
            graded_at=now,
        )
        .execution_options(synchronize_session=False)
    ).rowcount

    if not written:
        # Someone else graded it between our read and our write
        db.session.refresh(pick)
        raise AlreadyGradedError(grade=scoring.stored_grade(pick), pick_id=pick.id)

    if commit:
        db.session.commit()
    else:
        db.session.expire(pick)

    logger.debug(f"Graded pick {pick.id}: {grade.result}")
    return grade


def sweep(week_id=None, now=None):
    """
    Grade every ungraded pick of a submitted or locked pick set whose game
    is completed.

    Args:
        week_id: restrict to one week (WeekId or 'YYYY-WN'), all weeks when None
        now: grading timestamp

    Returns:
        dict with counts: graded, pending (game not completed), already_graded
    """
    now = ensure_utc(now) if now is not None else get_utc_time()

    query = (
        Pick.query.join(PickSet, Pick.pick_set_id == PickSet.id)
        .join(Game, Pick.game_id == Game.id)
        .filter(PickSet.status != STATUS_DRAFT, Pick.outcome.is_(None))
    )
    if week_id is not None:
        week_id = WeekId.parse(week_id)
        query = query.filter(
            PickSet.season_year == week_id.year, PickSet.week_number == week_id.number
        )

    counts = {"graded": 0, "pending": 0, "already_graded": 0}
    graded_by_user = defaultdict(list)

    for pick in query.order_by(Pick.id).all():
        user_id = pick.pick_set.user_id
        try:
            _write_grade(pick, pick.game, now, commit=False)
        except GameNotCompletedError:
            counts["pending"] += 1
            continue
        except AlreadyGradedError:
            counts["already_graded"] += 1
            continue

        counts["graded"] += 1
        graded_by_user[user_id].append(pick)

    db.session.commit()

    if counts["graded"]:
        logger.info(
            f"Grading sweep{' for ' + str(week_id) if week_id else ''}: "
            f"{counts['graded']} graded, {counts['pending']} pending, "
            f"{counts['already_graded']} already graded"
        )
        invalidate_leaderboard_cache()

        from squadpicks.socketio_handlers import notify_grade_posted

        for user_id, picks in graded_by_user.items():
            notify_grade_posted(user_id, [pick.to_dict() for pick in picks])

    return counts
