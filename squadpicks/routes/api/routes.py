from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from squadpicks import db, limiter
from squadpicks.models import Game, PickSet, Squad, User
from squadpicks.routes.api import bp
from squadpicks.services import grading, leaderboard, locking, penalty, stats, submission
from squadpicks.utils import timezone_utils
from squadpicks.utils.cache_utils import cached_route
from squadpicks.utils.week_window import WeekId, get_week_window


def _bad_request(message):
    return jsonify({"error": "bad_request", "message": message}), 400


def _not_found(message):
    return jsonify({"error": "not_found", "message": message}), 404


def with_week_id(f):
    """Parse the <week_id> URL segment into a WeekId, 400 when malformed"""

    @wraps(f)
    def decorated_function(week_id, *args, **kwargs):
        try:
            week_id = WeekId.parse(week_id)
        except ValueError as e:
            return _bad_request(str(e))
        return f(week_id, *args, **kwargs)

    return decorated_function


def add_security_headers(f):
    """Keep per-user API responses out of shared caches"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = current_app.make_response(f(*args, **kwargs))
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return response

    return decorated_function


def _picks_payload():
    """The 'picks' list of a JSON body, or None when the body is malformed"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    picks = data.get("picks")
    if not isinstance(picks, list) or not all(isinstance(p, dict) for p in picks):
        return None
    return picks


@bp.route("/window")
@login_required
def window():
    """Current week and whether picks are open"""
    now = timezone_utils.get_utc_time()
    state = get_week_window().window_state(now)

    data = state.to_dict()
    data["server_time"] = now.isoformat()
    data["opens_at_local"] = timezone_utils.format_local_time(state.opens_at)
    data["locks_at_local"] = timezone_utils.format_local_time(state.locks_at)
    return jsonify(data)


@bp.route("/weeks/<week_id>/games")
@login_required
@with_week_id
def week_games(week_id):
    """Games of a week with the spread currently in effect"""
    now = timezone_utils.get_utc_time()
    preferred = current_app.config.get("PREFERRED_LINE_SOURCE")

    games = Game.get_games_for_week(week_id)
    return jsonify(
        {
            "week_id": str(week_id),
            "games": [
                game.to_dict(line=game.line_in_effect(now, preferred_source=preferred))
                for game in games
            ],
        }
    )


@bp.route("/picks/<week_id>", methods=["POST"])
@login_required
@limiter.limit(lambda: current_app.config.get("SUBMISSION_RATE_LIMIT", "30 per minute"))
@add_security_headers
@with_week_id
def submit(week_id):
    """Submit exactly three picks for a week"""
    picks = _picks_payload()
    if picks is None:
        return _bad_request("Body must be {'picks': [{'game_id': ..., 'choice': ...}]}")

    now = timezone_utils.get_utc_time()
    pick_set = submission.submit_picks(current_user.id, week_id, picks, now=now)
    return jsonify(pick_set.to_dict(get_week_window(), now)), 201


@bp.route("/picks/<week_id>/draft", methods=["PUT"])
@login_required
@limiter.limit(lambda: current_app.config.get("SUBMISSION_RATE_LIMIT", "30 per minute"))
@add_security_headers
@with_week_id
def save_draft(week_id):
    """Save up to three picks without submitting"""
    picks = _picks_payload()
    if picks is None:
        return _bad_request("Body must be {'picks': [{'game_id': ..., 'choice': ...}]}")

    now = timezone_utils.get_utc_time()
    pick_set = submission.save_draft(current_user.id, week_id, picks, now=now)
    return jsonify(pick_set.to_dict(get_week_window(), now))


@bp.route("/picks/<week_id>")
@login_required
@add_security_headers
@with_week_id
def user_picks(week_id):
    """The current user's pick set for a week"""
    pick_set = PickSet.for_user_week(current_user.id, week_id)
    if pick_set is None:
        return _not_found(f"No picks for {week_id}")

    now = timezone_utils.get_utc_time()
    return jsonify(pick_set.to_dict(get_week_window(), now))


@bp.route("/grading/sweep", methods=["POST"])
@login_required
def grading_sweep():
    """Grade every pick whose game is final (optionally ?week=YYYY-WN)"""
    week = request.args.get("week")
    try:
        week_id = WeekId.parse(week) if week else None
    except ValueError as e:
        return _bad_request(str(e))

    counts = grading.sweep(week_id, now=timezone_utils.get_utc_time())
    return jsonify(counts)


@bp.route("/locks/<week_id>", methods=["POST"])
@login_required
@with_week_id
def lock(week_id):
    """Lock submitted pick sets of a week whose lock anchor has passed"""
    try:
        locked = locking.lock_week(week_id, now=timezone_utils.get_utc_time())
    except ValueError as e:
        return _bad_request(str(e))
    return jsonify({"week_id": str(week_id), "locked": locked})


@bp.route("/penalties/<week_id>", methods=["POST"])
@login_required
@with_week_id
def backfill_week(week_id):
    """Apply the penalty rule to every eligible user for a finished week"""
    try:
        counts = penalty.backfill_week(week_id, now=timezone_utils.get_utc_time())
    except ValueError as e:
        return _bad_request(str(e))
    return jsonify(dict(week_id=str(week_id), **counts))


@bp.route("/penalties/<week_id>/<int:user_id>", methods=["POST"])
@login_required
@with_week_id
def backfill_user_week(week_id, user_id):
    """Record one user's missed week as 0-3"""
    target = db.session.get(User, user_id)
    if target is None or not target.is_active:
        return _not_found("User not found")

    pick_set = penalty.backfill_missing_week(
        user_id, week_id, now=timezone_utils.get_utc_time()
    )
    if pick_set is None:
        return jsonify({"week_id": str(week_id), "user_id": user_id, "created": False})
    return jsonify({"created": True, "pick_set": pick_set.to_dict()}), 201


@cached_route(timeout=300, key_prefix="leaderboard")
def _leaderboard_payload(scope):
    now = timezone_utils.get_utc_time()
    entries = leaderboard.aggregate(scope, now=now)
    return {
        "period": scope.period,
        "week_id": str(scope.week_id) if scope.week_id else None,
        "squad_id": scope.squad_id,
        "membership": scope.membership
        or current_app.config.get("SQUAD_MEMBERSHIP_MODE"),
        "leaderboard": [entry.to_dict() for entry in entries],
    }


@bp.route("/leaderboard")
@login_required
def standings():
    """
    Ranked standings

    Query args:
        period: week | season (default season)
        week: YYYY-WN for period=week (default: current week)
        squad_id: restrict to a squad the caller belongs to
        membership: current | at_pick_time
    """
    period = request.args.get("period", leaderboard.PERIOD_SEASON)
    squad_id = request.args.get("squad_id", type=int)
    membership = request.args.get("membership")

    if membership and membership not in leaderboard.MEMBERSHIP_MODES:
        return _bad_request(f"Unknown membership mode: {membership}")

    if squad_id is not None:
        squad = db.session.get(Squad, squad_id)
        if squad is None:
            return _not_found("Squad not found")
        if not squad.is_user_member(current_user.id):
            return jsonify({"error": "forbidden", "message": "Not a member of this squad"}), 403

    if period == leaderboard.PERIOD_WEEK:
        week = request.args.get("week")
        try:
            week_id = (
                WeekId.parse(week)
                if week
                else get_week_window().current_week_id(timezone_utils.get_utc_time())
            )
        except ValueError as e:
            return _bad_request(str(e))
        scope = leaderboard.LeaderboardScope.week(week_id, squad_id, membership)
    elif period == leaderboard.PERIOD_SEASON:
        scope = leaderboard.LeaderboardScope.season(squad_id, membership)
    else:
        return _bad_request(f"Unknown period: {period}")

    return jsonify(_leaderboard_payload(scope))


@bp.route("/stats/me")
@login_required
@add_security_headers
def my_stats():
    """Season statistics for the current user"""
    season_year = request.args.get(
        "season", current_app.config.get("SEASON_YEAR"), type=int
    )
    return jsonify(stats.user_season_stats(current_user.id, season_year))
