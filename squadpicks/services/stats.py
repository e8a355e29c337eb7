"""
Personal statistics derived from a user's graded picks for a season
"""

import logging
from collections import Counter

from squadpicks import db
from squadpicks.models import Game, Pick, PickSet
from squadpicks.models.pick import OUTCOME_LOSS, OUTCOME_PUSH, OUTCOME_WIN
from squadpicks.models.pick_set import STATUS_DRAFT
from squadpicks.utils.week_window import WeekId

logger = logging.getLogger(__name__)

# (label, lower bound exclusive, upper bound inclusive) on the absolute spread
SPREAD_BUCKETS = (
    ("0-3", None, 3.0),
    ("3.5-7", 3.0, 7.0),
    ("7.5+", 7.0, None),
)

FAVORITE_TEAMS_LIMIT = 5


def _record():
    return {"wins": 0, "losses": 0, "pushes": 0, "points": 0.0}


def _tally(record, pick):
    if pick.outcome == OUTCOME_WIN:
        record["wins"] += 1
    elif pick.outcome == OUTCOME_LOSS:
        record["losses"] += 1
    elif pick.outcome == OUTCOME_PUSH:
        record["pushes"] += 1
    record["points"] += pick.points or 0.0


def win_percentage(record):
    """(wins + pushes/2) / graded picks, 0 when nothing is graded"""
    total = record["wins"] + record["losses"] + record["pushes"]
    if not total:
        return 0.0
    return round((record["wins"] + record["pushes"] / 2) / total, 4)


def _share(count, total):
    return round(count / total, 4) if total else 0.0


def spread_bucket(spread):
    value = abs(spread)
    for label, low, high in SPREAD_BUCKETS:
        if (low is None or value > low) and (high is None or value <= high):
            return label
    return SPREAD_BUCKETS[-1][0]


def picked_line(pick):
    """Spread from the picked side's perspective (negative = picked the favorite)"""
    return pick.spread_at_pick if pick.choice == "home" else -pick.spread_at_pick


def user_season_stats(user_id, season_year):
    """
    Season breakdown for one user.

    Penalty picks count toward totals and weekly records but not toward pick
    patterns, spread buckets or favorite teams, since the user never chose them.
    """
    rows = (
        db.session.query(Pick, PickSet, Game)
        .join(PickSet, Pick.pick_set_id == PickSet.id)
        .join(Game, Pick.game_id == Game.id)
        .filter(
            PickSet.user_id == user_id,
            PickSet.season_year == season_year,
            PickSet.status != STATUS_DRAFT,
            Pick.outcome.isnot(None),
        )
        .order_by(PickSet.week_number, Pick.id)
        .all()
    )

    totals = _record()
    weekly = {}
    buckets = {label: _record() for label, _, _ in SPREAD_BUCKETS}
    teams = Counter()
    team_records = {}
    chosen = 0
    home = away = favorite = underdog = 0

    for pick, pick_set, game in rows:
        _tally(totals, pick)
        _tally(weekly.setdefault(pick_set.week_number, _record()), pick)

        if pick.is_penalty:
            continue

        chosen += 1
        if pick.choice == "home":
            home += 1
        else:
            away += 1

        line = picked_line(pick)
        if line < 0:
            favorite += 1
        elif line > 0:
            underdog += 1

        _tally(buckets[spread_bucket(pick.spread_at_pick)], pick)

        team = game.team_for(pick.choice)
        teams[team] += 1
        _tally(team_records.setdefault(team, _record()), pick)

    weekly_performance = [
        dict(week_id=str(WeekId(season_year, number)), **record)
        for number, record in sorted(weekly.items())
    ]

    best_week = None
    for week in weekly_performance:
        # Strictly greater keeps the earliest week on a tie
        if best_week is None or week["points"] > best_week["points"]:
            best_week = week

    stats = {
        "user_id": user_id,
        "season_year": season_year,
        "total_picks": len(rows),
        "total_wins": totals["wins"],
        "total_losses": totals["losses"],
        "total_pushes": totals["pushes"],
        "total_points": totals["points"],
        "win_percentage": win_percentage(totals),
        "weekly_performance": weekly_performance,
        "best_week": best_week,
        "pick_patterns": {
            "home_rate": _share(home, chosen),
            "away_rate": _share(away, chosen),
            "favorite_rate": _share(favorite, chosen),
            "underdog_rate": _share(underdog, chosen),
        },
        "spread_performance": [
            dict(
                range=label,
                graded_picks=record["wins"] + record["losses"] + record["pushes"],
                win_percentage=win_percentage(record),
                **record,
            )
            for label, record in buckets.items()
        ],
        "favorite_teams": [
            dict(team=team, picks=count, win_percentage=win_percentage(team_records[team]))
            for team, count in sorted(teams.items(), key=lambda item: (-item[1], item[0]))[
                :FAVORITE_TEAMS_LIMIT
            ]
        ],
    }

    logger.debug(f"Computed season {season_year} stats for user {user_id}: {len(rows)} picks")
    return stats
