"""
Leaderboard Aggregator

Ranks users over graded picks for one week or for the season so far, either
globally (all active users) or within a squad. Pending picks never count;
users in scope without graded picks still appear with zero stats.
"""

import logging
from fractions import Fraction
from typing import NamedTuple, Optional

from flask import current_app

from squadpicks import db
from squadpicks.models import Pick, PickSet, SquadMember, User
from squadpicks.models.pick import OUTCOME_LOSS, OUTCOME_PUSH, OUTCOME_WIN
from squadpicks.models.pick_set import STATUS_DRAFT
from squadpicks.utils.timezone_utils import ensure_utc, get_utc_time
from squadpicks.utils.week_window import WeekId, get_week_window

logger = logging.getLogger(__name__)

PERIOD_WEEK = "week"
PERIOD_SEASON = "season"

MEMBERSHIP_CURRENT = "current"
MEMBERSHIP_AT_PICK_TIME = "at_pick_time"
MEMBERSHIP_MODES = (MEMBERSHIP_CURRENT, MEMBERSHIP_AT_PICK_TIME)


class LeaderboardScope(NamedTuple):
    period: str
    week_id: Optional[WeekId] = None
    squad_id: Optional[int] = None
    membership: Optional[str] = None

    @classmethod
    def week(cls, week_id, squad_id=None, membership=None):
        return cls(PERIOD_WEEK, WeekId.parse(week_id), squad_id, membership)

    @classmethod
    def season(cls, squad_id=None, membership=None):
        return cls(PERIOD_SEASON, None, squad_id, membership)

    def describe(self):
        where = f"squad {self.squad_id}" if self.squad_id is not None else "global"
        when = str(self.week_id) if self.period == PERIOD_WEEK else "season"
        return f"{when}/{where}"


class LeaderboardEntry:
    """Standings row for one user"""

    def __init__(self, user):
        self.user_id = user.id
        self.username = user.username
        self.display_name = user.full_name
        self.wins = 0
        self.losses = 0
        self.pushes = 0
        self.points = 0.0
        self.payout = 0.0
        self.rank = None

    @property
    def graded_picks(self):
        return self.wins + self.losses + self.pushes

    @property
    def win_fraction(self):
        """Exact win percentage, used for ranking"""
        if not self.graded_picks:
            return Fraction(0)
        return (self.wins + Fraction(self.pushes, 2)) / self.graded_picks

    @property
    def win_percentage(self):
        return float(self.win_fraction)

    @property
    def sort_key(self):
        return (-self.win_fraction, -self.points, self.user_id)

    def add(self, pick):
        if pick.outcome == OUTCOME_WIN:
            self.wins += 1
        elif pick.outcome == OUTCOME_PUSH:
            self.pushes += 1
        elif pick.outcome == OUTCOME_LOSS:
            self.losses += 1
        self.points += pick.points or 0.0
        self.payout += pick.payout or 0.0

    def ties_with(self, other):
        return self.win_fraction == other.win_fraction and self.points == other.points

    def to_dict(self):
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "username": self.username,
            "display_name": self.display_name,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "points": self.points,
            "payout": self.payout,
            "graded_picks": self.graded_picks,
            "win_percentage": round(self.win_percentage, 4),
        }


def rank_entries(entries):
    """
    Sort by win percentage then points, both descending, and assign
    competition ranks (1, 1, 3). Tied users are listed by user id.
    """
    ordered = sorted(entries, key=lambda entry: entry.sort_key)
    for position, entry in enumerate(ordered, start=1):
        previous = ordered[position - 2] if position > 1 else None
        if previous is not None and entry.ties_with(previous):
            entry.rank = previous.rank
        else:
            entry.rank = position
    return ordered


def _membership_mode(scope):
    mode = scope.membership or current_app.config.get(
        "SQUAD_MEMBERSHIP_MODE", MEMBERSHIP_CURRENT
    )
    if mode not in MEMBERSHIP_MODES:
        raise ValueError(f"Unknown membership mode: {mode!r}")
    return mode


def _week_ids(scope, now):
    window = get_week_window()
    if scope.period == PERIOD_WEEK:
        if scope.week_id is None:
            raise ValueError("A week leaderboard needs a week id")
        return [scope.week_id]
    if scope.period == PERIOD_SEASON:
        return window.season_week_ids(up_to=window.current_week_id(now))
    raise ValueError(f"Unknown leaderboard period: {scope.period!r}")


def _users_in_scope(scope, mode):
    """
    Returns (users, memberships) where memberships maps user id to the
    SquadMember rows that gate which pick sets count (at_pick_time only).
    """
    query = User.query.filter(User.is_active.is_(True))

    if scope.squad_id is None:
        return query.order_by(User.id).all(), None

    members = SquadMember.query.filter(SquadMember.squad_id == scope.squad_id)
    if mode == MEMBERSHIP_CURRENT:
        members = members.filter(SquadMember.is_active.is_(True))
    members = members.all()

    memberships = {}
    for member in members:
        memberships.setdefault(member.user_id, []).append(member)

    if not memberships:
        return [], {}

    users = query.filter(User.id.in_(list(memberships))).order_by(User.id).all()
    return users, (memberships if mode == MEMBERSHIP_AT_PICK_TIME else None)


def _counts_for_membership(pick_set, memberships):
    """Whether the user was in the squad when this pick set was made"""
    instant = pick_set.submitted_at
    if instant is None:
        # Penalty sets are never submitted; judge them at the week's lock
        _, instant = get_week_window().week_bounds(pick_set.week_id)
    instant = ensure_utc(instant)
    return any(member.was_member_at(instant) for member in memberships)


def aggregate(scope, now=None):
    """
    Build ranked standings for a scope.

    Args:
        scope: LeaderboardScope
        now: reference instant that decides the current week for season scope

    Returns:
        list of LeaderboardEntry in display order
    """
    now = ensure_utc(now) if now is not None else get_utc_time()
    mode = _membership_mode(scope)
    week_ids = _week_ids(scope, now)

    users, memberships = _users_in_scope(scope, mode)
    entries = {user.id: LeaderboardEntry(user) for user in users}
    if not entries or not week_ids:
        return rank_entries(entries.values())

    season_year = week_ids[0].year
    rows = (
        db.session.query(Pick, PickSet)
        .join(PickSet, Pick.pick_set_id == PickSet.id)
        .filter(
            PickSet.user_id.in_(list(entries)),
            PickSet.status != STATUS_DRAFT,
            PickSet.season_year == season_year,
            PickSet.week_number.in_([week_id.number for week_id in week_ids]),
            Pick.outcome.isnot(None),
        )
        .all()
    )

    eligible = {}
    for pick, pick_set in rows:
        if memberships is not None:
            if pick_set.id not in eligible:
                eligible[pick_set.id] = _counts_for_membership(
                    pick_set, memberships[pick_set.user_id]
                )
            if not eligible[pick_set.id]:
                continue
        entries[pick_set.user_id].add(pick)

    ranked = rank_entries(entries.values())
    logger.debug(f"Leaderboard {scope.describe()}: {len(ranked)} users, {len(rows)} graded picks")
    return ranked
