"""Shared fixtures: a testing app on in-memory SQLite plus model factories."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from squadpicks import create_app, db
from squadpicks.models import Game, GameLine, Pick, PickSet, Squad, User
from squadpicks.models.pick_set import STATUS_SUBMITTED
from squadpicks.utils.scoring import DEFAULT_PAYOUTS, POINTS


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# Week 1 of 2025 opens Friday 2025-09-05 05:00 Irish Summer Time (04:00 UTC)
# and locks Saturday 2025-09-06 12:00 IST (11:00 UTC).
WEEK1_OPEN = utc(2025, 9, 5, 4)
WEEK1_LOCK = utc(2025, 9, 6, 11)
DURING_WEEK1 = utc(2025, 9, 5, 12)
AFTER_WEEK1_LOCK = utc(2025, 9, 8, 12)
DURING_WEEK2 = utc(2025, 9, 12, 12)
LINE_FETCHED = utc(2025, 9, 3, 12)
ACCOUNT_CREATED = utc(2025, 8, 1)

IDENTITY_HEADER = "X-Authenticated-User"


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {IDENTITY_HEADER: str(user.id)}

    return _headers


@pytest.fixture
def freeze_time(monkeypatch):
    """Pin the clock the API routes read"""
    from squadpicks.utils import timezone_utils

    def _freeze(instant):
        monkeypatch.setattr(timezone_utils, "get_utc_time", lambda: instant)

    return _freeze


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(username=None, created_at=ACCOUNT_CREATED, is_active=True):
        user = User(
            username=username or f"user{next(counter)}",
            created_at=created_at,
            is_active=is_active,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_game(app):
    counter = itertools.count(1)

    def _make(
        week=1,
        spread=-3.0,
        source="odds-api-wednesday",
        fetched_at=LINE_FETCHED,
        kickoff=None,
        home_team=None,
        away_team=None,
    ):
        n = next(counter)
        game = Game(
            season_year=2025,
            week_number=week,
            home_team=home_team or f"Home{n}",
            away_team=away_team or f"Away{n}",
            kickoff_at=kickoff or utc(2025, 9, 7, 17) + timedelta(weeks=week - 1, minutes=n),
        )
        db.session.add(game)
        db.session.flush()

        if spread is not None:
            db.session.add(
                GameLine(game_id=game.id, spread=spread, source=source, fetched_at=fetched_at)
            )

        db.session.commit()
        return game

    return _make


@pytest.fixture
def finish_game(app):
    def _finish(game, home_score, away_score):
        game.home_score = home_score
        game.away_score = away_score
        game.completed = True
        db.session.commit()
        return game

    return _finish


@pytest.fixture
def make_squad(app):
    def _make(name="Squad", members=()):
        squad = Squad(name=name)
        db.session.add(squad)
        db.session.flush()
        for user in members:
            squad.add_member(user.id)
        db.session.commit()
        return squad

    return _make


@pytest.fixture
def make_graded_set(app, make_game):
    """
    Insert a pick set whose picks already carry the given outcomes
    ('win' / 'loss' / 'push'), one new game per pick.
    """

    def _make(user, outcomes, week=1, submitted_at=DURING_WEEK1, status=STATUS_SUBMITTED):
        pick_set = PickSet(
            user_id=user.id,
            season_year=2025,
            week_number=week,
            status=status,
            submitted_at=submitted_at,
        )
        for outcome in outcomes:
            game = make_game(week=week)
            pick_set.picks.append(
                Pick(
                    game_id=game.id,
                    choice="home",
                    spread_at_pick=-3.0,
                    line_source="odds-api-wednesday",
                    outcome=outcome,
                    result=f"test {outcome}",
                    points=POINTS[outcome] if outcome else None,
                    payout=DEFAULT_PAYOUTS[outcome] if outcome else None,
                    graded_at=AFTER_WEEK1_LOCK if outcome else None,
                )
            )
        db.session.add(pick_set)
        db.session.commit()
        return pick_set

    return _make
