"""Tests for writing grades and the grading sweep."""

import pytest
from sqlalchemy import update

from conftest import AFTER_WEEK1_LOCK, DURING_WEEK1, DURING_WEEK2
from squadpicks import db
from squadpicks.errors import GameNotCompletedError
from squadpicks.models import Pick
from squadpicks.services import grading
from squadpicks.services.submission import save_draft, submit_picks
from squadpicks.utils.timezone_utils import ensure_utc


@pytest.fixture
def games(make_game):
    return [make_game(spread=-3.0), make_game(spread=6.5), make_game(spread=-1.0)]


@pytest.fixture
def submitted(make_user, games):
    user = make_user("alice")
    picks = [
        {"game_id": games[0].id, "choice": "home"},
        {"game_id": games[1].id, "choice": "away"},
        {"game_id": games[2].id, "choice": "home"},
    ]
    return submit_picks(user.id, "2025-W1", picks, now=DURING_WEEK1)


class TestGradePick:
    """Tests for grading a single pick."""

    def test_writes_grade(self, submitted, games, finish_game):
        """Test a completed game writes outcome, points, payout and result text."""
        finish_game(games[0], 24, 20)
        pick = submitted.picks[0]

        grade = grading.grade_pick(pick, now=AFTER_WEEK1_LOCK)

        assert grade.outcome == "win"
        stored = db.session.get(Pick, pick.id)
        assert stored.outcome == "win"
        assert stored.points == 1.0
        assert stored.payout == 1.0
        assert stored.result.endswith("Adjusted margin +1 (WIN)")
        assert stored.graded_at is not None

    def test_grading_twice_returns_stored_grade(self, submitted, games, finish_game):
        """Test regrading is a no-op that returns the first grade."""
        finish_game(games[0], 24, 20)
        pick = submitted.picks[0]
        first = grading.grade_pick(pick, now=AFTER_WEEK1_LOCK)

        # A corrected score must not change a stored grade
        finish_game(games[0], 20, 24)
        second = grading.grade_pick(pick, now=DURING_WEEK2)

        assert (second.outcome, second.payout) == (first.outcome, first.payout)
        stored = db.session.get(Pick, pick.id)
        assert stored.payout == 1.0
        assert ensure_utc(stored.graded_at) == AFTER_WEEK1_LOCK

    def test_concurrent_grade_is_not_overwritten(self, submitted, games, finish_game):
        """Test a grade written between read and write is kept and returned."""
        finish_game(games[0], 24, 20)
        pick = submitted.picks[0]

        # Another grader gets there first without this session noticing
        db.session.execute(
            update(Pick)
            .where(Pick.id == pick.id)
            .values(outcome="push", result="other grader", points=0.5, payout=0.0)
            .execution_options(synchronize_session=False)
        )

        grade = grading.grade_pick(pick, games[0], now=AFTER_WEEK1_LOCK)

        assert grade.outcome == "push"
        assert db.session.get(Pick, pick.id).result == "other grader"

    def test_sweep_counts_grades_lost_to_a_race(
        self, submitted, games, finish_game, monkeypatch
    ):
        """Test the sweep counts a pick graded elsewhere as already graded."""
        for game in games:
            finish_game(game, 24, 20)
        write_grade = grading._write_grade

        def racing_write(pick, game, now, commit):
            if pick.id == submitted.picks[0].id:
                db.session.execute(
                    update(Pick)
                    .where(Pick.id == pick.id)
                    .values(outcome="push", result="other grader", points=0.5, payout=0.0)
                    .execution_options(synchronize_session=False)
                )
            return write_grade(pick, game, now, commit)

        monkeypatch.setattr(grading, "_write_grade", racing_write)

        counts = grading.sweep(now=AFTER_WEEK1_LOCK)

        assert counts == {"graded": 2, "pending": 0, "already_graded": 1}

    def test_game_not_completed(self, submitted):
        """Test an unfinished game leaves the pick ungraded."""
        pick = submitted.picks[0]
        with pytest.raises(GameNotCompletedError):
            grading.grade_pick(pick, now=AFTER_WEEK1_LOCK)
        assert db.session.get(Pick, pick.id).outcome is None

    def test_spread_at_pick_unchanged(self, submitted, games, finish_game):
        """Test grading never rewrites the stamped spread."""
        finish_game(games[1], 20, 10)
        pick = submitted.picks[1]
        grading.grade_pick(pick, now=AFTER_WEEK1_LOCK)

        stored = db.session.get(Pick, pick.id)
        assert stored.spread_at_pick == 6.5
        assert stored.choice == "away"
        # Home underdog +6.5 won outright, so the away pick loses
        assert stored.outcome == "loss"
        assert stored.payout == -1.0


class TestSweep:
    """Tests for the periodic grading sweep."""

    def test_counts_graded_and_pending(self, submitted, games, finish_game):
        """Test only picks on completed games are graded."""
        finish_game(games[0], 24, 20)
        finish_game(games[1], 17, 17)

        counts = grading.sweep(now=AFTER_WEEK1_LOCK)

        assert counts == {"graded": 2, "pending": 1, "already_graded": 0}
        outcomes = [db.session.get(Pick, p.id).outcome for p in submitted.picks]
        assert outcomes == ["win", "loss", None]

    def test_second_sweep_grades_nothing(self, submitted, games, finish_game):
        """Test a repeated sweep leaves stored grades alone."""
        for game in games:
            finish_game(game, 30, 10)

        assert grading.sweep(now=AFTER_WEEK1_LOCK)["graded"] == 3
        payouts = [db.session.get(Pick, p.id).payout for p in submitted.picks]

        assert grading.sweep(now=DURING_WEEK2) == {
            "graded": 0,
            "pending": 0,
            "already_graded": 0,
        }
        assert [db.session.get(Pick, p.id).payout for p in submitted.picks] == payouts

    def test_drafts_are_not_graded(self, make_user, games, finish_game):
        """Test picks in a draft set stay ungraded."""
        user = make_user("bob")
        draft = save_draft(
            user.id, "2025-W1", [{"game_id": games[0].id, "choice": "home"}], now=DURING_WEEK1
        )
        finish_game(games[0], 24, 20)

        counts = grading.sweep(now=AFTER_WEEK1_LOCK)

        assert counts["graded"] == 0
        assert db.session.get(Pick, draft.picks[0].id).outcome is None

    def test_week_filter(self, submitted, games, finish_game, make_game, make_user):
        """Test a week-restricted sweep ignores other weeks."""
        for game in games:
            finish_game(game, 24, 20)
        week2_game = make_game(week=2)
        finish_game(week2_game, 24, 20)

        assert grading.sweep(week_id="2025-W2", now=AFTER_WEEK1_LOCK)["graded"] == 0
        assert grading.sweep(week_id="2025-W1", now=AFTER_WEEK1_LOCK)["graded"] == 3

    def test_sweep_grades_every_user(self, submitted, games, finish_game, make_user):
        """Test the sweep covers all users' pick sets."""
        other = make_user("carol")
        submit_picks(
            other.id,
            "2025-W1",
            [{"game_id": game.id, "choice": "away"} for game in games],
            now=DURING_WEEK1,
        )
        for game in games:
            finish_game(game, 24, 20)

        assert grading.sweep(now=AFTER_WEEK1_LOCK)["graded"] == 6
        assert Pick.query.filter(Pick.outcome.is_(None)).count() == 0
