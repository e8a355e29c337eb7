"""Tests for validating and recording weekly pick sets."""

import pytest

from conftest import DURING_WEEK1, DURING_WEEK2, WEEK1_LOCK, utc
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
from squadpicks.models import GameLine, Pick, PickSet
from squadpicks.services.submission import save_draft, submit_picks
from squadpicks.utils.timezone_utils import ensure_utc


@pytest.fixture
def user(make_user):
    return make_user("alice")


@pytest.fixture
def games(make_game):
    return [make_game(spread=-3.0), make_game(spread=6.5), make_game(spread=-1.0)]


def picks_for(games, choices=("home", "away", "home")):
    return [{"game_id": game.id, "choice": choice} for game, choice in zip(games, choices)]


class TestSubmitPicks:
    """Tests for accepted submissions."""

    def test_records_submitted_set(self, user, games):
        """Test a valid submission is stored as submitted with stamped spreads."""
        pick_set = submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK1)

        assert pick_set.status == "submitted"
        assert ensure_utc(pick_set.submitted_at) == DURING_WEEK1
        assert [p.spread_at_pick for p in pick_set.picks] == [-3.0, 6.5, -1.0]
        assert [p.choice for p in pick_set.picks] == ["home", "away", "home"]
        assert all(p.line_source == "odds-api-wednesday" for p in pick_set.picks)
        assert all(p.outcome is None for p in pick_set.picks)

    def test_preferred_source_wins_over_later_line(self, user, games):
        """Test the mid-week snapshot beats a later line from another source."""
        db.session.add(
            GameLine(game_id=games[0].id, spread=-4.0, source="odds-api",
                     fetched_at=utc(2025, 9, 5, 6))
        )
        db.session.commit()

        pick_set = submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK1)
        assert pick_set.picks[0].spread_at_pick == -3.0
        assert pick_set.picks[0].line_source == "odds-api-wednesday"

    def test_falls_back_to_latest_line(self, user, make_game):
        """Test the latest line is used when no preferred snapshot exists."""
        game = make_game(spread=-2.0, source="odds-api")
        db.session.add(
            GameLine(game_id=game.id, spread=-2.5, source="odds-api", fetched_at=utc(2025, 9, 5, 6))
        )
        db.session.commit()
        others = [make_game(), make_game()]

        pick_set = submit_picks(
            user.id, "2025-W1", picks_for([game] + others), now=DURING_WEEK1
        )
        assert pick_set.picks[0].spread_at_pick == -2.5

    def test_line_fetched_after_submission_is_ignored(self, user, games, make_game):
        """Test only lines fetched at or before the submission instant count."""
        late = make_game(spread=-7.0, fetched_at=utc(2025, 9, 5, 20))

        with pytest.raises(LineUnavailableError):
            submit_picks(user.id, "2025-W1", picks_for([late] + games[:2]), now=DURING_WEEK1)

    def test_spread_not_changed_by_new_lines(self, user, games):
        """Test later lines never touch the stamped spread."""
        pick_set = submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK1)
        db.session.add(
            GameLine(game_id=games[0].id, spread=-10.0, source="odds-api-wednesday",
                     fetched_at=utc(2025, 9, 6, 9))
        )
        db.session.commit()

        assert db.session.get(Pick, pick_set.picks[0].id).spread_at_pick == -3.0


class TestSubmissionRules:
    """Tests for each rejection, in check order."""

    def test_rejected_at_lock_instant(self, user, games):
        """Test a submission at exactly the lock anchor is rejected."""
        with pytest.raises(LockedWindowError):
            submit_picks(user.id, "2025-W1", picks_for(games), now=WEEK1_LOCK)
        assert PickSet.query.count() == 0

    def test_rejected_for_other_week(self, user, games):
        """Test picks for a week that is not open are rejected."""
        with pytest.raises(LockedWindowError):
            submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK2)

    def test_wrong_count(self, user, games):
        """Test two picks are rejected."""
        with pytest.raises(InvalidPickCountError):
            submit_picks(user.id, "2025-W1", picks_for(games[:2]), now=DURING_WEEK1)

    def test_window_checked_before_count(self, user, games):
        """Test a locked window is reported before a bad count."""
        with pytest.raises(LockedWindowError):
            submit_picks(user.id, "2025-W1", picks_for(games[:1]), now=WEEK1_LOCK)

    def test_duplicate_game(self, user, games):
        """Test the same game twice is rejected."""
        picks = picks_for([games[0], games[0], games[1]])
        with pytest.raises(DuplicateGameError):
            submit_picks(user.id, "2025-W1", picks, now=DURING_WEEK1)

    def test_invalid_choice(self, user, games):
        """Test a choice other than home/away is rejected."""
        with pytest.raises(InvalidChoiceError):
            submit_picks(
                user.id, "2025-W1", picks_for(games, ("home", "over", "away")), now=DURING_WEEK1
            )

    def test_unknown_game(self, user, games):
        """Test an unknown game id is rejected."""
        picks = picks_for(games[:2]) + [{"game_id": 9999, "choice": "home"}]
        with pytest.raises(GameNotFoundError):
            submit_picks(user.id, "2025-W1", picks, now=DURING_WEEK1)

    def test_week_mismatch(self, user, games, make_game):
        """Test a game from another week is rejected."""
        week2_game = make_game(week=2)
        with pytest.raises(WeekMismatchError):
            submit_picks(
                user.id, "2025-W1", picks_for(games[:2] + [week2_game]), now=DURING_WEEK1
            )

    def test_already_submitted(self, user, games):
        """Test a second submission for the same week is rejected."""
        submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK1)

        with pytest.raises(AlreadySubmittedError):
            submit_picks(user.id, "2025-W1", picks_for(games, ("away",) * 3), now=DURING_WEEK1)

        pick_set = PickSet.for_user_week(user.id, "2025-W1")
        assert [p.choice for p in pick_set.picks] == ["home", "away", "home"]

    def test_missing_line(self, user, games, make_game):
        """Test a game without any line is rejected."""
        no_line = make_game(spread=None)
        with pytest.raises(LineUnavailableError):
            submit_picks(user.id, "2025-W1", picks_for(games[:2] + [no_line]), now=DURING_WEEK1)

    def test_malformed_week_id(self, user, games):
        """Test a malformed week id raises ValueError."""
        with pytest.raises(ValueError):
            submit_picks(user.id, "week one", picks_for(games), now=DURING_WEEK1)


class TestDrafts:
    """Tests for saving drafts before submission."""

    def test_save_partial_draft(self, user, games):
        """Test a draft can hold fewer than three picks."""
        draft = save_draft(user.id, "2025-W1", picks_for(games[:1]), now=DURING_WEEK1)
        assert draft.status == "draft"
        assert draft.submitted_at is None
        assert len(draft.picks) == 1

    def test_draft_limit(self, user, games, make_game):
        """Test a draft cannot hold more than three picks."""
        picks = picks_for(games + [make_game()], ("home",) * 4)
        with pytest.raises(InvalidPickCountError):
            save_draft(user.id, "2025-W1", picks, now=DURING_WEEK1)

    def test_submit_replaces_draft_picks(self, user, games):
        """Test submitting over a draft replaces every draft pick."""
        save_draft(user.id, "2025-W1", picks_for(games[:2], ("away", "away")), now=DURING_WEEK1)

        pick_set = submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK1)

        assert pick_set.status == "submitted"
        assert [p.choice for p in pick_set.picks] == ["home", "away", "home"]
        assert Pick.query.filter_by(pick_set_id=pick_set.id).count() == 3
        assert PickSet.query.count() == 1

    def test_draft_rejected_after_submission(self, user, games):
        """Test a submitted set cannot go back to draft."""
        submit_picks(user.id, "2025-W1", picks_for(games), now=DURING_WEEK1)
        with pytest.raises(AlreadySubmittedError):
            save_draft(user.id, "2025-W1", picks_for(games[:1]), now=DURING_WEEK1)

    def test_draft_requires_open_window(self, user, games):
        """Test drafts follow the pick window too."""
        with pytest.raises(LockedWindowError):
            save_draft(user.id, "2025-W1", picks_for(games[:1]), now=WEEK1_LOCK)

