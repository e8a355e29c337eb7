"""
Scoring Engine for Squad Picks

This module grades individual picks against the spread. It never touches the
database: persisting a grade (write-once) is done by
squadpicks.services.grading, and aggregation lives in
squadpicks.services.leaderboard.
"""

from typing import NamedTuple

from squadpicks.errors import GameNotCompletedError, InvalidChoiceError
from squadpicks.models.pick import CHOICES, OUTCOME_LOSS, OUTCOME_PUSH, OUTCOME_WIN

POINTS = {OUTCOME_WIN: 1.0, OUTCOME_PUSH: 0.5, OUTCOME_LOSS: 0.0}

DEFAULT_PAYOUTS = {OUTCOME_WIN: 1.0, OUTCOME_PUSH: 0.0, OUTCOME_LOSS: -1.0}


class Grade(NamedTuple):
    outcome: str
    result: str
    points: float
    payout: float
    adjusted_margin: float

    def to_dict(self):
        return {
            "outcome": self.outcome,
            "result": self.result,
            "points": self.points,
            "payout": self.payout,
            "adjusted_margin": self.adjusted_margin,
        }


def payouts_from_config(config):
    """Payout per outcome from application config"""
    return {
        OUTCOME_WIN: float(config.get("WIN_PAYOUT", DEFAULT_PAYOUTS[OUTCOME_WIN])),
        OUTCOME_PUSH: float(config.get("PUSH_PAYOUT", DEFAULT_PAYOUTS[OUTCOME_PUSH])),
        OUTCOME_LOSS: float(config.get("LOSS_PAYOUT", DEFAULT_PAYOUTS[OUTCOME_LOSS])),
    }


def adjusted_margin(home_score, away_score, spread_at_pick, choice):
    """
    Margin of the picked side after applying the spread.

    The spread is from the home team's perspective (home favored by 7 is -7),
    so an away pick sees the sign inverted.
    """
    if choice not in CHOICES:
        raise InvalidChoiceError(choice=choice)

    margin = (home_score - away_score) + spread_at_pick
    if choice == "away":
        margin = -margin
    # Normalise -0.0 so a push always reads as 0
    return margin if margin != 0 else 0.0


def outcome_for_margin(margin):
    if margin > 0:
        return OUTCOME_WIN
    if margin == 0:
        return OUTCOME_PUSH
    return OUTCOME_LOSS


def describe_result(
    home_score,
    away_score,
    spread_at_pick,
    choice,
    margin,
    outcome,
    home_team="Home",
    away_team="Away",
):
    """Human-readable annotation stored alongside the grade"""
    diff = home_score - away_score
    if diff > 0:
        game_result = f"{home_team} won {home_score}-{away_score} (by {diff})"
    elif diff < 0:
        game_result = f"{away_team} won {away_score}-{home_score} (by {-diff})"
    else:
        game_result = f"Game tied {home_score}-{away_score}"

    picked_team = home_team if choice == "home" else away_team
    picked_line = spread_at_pick if choice == "home" else -spread_at_pick
    line_text = "pick'em" if picked_line == 0 else f"{picked_line:+g}"

    return (
        f"{game_result}. Picked {picked_team} {line_text}. "
        f"Adjusted margin {margin:+g} ({outcome.upper()})"
    )


def grade_spread(
    home_score,
    away_score,
    spread_at_pick,
    choice,
    payouts=None,
    home_team="Home",
    away_team="Away",
):
    """
    Grade a pick from raw numbers.

    Returns:
        Grade with outcome win/push/loss, 1.0 / 0.5 / 0.0 points and the
        configured payout for that outcome.
    """
    payouts = payouts or DEFAULT_PAYOUTS
    margin = adjusted_margin(home_score, away_score, spread_at_pick, choice)
    outcome = outcome_for_margin(margin)

    return Grade(
        outcome=outcome,
        result=describe_result(
            home_score,
            away_score,
            spread_at_pick,
            choice,
            margin,
            outcome,
            home_team=home_team,
            away_team=away_team,
        ),
        points=POINTS[outcome],
        payout=payouts[outcome],
        adjusted_margin=margin,
    )


def grade_pick(pick, game, payouts=None):
    """
    Grade a pick against its game using the spread frozen at submission.

    Raises:
        GameNotCompletedError: the game has no final result yet
    """
    if not game.has_result:
        raise GameNotCompletedError(game_id=game.id)

    return grade_spread(
        game.home_score,
        game.away_score,
        pick.spread_at_pick,
        pick.choice,
        payouts=payouts,
        home_team=game.home_team,
        away_team=game.away_team,
    )


def stored_grade(pick):
    """The grade already written on a pick (None if ungraded)"""
    if pick.outcome is None:
        return None
    return Grade(
        outcome=pick.outcome,
        result=pick.result,
        points=pick.points,
        payout=pick.payout,
        adjusted_margin=None,
    )
