from datetime import datetime, timezone

from squadpicks import db
from squadpicks.utils.timezone_utils import ensure_utc

CHOICES = ("home", "away")

OUTCOME_WIN = "win"
OUTCOME_LOSS = "loss"
OUTCOME_PUSH = "push"

PENALTY_LINE_SOURCE = "penalty"


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    pick_set_id = db.Column(db.Integer, db.ForeignKey("pick_sets.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Submission-time fields, never rewritten after creation
    choice = db.Column(db.String(4), nullable=False)
    spread_at_pick = db.Column(db.Float, nullable=False)
    line_source = db.Column(db.String(50), nullable=False)

    # Grading fields, written once when the game is completed
    outcome = db.Column(db.String(4))
    result = db.Column(db.String(255))
    points = db.Column(db.Float)
    payout = db.Column(db.Float)
    graded_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        db.UniqueConstraint("pick_set_id", "game_id", name="unique_pick_set_game"),
        db.Index("idx_pick_game_outcome", "game_id", "outcome"),
        db.CheckConstraint("choice IN ('home', 'away')", name="valid_choice"),
    )

    def __repr__(self):
        return f"<Pick game_id={self.game_id} {self.choice} spread={self.spread_at_pick}>"

    @property
    def is_penalty(self):
        return self.line_source == PENALTY_LINE_SOURCE

    def to_dict(self):
        graded_at = ensure_utc(self.graded_at)
        return {
            "id": self.id,
            "game_id": self.game_id,
            "choice": self.choice,
            "team": self.game.team_for(self.choice) if self.game else None,
            "spread_at_pick": self.spread_at_pick,
            "line_source": self.line_source,
            "outcome": self.outcome,
            "result": self.result,
            "points": self.points,
            "payout": self.payout,
            "graded_at": graded_at.isoformat() if graded_at else None,
        }
