from datetime import datetime, timezone

from squadpicks import db
from squadpicks.utils.timezone_utils import ensure_utc
from squadpicks.utils.week_window import WeekId


class Game(db.Model):
    """A scheduled game. Written by the result feed only."""

    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Week identification
    season_year = db.Column(db.Integer, nullable=False)
    week_number = db.Column(db.Integer, nullable=False)

    # Teams
    home_team = db.Column(db.String(50), nullable=False)
    away_team = db.Column(db.String(50), nullable=False)

    # Game timing
    kickoff_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    completed = db.Column(db.Boolean, default=False, nullable=False)

    # External ID for the result feed
    external_id = db.Column(db.String(64), unique=True, index=True)

    # Timestamps
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    lines = db.relationship(
        "GameLine", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )
    picks = db.relationship("Pick", backref="game", lazy="dynamic")

    __table_args__ = (
        db.Index("idx_game_week", "season_year", "week_number"),
        db.Index("idx_game_kickoff", "kickoff_at"),
        db.CheckConstraint("home_team != away_team", name="different_teams"),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} {self.week_id}>"

    @property
    def week_id(self):
        return WeekId(self.season_year, self.week_number)

    @property
    def has_result(self):
        return (
            bool(self.completed)
            and self.home_score is not None
            and self.away_score is not None
        )

    @property
    def is_tie(self):
        """Check if game ended in a tie"""
        return self.has_result and self.home_score == self.away_score

    @property
    def losing_side(self):
        """'home' or 'away' for the side that lost outright (None if not final or tie)"""
        if not self.has_result or self.is_tie:
            return None
        return "home" if self.home_score < self.away_score else "away"

    def team_for(self, side):
        return self.home_team if side == "home" else self.away_team

    def line_in_effect(self, at, preferred_source=None):
        """
        The spread that applied at instant `at`.

        Latest line fetched at or before `at`; a line from `preferred_source`
        wins over other sources when one exists by then.
        """
        at = ensure_utc(at)
        candidates = [
            line for line in self.lines.all() if ensure_utc(line.fetched_at) <= at
        ]
        if not candidates:
            return None

        if preferred_source:
            preferred = [line for line in candidates if line.source == preferred_source]
            if preferred:
                candidates = preferred

        return max(candidates, key=lambda line: (ensure_utc(line.fetched_at), line.id))

    @staticmethod
    def get_games_for_week(week_id):
        week_id = WeekId.parse(week_id)
        return (
            Game.query.filter_by(season_year=week_id.year, week_number=week_id.number)
            .order_by(Game.kickoff_at, Game.id)
            .all()
        )

    def to_dict(self, line=None):
        data = {
            "id": self.id,
            "week_id": str(self.week_id),
            "home_team": self.home_team,
            "away_team": self.away_team,
            "kickoff_at": ensure_utc(self.kickoff_at).isoformat() if self.kickoff_at else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "completed": bool(self.completed),
        }
        if line is not None:
            data["spread"] = line.spread
            data["line_source"] = line.source
        return data
