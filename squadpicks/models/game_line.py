from squadpicks import db


class GameLine(db.Model):
    """A spread snapshot for a game (home-team perspective, negative = home favored)"""

    __tablename__ = "game_lines"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)
    spread = db.Column(db.Float, nullable=False)
    source = db.Column(db.String(50), nullable=False)
    fetched_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (db.Index("idx_game_line_fetched", "game_id", "fetched_at"),)

    def __repr__(self):
        return f"<GameLine game_id={self.game_id} spread={self.spread} source={self.source}>"
