from datetime import datetime, timezone

from sqlalchemy import text

from squadpicks import db
from squadpicks.utils.timezone_utils import ensure_utc


class SquadMember(db.Model):
    __tablename__ = "squad_members"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    squad_id = db.Column(db.Integer, db.ForeignKey("squads.id"), nullable=False)

    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    joined_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    left_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        # One open stint per user and squad; closed stints are kept as history
        db.Index(
            "uq_active_user_squad",
            "user_id",
            "squad_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        db.Index("idx_squad_members_active", "squad_id", "is_active"),
        db.Index("idx_user_squad_memberships", "user_id", "is_active"),
    )

    def __repr__(self):
        return f"<SquadMember user_id={self.user_id} squad_id={self.squad_id}>"

    def deactivate(self):
        """Deactivate membership"""
        self.is_active = False
        self.left_at = datetime.now(timezone.utc)

    def was_member_at(self, instant):
        """Whether the membership covered the given instant"""
        instant = ensure_utc(instant)
        joined = ensure_utc(self.joined_at)
        left = ensure_utc(self.left_at)

        if joined is not None and instant < joined:
            return False
        if left is not None and instant >= left:
            return False
        return True
