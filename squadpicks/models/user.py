from datetime import datetime, timezone

from flask_login import UserMixin

from squadpicks import db


class User(UserMixin, db.Model):
    """A player as handed over by the identity provider (no credentials here)"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100))

    # Account status
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    pick_sets = db.relationship(
        "PickSet", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    squad_memberships = db.relationship(
        "SquadMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (db.Index("idx_user_active_status", "is_active"),)

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def full_name(self):
        """Return display name or username"""
        return self.display_name or self.username
