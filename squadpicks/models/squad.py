from datetime import datetime, timezone

from squadpicks import db


class Squad(db.Model):
    __tablename__ = "squads"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    members = db.relationship(
        "SquadMember", backref="squad", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (db.Index("idx_squad_active", "is_active"),)

    def __repr__(self):
        return f"<Squad {self.name}>"

    def is_user_member(self, user_id):
        """Check if user is an active member"""
        return (
            self.members.filter_by(user_id=user_id, is_active=True).first() is not None
        )

    def add_member(self, user_id):
        """Add a user to the squad; a rejoin opens a new membership stint"""
        from .squad_member import SquadMember

        existing = self.members.filter_by(user_id=user_id, is_active=True).first()
        if existing:
            return existing

        membership = SquadMember(user_id=user_id, squad_id=self.id)
        db.session.add(membership)
        return membership

    def remove_member(self, user_id):
        """Deactivate a user's membership; returns False if not a member"""
        member = self.members.filter_by(user_id=user_id, is_active=True).first()
        if not member:
            return False
        member.deactivate()
        return True
