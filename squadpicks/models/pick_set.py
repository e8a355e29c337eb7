from datetime import datetime, timezone

from squadpicks import db
from squadpicks.utils.timezone_utils import ensure_utc
from squadpicks.utils.week_window import WeekId

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
STATUS_LOCKED = "locked"


class PickSet(db.Model):
    """One user's bundle of picks for one week"""

    __tablename__ = "pick_sets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    season_year = db.Column(db.Integer, nullable=False)
    week_number = db.Column(db.Integer, nullable=False)

    # draft -> submitted -> locked
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    is_penalty = db.Column(db.Boolean, nullable=False, default=False)

    submitted_at = db.Column(db.DateTime(timezone=True))
    locked_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    picks = db.relationship(
        "Pick",
        backref="pick_set",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Pick.id",
    )

    # One pick set per (user, week); the storage layer settles submission races
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "season_year", "week_number", name="unique_user_week_pick_set"
        ),
        db.Index("idx_pick_set_week_status", "season_year", "week_number", "status"),
    )

    def __repr__(self):
        return f"<PickSet user_id={self.user_id} {self.week_id} {self.status}>"

    @property
    def week_id(self):
        return WeekId(self.season_year, self.week_number)

    def effective_status(self, window, now):
        """Status with the lock transition applied lazily on read"""
        if self.status == STATUS_SUBMITTED and window.is_week_locked(self.week_id, now):
            return STATUS_LOCKED
        return self.status

    @staticmethod
    def for_user_week(user_id, week_id):
        week_id = WeekId.parse(week_id)
        return PickSet.query.filter_by(
            user_id=user_id, season_year=week_id.year, week_number=week_id.number
        ).first()

    def to_dict(self, window=None, now=None):
        status = self.status
        if window is not None and now is not None:
            status = self.effective_status(window, now)

        submitted_at = ensure_utc(self.submitted_at)
        locked_at = ensure_utc(self.locked_at)
        return {
            "id": self.id,
            "user_id": self.user_id,
            "week_id": str(self.week_id),
            "status": status,
            "is_penalty": bool(self.is_penalty),
            "submitted_at": submitted_at.isoformat() if submitted_at else None,
            "locked_at": locked_at.isoformat() if locked_at else None,
            "picks": [pick.to_dict() for pick in self.picks],
        }
