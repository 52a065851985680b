from sqlalchemy import func
from screenhabit.extensions import db
from screenhabit.utils.helpers import utcnow, isoformat

class UsageStat(db.Model):
    """Daily roll-up uploaded by the desktop app."""
    __tablename__ = "usage_stats"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True)
    session_duration = db.Column(db.Integer, nullable=True)  # minutes
    blink_count = db.Column(db.Integer, nullable=True)
    posture_alerts = db.Column(db.Integer, nullable=True)
    focus_sessions = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": isoformat(self.date),
            "sessionDuration": self.session_duration,
            "blinkCount": self.blink_count,
            "postureAlerts": self.posture_alerts,
            "focusSessions": self.focus_sessions,
        }
