from sqlalchemy import func, CheckConstraint
from screenhabit.extensions import db
from screenhabit.utils.helpers import utcnow, isoformat

PLATFORMS = ("mac", "windows", "linux")

class Download(db.Model):
    __tablename__ = "downloads"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    platform = db.Column(db.String(16), nullable=False, index=True)
    version = db.Column(db.String(32), nullable=False)
    ip_address = db.Column(db.String(64), nullable=True)
    downloaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("platform IN ('mac','windows','linux')", name="ck_downloads_platform"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "platform": self.platform,
            "version": self.version,
            "downloadedAt": isoformat(self.downloaded_at),
        }
