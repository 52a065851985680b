from sqlalchemy import func, text
from sqlalchemy.dialects.postgresql import JSONB
from screenhabit.extensions import db
from screenhabit.utils.helpers import utcnow

class WebhookEvent(db.Model):
    """Append-only ledger of Stripe deliveries. The unique event id is the idempotency key."""
    __tablename__ = "webhook_events"

    id = db.Column(db.Integer, primary_key=True)
    stripe_event_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    event_type = db.Column(db.String(80), nullable=False, index=True)
    payload = db.Column(db.JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    processed = db.Column(db.Boolean, nullable=False, default=False, server_default=text("false"), index=True)
    retries = db.Column(db.Integer, nullable=False, default=0, server_default=text("0"))
    notes = db.Column(db.String(255), nullable=True)

    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    def __repr__(self) -> str:
        return f"<WebhookEvent id={self.id} stripe_event_id={self.stripe_event_id!r} type={self.event_type!r} processed={self.processed}>"
