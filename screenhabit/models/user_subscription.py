from sqlalchemy import func, text
from screenhabit.extensions import db
from screenhabit.utils.helpers import utcnow

# Stripe statuses we mirror; anything else Stripe sends is stored verbatim
STATUS_TRIALING = "trialing"
STATUS_ACTIVE = "active"
STATUS_PAST_DUE = "past_due"
STATUS_CANCELED = "canceled"
STATUS_UNPAID = "unpaid"

class UserSubscription(db.Model):
    """
    One user's relationship to one plan over one Stripe subscription lifecycle.
    Rows are never deleted; the newest row per user is the current one.
    """
    __tablename__ = "user_subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("subscription_plans.id", ondelete="RESTRICT"), nullable=False, index=True)

    stripe_subscription_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    status = db.Column(db.String(32), nullable=False, index=True)
    current_period_start = db.Column(db.DateTime(timezone=True), nullable=False)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    trial_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False, server_default=text("false"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    user = db.relationship("User", back_populates="subscriptions")
    plan = db.relationship("SubscriptionPlan")

    @classmethod
    def current_for(cls, user_id: int):
        """Most recently created row for the user, or None."""
        return (
            cls.query.filter_by(user_id=user_id)
            .order_by(cls.created_at.desc(), cls.id.desc())
            .first()
        )

    def __repr__(self) -> str:
        return (
            f"<UserSubscription id={self.id} user_id={self.user_id} "
            f"stripe_subscription_id={self.stripe_subscription_id!r} status={self.status!r}>"
        )
