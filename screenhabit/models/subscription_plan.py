from sqlalchemy import func, text
from sqlalchemy.dialects.postgresql import JSONB
from screenhabit.extensions import db
from screenhabit.utils.helpers import utcnow

class SubscriptionPlan(db.Model):
    __tablename__ = "subscription_plans"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False, unique=True)
    price = db.Column(db.Integer, nullable=False)  # minor currency units (cents)
    features = db.Column(db.JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=text("true"))

    # Null until the plan is provisioned on the Stripe side
    stripe_price_id = db.Column(db.String(64), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "features": list(self.features or []),
            "isActive": bool(self.is_active),
        }

    def __repr__(self) -> str:
        return f"<SubscriptionPlan id={self.id} name={self.name!r} price={self.price} active={self.is_active}>"
