"""Thin lookups the billing code depends on; swapped for fakes in unit tests."""
from typing import List, Optional

from screenhabit.extensions import db
from screenhabit.models import SubscriptionPlan, User


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PlanRepository:
    def get(self, plan_id) -> Optional[SubscriptionPlan]:
        pk = _as_int(plan_id)
        return db.session.get(SubscriptionPlan, pk) if pk is not None else None

    def list_active(self) -> List[SubscriptionPlan]:
        return (
            SubscriptionPlan.query.filter_by(is_active=True)
            .order_by(SubscriptionPlan.price.asc(), SubscriptionPlan.id.asc())
            .all()
        )


class UserDirectory:
    def get(self, user_id) -> Optional[User]:
        pk = _as_int(user_id)
        return db.session.get(User, pk) if pk is not None else None

    def attach_stripe_customer(self, user: User, customer_id: str) -> None:
        user.stripe_customer_id = customer_id
        db.session.commit()
