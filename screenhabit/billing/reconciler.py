"""
Mirror Stripe subscription state into `user_subscriptions`.

The reconciler only ever trusts Stripe's subscription object: lifecycle events
carry it, payment events make us re-fetch it. One subscription object maps to
exactly one row, keyed by the Stripe subscription id.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from screenhabit.errors import DataIntegrityError, MissingMetadataError
from screenhabit.extensions import db
from screenhabit.models import UserSubscription
from screenhabit.models.user_subscription import STATUS_TRIALING
from screenhabit.utils.helpers import utcnow
from .events import (
    BillingEvent,
    IgnoredEvent,
    InvoicePaymentOutcome,
    SubscriptionChanged,
)
from .repositories import PlanRepository, UserDirectory

logger = logging.getLogger(__name__)

SubscriptionFetcher = Callable[[str], Dict[str, Any]]


def to_datetime(value: Any, *, field: str = "timestamp") -> Optional[datetime]:
    """
    Unix seconds -> aware UTC datetime.
    Absent values (None, 0, "") give None quietly; anything else that does not
    convert gives None and a warning so bad upstream data stays visible.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, bool):
            raise TypeError("boolean is not a timestamp")
        seconds = int(value)
        if seconds == 0:
            return None
        if seconds < 0:
            raise ValueError("negative timestamp")
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        logger.warning(
            "billing.timestamp.malformed",
            extra={"field": field, "value": repr(value), "error": str(exc)},
        )
        return None


def _first_item(sub: Dict[str, Any]) -> Dict[str, Any]:
    items = (sub.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _period_value(sub: Dict[str, Any], name: str) -> Optional[datetime]:
    # Newer API versions carry the billing period on the subscription item
    if sub.get(name):
        return to_datetime(sub.get(name), field=name)
    item = _first_item(sub)
    if item.get(name):
        return to_datetime(item.get(name), field=f"items.{name}")
    return None


class SubscriptionReconciler:
    def __init__(
        self,
        *,
        fetch_subscription: SubscriptionFetcher,
        plans: Optional[PlanRepository] = None,
        users: Optional[UserDirectory] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.fetch_subscription = fetch_subscription
        self.plans = plans or PlanRepository()
        self.users = users or UserDirectory()
        self.now = now

    def dispatch(self, event: BillingEvent) -> Optional[UserSubscription]:
        if isinstance(event, SubscriptionChanged):
            return self.upsert(event.subscription)

        if isinstance(event, InvoicePaymentOutcome):
            if not event.subscription_id:
                logger.info("billing.invoice.no_subscription", extra={"event_id": event.event_id})
                return None
            return self.upsert(self.fetch_subscription(event.subscription_id))

        if isinstance(event, IgnoredEvent):
            logger.info("billing.webhook.ignored", extra={"event_id": event.event_id, "event_type": event.type})
            return None

        raise TypeError(f"Unsupported billing event: {event!r}")

    def upsert(self, sub: Dict[str, Any]) -> UserSubscription:
        """
        Create or update the row for one Stripe subscription object.
        Flushes but does not commit; the caller owns the transaction.
        """
        sub_id = sub.get("id")
        status = sub.get("status")
        meta = sub.get("metadata") or {}
        user_id, plan_id = meta.get("user_id"), meta.get("plan_id")

        if not user_id or not plan_id:
            logger.error("billing.subscription.missing_metadata", extra={"stripe_subscription_id": sub_id})
            raise MissingMetadataError(f"Subscription {sub_id} is missing user_id/plan_id metadata")
        if not sub_id or not status:
            raise DataIntegrityError("Subscription object is missing id or status")

        user = self.users.get(user_id)
        if user is None:
            raise DataIntegrityError(f"Subscription {sub_id} references unknown user {user_id}")
        plan = self.plans.get(plan_id)
        if plan is None:
            raise DataIntegrityError(f"Subscription {sub_id} references unknown plan {plan_id}")

        now = self.now()
        trial_end = to_datetime(sub.get("trial_end"), field="trial_end")
        period_start = _period_value(sub, "current_period_start")
        period_end = _period_value(sub, "current_period_end")
        if period_end is None and status == STATUS_TRIALING:
            period_end = trial_end

        fields = {
            "status": status,
            "current_period_start": period_start or now,
            "current_period_end": period_end or now,
            "trial_end": trial_end,
            "cancel_at_period_end": bool(sub.get("cancel_at_period_end")),
        }

        row = UserSubscription.query.filter_by(stripe_subscription_id=sub_id).first()
        if row is not None:
            for key, value in fields.items():
                setattr(row, key, value)
            logger.info(
                "billing.subscription.updated",
                extra={"subscription_id": row.id, "stripe_subscription_id": sub_id, "status": status},
            )
        else:
            row = UserSubscription(
                user_id=user.id,
                plan_id=plan.id,
                stripe_subscription_id=sub_id,
                **fields,
            )
            db.session.add(row)
            logger.info(
                "billing.subscription.created",
                extra={"user_id": user.id, "plan_id": plan.id, "stripe_subscription_id": sub_id, "status": status},
            )

        db.session.flush()
        return row
