from typing import Dict, Any, Optional
import hashlib, json
import logging

from stripe import StripeClient

from screenhabit.billing.events import as_plain_dict
from screenhabit.billing.reconciler import SubscriptionReconciler
from screenhabit.billing.repositories import PlanRepository, UserDirectory
from screenhabit.billing.settings import BillingSettings
from screenhabit.errors import NotFoundError, PlanNotProvisionedError, PreconditionError
from screenhabit.models import User, UserSubscription

logger = logging.getLogger(__name__)


def stripe_client(settings: BillingSettings) -> StripeClient:
    if not settings.stripe_secret_key:
        raise RuntimeError("STRIPE_SECRET_KEY is not configured")
    return StripeClient(settings.stripe_secret_key)


def make_idempotency_key(kind: str, *parts: Any) -> str:
    raw = "|".join(str(p) for p in parts)
    return f"{kind}:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]

def _params_hash(d: Dict[str, Any]) -> str:
    # Stable across runs if params identical; changes when you change fields
    return hashlib.sha256(json.dumps(d, sort_keys=True, separators=(",", ":")).encode("utf-8")).hexdigest()[:16]


def retrieve_subscription(subscription_id: str, *, settings: BillingSettings) -> Dict[str, Any]:
    """Current Stripe subscription object as a plain dict."""
    sub = stripe_client(settings).subscriptions.retrieve(subscription_id)
    return as_plain_dict(sub)


def get_or_create_customer(user: User, *, settings: BillingSettings, users: Optional[UserDirectory] = None) -> str:
    """Return the user's Stripe customer id, creating the customer on first use."""
    if user.stripe_customer_id:
        return user.stripe_customer_id

    users = users or UserDirectory()
    params = {
        "email": user.email,
        "name": user.full_name or user.email,
        "metadata": {"user_id": str(user.id)},
    }
    customer = stripe_client(settings).customers.create(
        params=params,
        options={"idempotency_key": make_idempotency_key("customer", user.id, _params_hash(params))},
    )
    users.attach_stripe_customer(user, customer.id)
    logger.info("billing.customer.created", extra={"user_id": user.id, "stripe_customer_id": customer.id})
    return customer.id


def create_checkout_session(
    user_id,
    plan_id,
    success_url: str,
    cancel_url: str,
    *,
    settings: BillingSettings,
    plans: Optional[PlanRepository] = None,
    users: Optional[UserDirectory] = None,
) -> Dict[str, Any]:
    """
    Create a Stripe Checkout Session for a subscription to the given plan.
    Returns: {"id": <session_id>, "url": <redirect_url or None>}

    Subscription state is not written here; it arrives later through the
    webhook, correlated by the metadata set below.
    """
    plans = plans or PlanRepository()
    users = users or UserDirectory()

    user = users.get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    plan = plans.get(plan_id)
    if plan is None:
        raise NotFoundError("Plan not found")
    if not plan.stripe_price_id:
        raise PlanNotProvisionedError(f"Plan {plan.name!r} is not configured with Stripe")

    customer_id = get_or_create_customer(user, settings=settings, users=users)

    metadata = {"user_id": str(user.id), "plan_id": str(plan.id)}
    params: Dict[str, Any] = {
        "mode": "subscription",
        "customer": customer_id,
        "payment_method_types": ["card"],
        "line_items": [{"price": plan.stripe_price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        # Webhook context + trial
        "metadata": metadata,
        "subscription_data": {
            "trial_period_days": settings.trial_days,
            "metadata": metadata,
        },
    }
    idem = make_idempotency_key("checkout", user.id, plan.id, _params_hash(params))
    session = stripe_client(settings).checkout.sessions.create(params=params, options={"idempotency_key": idem})
    logger.info("billing.checkout.created", extra={"user_id": user.id, "plan_id": plan.id, "session_id": session.id})
    return {"id": session.id, "url": getattr(session, "url", None)}


def create_portal_session(user_id, return_url: str, *, settings: BillingSettings, users: Optional[UserDirectory] = None) -> str:
    """Create a Stripe Customer Portal session; returns its URL."""
    users = users or UserDirectory()
    user = users.get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not user.stripe_customer_id:
        raise PreconditionError("No billing profile for this user")

    session = stripe_client(settings).billing_portal.sessions.create(
        params={"customer": user.stripe_customer_id, "return_url": return_url},
    )
    return session.url


def set_cancel_at_period_end(user_id, cancel: bool, *, settings: BillingSettings) -> str:
    """
    Schedule (or undo) cancellation of the user's current subscription at period end.
    Only Stripe is changed; the follow-up `customer.subscription.updated` webhook
    brings the flag back into our table.
    """
    sub = UserSubscription.current_for(user_id)
    if sub is None or not sub.stripe_subscription_id:
        raise NotFoundError("No subscription found")

    stripe_client(settings).subscriptions.update(
        sub.stripe_subscription_id,
        params={"cancel_at_period_end": bool(cancel)},
    )
    logger.info(
        "billing.subscription.cancel_flag_requested",
        extra={"user_id": sub.user_id, "stripe_subscription_id": sub.stripe_subscription_id, "cancel": bool(cancel)},
    )
    return sub.stripe_subscription_id


def build_reconciler(settings: BillingSettings) -> SubscriptionReconciler:
    """Reconciler wired to re-fetch subscriptions from Stripe."""
    return SubscriptionReconciler(
        fetch_subscription=lambda sub_id: retrieve_subscription(sub_id, settings=settings),
    )
