from flask import Blueprint, request, current_app, jsonify
from flask_login import login_required, current_user
import stripe
from screenhabit.extensions import limiter
from screenhabit.billing.repositories import PlanRepository
from screenhabit.billing.settings import BillingSettings
from screenhabit.billing.status import is_active, is_on_trial
from screenhabit.errors import ConflictError, ExternalServiceError, ValidationError
from screenhabit.models import UserSubscription
from screenhabit.services import billing as billing_service
from screenhabit.utils.helpers import isoformat, success_response

billing_bp = Blueprint("billing", __name__)


def _settings() -> BillingSettings:
    return BillingSettings.from_config(current_app.config)


def _processor_error(event: str, e: Exception, **extra) -> ExternalServiceError:
    # Log the real error; the client only gets Stripe's user-facing message if any
    current_app.logger.exception(event, extra={"user_id": current_user.id, **extra})
    return ExternalServiceError(getattr(e, "user_message", None) or "Payment processor request failed")


def serialize_subscription(sub: UserSubscription) -> dict:
    return {
        "id": sub.id,
        "status": sub.status,
        "currentPeriodStart": isoformat(sub.current_period_start),
        "currentPeriodEnd": isoformat(sub.current_period_end),
        "trialEnd": isoformat(sub.trial_end),
        "cancelAtPeriodEnd": bool(sub.cancel_at_period_end),
        "isOnTrial": is_on_trial(sub),
        "isActive": is_active(sub),
    }


@billing_bp.get("/subscription-plans")
def subscription_plans():
    plans = [p.to_dict() for p in PlanRepository().list_active()]
    return jsonify(success_response(plans, "Subscription plans fetched successfully"))


@billing_bp.post("/create-checkout-session")
@limiter.limit("10/minute")
@login_required
def create_checkout_session():
    data = request.get_json(silent=True) or {}
    plan_id = data.get("planId")
    if not plan_id:
        raise ValidationError("Plan ID is required")

    # Block duplicate purchases if already active/trialing
    if is_active(UserSubscription.current_for(current_user.id)):
        raise ConflictError("Subscription already active")

    settings = _settings()
    try:
        session = billing_service.create_checkout_session(
            current_user.id,
            plan_id,
            settings.checkout_success_url,
            settings.checkout_cancel_url,
            settings=settings,
        )
    except stripe.StripeError as e:
        raise _processor_error("billing.checkout.session_create_failed", e, plan_id=plan_id) from e

    return jsonify(success_response(
        {"sessionId": session["id"], "url": session["url"]},
        "Checkout session created successfully",
    ))


@billing_bp.post("/create-portal-session")
@limiter.limit("10/minute")
@login_required
def create_portal_session():
    settings = _settings()
    try:
        url = billing_service.create_portal_session(current_user.id, settings.portal_return_url, settings=settings)
    except stripe.StripeError as e:
        raise _processor_error("billing.portal.session_create_failed", e) from e
    return jsonify(success_response({"url": url}, "Portal session created successfully"))


@billing_bp.get("/subscription")
@login_required
def subscription_status():
    sub = UserSubscription.current_for(current_user.id)
    if sub is None:
        return jsonify(success_response({"hasSubscription": False}, "No subscription found"))
    return jsonify(success_response(
        {"hasSubscription": True, "subscription": serialize_subscription(sub)},
        "Subscription fetched successfully",
    ))


def _set_cancel_flag(cancel: bool, message: str):
    try:
        billing_service.set_cancel_at_period_end(current_user.id, cancel, settings=_settings())
    except stripe.StripeError as e:
        raise _processor_error("billing.subscription.cancel_flag_failed", e, cancel=cancel) from e
    # Local row changes when Stripe's subscription.updated webhook arrives
    return jsonify(success_response({"cancelAtPeriodEnd": cancel}, message))


@billing_bp.post("/subscription/cancel")
@limiter.limit("10/minute")
@login_required
def cancel_subscription():
    return _set_cancel_flag(True, "Subscription will cancel at the end of the billing period")


@billing_bp.post("/subscription/reactivate")
@limiter.limit("10/minute")
@login_required
def reactivate_subscription():
    return _set_cancel_flag(False, "Subscription reactivated")
