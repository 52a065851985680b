from flask import request, jsonify, abort, current_app
import stripe
from . import bp
from screenhabit.extensions import csrf, limiter
from screenhabit.billing.events import MalformedEventError, as_plain_dict
from screenhabit.billing.ledger import process_event
from screenhabit.billing.settings import BillingSettings
from screenhabit.errors import InvalidSignatureError, ValidationError
from screenhabit.services import billing as billing_service
from screenhabit.utils.helpers import success_response

# ----- Stripe Webhook (subscriptions lifecycle) -----
@csrf.exempt
@limiter.exempt
@bp.post("/stripe")
def stripe_webhook():
    """
    Stripe -> /api/webhooks/stripe
    Verifies the signature, then hands the event to the ledger/reconciler.
    Any handler error propagates as a 5xx so Stripe redelivers later.
    """
    settings = BillingSettings.from_config(current_app.config)
    if not settings.webhook_secret:
        abort(500, description="Stripe webhook secret not configured")

    raw_bytes = request.get_data(cache=False, as_text=False)
    sig_header = request.headers.get("Stripe-Signature")
    if not sig_header:
        raise InvalidSignatureError("Missing Stripe-Signature header")

    # Verify against the raw body; nothing is persisted for rejected deliveries
    try:
        event = stripe.Webhook.construct_event(
            payload=raw_bytes.decode("utf-8"),
            sig_header=sig_header,
            secret=settings.webhook_secret,
        )
    except (stripe.SignatureVerificationError, ValueError) as e:
        current_app.logger.warning("billing.webhook.signature_invalid", extra={"error": str(e)})
        raise InvalidSignatureError() from e

    try:
        outcome = process_event(as_plain_dict(event), billing_service.build_reconciler(settings))
    except MalformedEventError as e:
        raise ValidationError(str(e)) from e

    data = {"received": True}
    if outcome.duplicate:
        data["duplicate"] = True
        return jsonify(success_response(data, "Event already processed"))
    return jsonify(success_response(data, "Webhook processed successfully"))
