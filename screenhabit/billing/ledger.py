"""
Webhook event ledger and the idempotency gate in front of the reconciler.

The unique `stripe_event_id` column is what makes redelivery safe: the insert
either wins (first delivery) or hits the constraint (seen before).
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from sqlalchemy.exc import IntegrityError

from screenhabit.extensions import db
from screenhabit.models import WebhookEvent
from screenhabit.utils.helpers import utcnow
from .events import parse_event
from .reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookOutcome:
    event_id: str
    event_type: str
    duplicate: bool = False
    retried: bool = False


def record_event(event_id: str, event_type: str, payload: Dict[str, Any]) -> Tuple[WebhookEvent, bool]:
    """Insert the ledger row. Returns (row, created); created is False for a redelivery."""
    row = WebhookEvent(stripe_event_id=event_id, event_type=event_type, payload=payload)
    db.session.add(row)
    try:
        db.session.commit()
        return row, True
    except IntegrityError:
        db.session.rollback()
    existing = WebhookEvent.query.filter_by(stripe_event_id=event_id).one()
    return existing, False


def mark_processed(row: WebhookEvent) -> None:
    row.processed = True
    row.processed_at = utcnow()
    row.notes = None
    db.session.commit()


def mark_failed(row: WebhookEvent, exc: BaseException) -> None:
    row.notes = f"handler_error:{type(exc).__name__}"[:255]
    db.session.commit()


def process_event(payload: Dict[str, Any], reconciler: SubscriptionReconciler) -> WebhookOutcome:
    """
    Run one verified Stripe event through the ledger and the reconciler.

    A redelivery of a processed event is acknowledged without touching state.
    A redelivery of an event whose earlier attempt failed is Stripe retrying,
    so it is dispatched again. Handler errors roll back the subscription write,
    leave the row unprocessed, and propagate so the endpoint answers non-2xx.
    """
    event = parse_event(payload)
    row, created = record_event(event.event_id, event.type, payload)

    retried = False
    if not created:
        if row.processed:
            logger.info("billing.webhook.duplicate", extra={"event_id": event.event_id, "event_type": event.type})
            return WebhookOutcome(event_id=event.event_id, event_type=event.type, duplicate=True)
        row.retries = (row.retries or 0) + 1
        db.session.commit()
        retried = True
        logger.info(
            "billing.webhook.retry",
            extra={"event_id": event.event_id, "event_type": event.type, "retries": row.retries},
        )

    try:
        reconciler.dispatch(event)
        mark_processed(row)
    except Exception as exc:
        db.session.rollback()
        mark_failed(row, exc)
        logger.exception(
            "billing.webhook.handler_error",
            extra={"event_id": event.event_id, "event_type": event.type},
        )
        raise

    return WebhookOutcome(event_id=event.event_id, event_type=event.type, retried=retried)
