"""
Typed view over the Stripe webhook events we act on.

`parse_event` turns a raw event dict into exactly one of the variants below;
anything we do not handle becomes an `IgnoredEvent`.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"

SUBSCRIPTION_EVENT_TYPES = frozenset({SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED})
INVOICE_EVENT_TYPES = frozenset({INVOICE_PAYMENT_SUCCEEDED, INVOICE_PAYMENT_FAILED})


@dataclass(frozen=True)
class SubscriptionChanged:
    """Lifecycle event; carries the full subscription object."""
    event_id: str
    type: str
    subscription: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InvoicePaymentOutcome:
    """Payment result; state is re-read from the subscription, never from the invoice."""
    event_id: str
    type: str
    subscription_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.type == INVOICE_PAYMENT_SUCCEEDED


@dataclass(frozen=True)
class IgnoredEvent:
    event_id: str
    type: str


BillingEvent = Union[SubscriptionChanged, InvoicePaymentOutcome, IgnoredEvent]


class MalformedEventError(ValueError):
    pass


def as_plain_dict(obj: Any) -> Dict[str, Any]:
    """StripeObject -> plain dict (SDK versions differ on the method name)."""
    if obj is None:
        return {}
    for attr in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            return fn()
    return dict(obj)


def _id_of(ref: Any) -> Optional[str]:
    # Stripe references are either an id string or an expanded object
    if isinstance(ref, dict):
        return ref.get("id")
    return ref or None


def invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    if invoice.get("subscription"):
        return _id_of(invoice["subscription"])
    # API versions >= 2025-03 moved it under parent.subscription_details
    details = ((invoice.get("parent") or {}).get("subscription_details") or {})
    return _id_of(details.get("subscription"))


def parse_event(event: Dict[str, Any]) -> BillingEvent:
    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        raise MalformedEventError("event is missing id or type")

    obj = (event.get("data") or {}).get("object") or {}

    if event_type in SUBSCRIPTION_EVENT_TYPES:
        return SubscriptionChanged(event_id=event_id, type=event_type, subscription=as_plain_dict(obj))
    if event_type in INVOICE_EVENT_TYPES:
        return InvoicePaymentOutcome(
            event_id=event_id,
            type=event_type,
            subscription_id=invoice_subscription_id(as_plain_dict(obj)),
        )
    return IgnoredEvent(event_id=event_id, type=event_type)
