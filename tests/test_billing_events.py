import pytest

from screenhabit.billing.events import (
    IgnoredEvent,
    InvoicePaymentOutcome,
    MalformedEventError,
    SubscriptionChanged,
    as_plain_dict,
    invoice_subscription_id,
    parse_event,
)
from conftest import stripe_event, subscription_obj


@pytest.mark.parametrize("event_type", [
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
])
def test_subscription_events_carry_the_object(event_type):
    obj = subscription_obj("sub_1", "active", 1, 2)
    event = parse_event(stripe_event("evt_1", event_type, obj))
    assert isinstance(event, SubscriptionChanged)
    assert event.event_id == "evt_1"
    assert event.type == event_type
    assert event.subscription["id"] == "sub_1"


def test_invoice_failed_event():
    event = parse_event(stripe_event("evt_2", "invoice.payment_failed", {"id": "in_1", "subscription": "sub_9"}))
    assert isinstance(event, InvoicePaymentOutcome)
    assert event.subscription_id == "sub_9"
    assert event.succeeded is False


def test_invoice_succeeded_with_expanded_subscription():
    event = parse_event(stripe_event("evt_3", "invoice.payment_succeeded",
                                     {"id": "in_2", "subscription": {"id": "sub_8", "object": "subscription"}}))
    assert event.subscription_id == "sub_8"
    assert event.succeeded is True


def test_invoice_subscription_under_parent_details():
    invoice = {"id": "in_3", "parent": {"subscription_details": {"subscription": "sub_7"}}}
    assert invoice_subscription_id(invoice) == "sub_7"


def test_invoice_without_subscription():
    assert invoice_subscription_id({"id": "in_4", "subscription": None}) is None
    event = parse_event(stripe_event("evt_4", "invoice.payment_succeeded", {"id": "in_4"}))
    assert event.subscription_id is None


def test_other_types_are_ignored():
    event = parse_event(stripe_event("evt_5", "checkout.session.completed", {"id": "cs_1"}))
    assert event == IgnoredEvent(event_id="evt_5", type="checkout.session.completed")


@pytest.mark.parametrize("payload", [{}, {"id": "evt_6"}, {"type": "invoice.payment_failed"}])
def test_missing_id_or_type_is_malformed(payload):
    with pytest.raises(MalformedEventError):
        parse_event(payload)


def test_as_plain_dict_prefers_sdk_conversion():
    class _StripeLike:
        def to_dict(self):
            return {"id": "obj_1"}

    assert as_plain_dict(_StripeLike()) == {"id": "obj_1"}
    assert as_plain_dict({"id": "obj_2"}) == {"id": "obj_2"}
    assert as_plain_dict(None) == {}
