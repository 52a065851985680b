from datetime import datetime, timezone
from screenhabit.extensions import db
from screenhabit.models import UserSubscription, WebhookEvent
from screenhabit.billing.status import is_active, is_on_trial
from screenhabit.utils.helpers import as_utc
from conftest import ts, subscription_obj, stripe_event


def _sub_created(user_id, plan_id, event_id="evt_created", trial_end=None):
    trial_end = trial_end or ts(days=14)
    obj = subscription_obj(
        "sub_test", "trialing", user_id, plan_id,
        current_period_start=ts(), current_period_end=trial_end, trial_end=trial_end,
    )
    return stripe_event(event_id, "customer.subscription.created", obj)


def test_first_subscription_creates_trialing_row(app, make_user, make_plan, send_event):
    uid, pid = make_user(), make_plan()

    resp = send_event(_sub_created(uid, pid))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["data"] == {"received": True}

    with app.app_context():
        rows = UserSubscription.query.all()
        assert len(rows) == 1
        sub = rows[0]
        assert sub.user_id == uid and sub.plan_id == pid
        assert sub.stripe_subscription_id == "sub_test"
        assert sub.status == "trialing"
        assert is_on_trial(sub) is True
        assert is_active(sub) is True

        ev = WebhookEvent.query.filter_by(stripe_event_id="evt_created").one()
        assert ev.processed is True
        assert ev.processed_at is not None
        assert ev.event_type == "customer.subscription.created"
        assert ev.payload["data"]["object"]["id"] == "sub_test"


def test_trial_conversion_updates_row_in_place(app, make_user, make_plan, send_event):
    uid, pid = make_user(), make_plan()
    send_event(_sub_created(uid, pid))
    with app.app_context():
        original = UserSubscription.query.one()
        original_id, original_created = original.id, original.created_at

    period_end = ts(days=30)
    updated = subscription_obj(
        "sub_test", "active", uid, pid,
        current_period_start=ts(), current_period_end=period_end, trial_end=ts(minutes=-1),
    )
    resp = send_event(stripe_event("evt_updated", "customer.subscription.updated", updated))
    assert resp.status_code == 200

    with app.app_context():
        sub = UserSubscription.query.one()
        assert sub.id == original_id
        assert sub.created_at == original_created
        assert sub.status == "active"
        assert as_utc(sub.current_period_end) == datetime.fromtimestamp(period_end, tz=timezone.utc)
        assert is_on_trial(sub) is False
        assert is_active(sub) is True


def test_duplicate_delivery_is_acknowledged_without_changes(app, make_user, make_plan, send_event):
    uid, pid = make_user(), make_plan()
    created = _sub_created(uid, pid)
    send_event(created)
    send_event(stripe_event("evt_updated", "customer.subscription.updated",
                            subscription_obj("sub_test", "active", uid, pid,
                                             current_period_start=ts(), current_period_end=ts(days=30))))
    with app.app_context():
        before = UserSubscription.query.one()
        before_updated_at = before.updated_at

    resp = send_event(created)
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"received": True, "duplicate": True}

    with app.app_context():
        rows = UserSubscription.query.all()
        assert len(rows) == 1
        assert rows[0].status == "active"
        assert rows[0].updated_at == before_updated_at
        assert WebhookEvent.query.filter_by(stripe_event_id="evt_created").count() == 1
        assert WebhookEvent.query.count() == 2


def test_invoice_payment_failed_refetches_subscription(app, make_user, make_plan, send_event, fake_stripe):
    uid, pid = make_user(), make_plan()
    send_event(_sub_created(uid, pid))

    fake_stripe.subscriptions_store["sub_test"] = subscription_obj(
        "sub_test", "past_due", uid, pid, current_period_start=ts(days=-30), current_period_end=ts(),
    )
    event = stripe_event("evt_invoice_failed", "invoice.payment_failed",
                         {"id": "in_1", "object": "invoice", "subscription": "sub_test"})
    resp = send_event(event)
    assert resp.status_code == 200

    assert fake_stripe.key == "sk_test_x"
    assert fake_stripe.calls_to("subscriptions.retrieve") == [{"sub_id": "sub_test"}]
    with app.app_context():
        sub = UserSubscription.query.one()
        assert sub.status == "past_due"
        assert is_active(sub) is False


def test_invoice_payment_succeeded_reads_subscription_from_parent(app, make_user, make_plan, send_event, fake_stripe):
    uid, pid = make_user(), make_plan()
    fake_stripe.subscriptions_store["sub_new_api"] = subscription_obj(
        "sub_new_api", "active", uid, pid,
        items={"data": [{"current_period_start": ts(), "current_period_end": ts(days=30)}]},
    )
    invoice = {
        "id": "in_2",
        "object": "invoice",
        "parent": {"type": "subscription_details", "subscription_details": {"subscription": "sub_new_api"}},
    }
    resp = send_event(stripe_event("evt_invoice_paid", "invoice.payment_succeeded", invoice))
    assert resp.status_code == 200

    with app.app_context():
        sub = UserSubscription.query.filter_by(stripe_subscription_id="sub_new_api").one()
        assert sub.status == "active"
        assert as_utc(sub.current_period_end) > as_utc(sub.current_period_start)


def test_missing_metadata_leaves_event_unprocessed(app, make_user, make_plan, send_event):
    uid = make_user()
    obj = subscription_obj("sub_nometa", "active", user_id=uid, current_period_end=ts(days=30))
    resp = send_event(stripe_event("evt_nometa", "customer.subscription.created", obj))
    assert resp.status_code == 500
    assert resp.get_json()["success"] is False

    with app.app_context():
        assert UserSubscription.query.count() == 0
        ev = WebhookEvent.query.filter_by(stripe_event_id="evt_nometa").one()
        assert ev.processed is False
        assert ev.notes == "handler_error:MissingMetadataError"


def test_failed_event_is_reprocessed_on_redelivery(app, make_user, make_plan, send_event):
    uid = make_user()
    # plan id 4242 does not exist yet: first attempt fails
    event = _sub_created(uid, 4242, event_id="evt_retry")
    assert send_event(event).status_code == 500

    with app.app_context():
        assert UserSubscription.query.count() == 0
        from screenhabit.models import SubscriptionPlan
        db.session.add(SubscriptionPlan(id=4242, name="Late", price=100, features=[]))
        db.session.commit()

    resp = send_event(event)
    assert resp.status_code == 200
    assert "duplicate" not in resp.get_json()["data"]

    with app.app_context():
        assert UserSubscription.query.count() == 1
        ev = WebhookEvent.query.filter_by(stripe_event_id="evt_retry").one()
        assert ev.processed is True
        assert ev.retries == 1
        assert ev.notes is None


def test_invalid_signature_rejected_without_persisting(app, make_user, make_plan, send_event):
    uid, pid = make_user(), make_plan()
    resp = send_event(_sub_created(uid, pid), signature="t=1,v1=forged")
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False

    with app.app_context():
        assert WebhookEvent.query.count() == 0
        assert UserSubscription.query.count() == 0


def test_missing_signature_header_rejected(app, send_event):
    resp = send_event(stripe_event("evt_x", "customer.subscription.created", {}), signature=None)
    assert resp.status_code == 400
    with app.app_context():
        assert WebhookEvent.query.count() == 0


def test_unhandled_event_type_is_logged_and_acknowledged(app, send_event):
    resp = send_event(stripe_event("evt_other", "customer.created", {"id": "cus_1", "object": "customer"}))
    assert resp.status_code == 200

    with app.app_context():
        ev = WebhookEvent.query.filter_by(stripe_event_id="evt_other").one()
        assert ev.processed is True
        assert UserSubscription.query.count() == 0


def test_subscription_deleted_keeps_row_as_canceled(app, make_user, make_plan, send_event):
    uid, pid = make_user(), make_plan()
    send_event(_sub_created(uid, pid))
    deleted = subscription_obj("sub_test", "canceled", uid, pid,
                               current_period_start=ts(days=-1), current_period_end=ts())
    assert send_event(stripe_event("evt_deleted", "customer.subscription.deleted", deleted)).status_code == 200

    with app.app_context():
        sub = UserSubscription.query.one()
        assert sub.status == "canceled"
        assert is_active(sub) is False


def test_webhook_secret_not_configured_returns_500(app, send_event):
    app.config["STRIPE_WEBHOOK_SECRET"] = None
    try:
        resp = send_event(stripe_event("evt_cfg", "customer.created", {}))
    finally:
        app.config["STRIPE_WEBHOOK_SECRET"] = "whsec_test_x"
    assert resp.status_code == 500
    with app.app_context():
        assert WebhookEvent.query.count() == 0
