import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import json
import time
from types import SimpleNamespace

import pytest
import stripe
from screenhabit import create_app
from screenhabit.extensions import db
from screenhabit.models import SubscriptionPlan, User

VALID_SIGNATURE = "t=1,v1=valid"


@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        APP_BASE_URL="http://example.test",
        WTF_CSRF_ENABLED=False,
        STRIPE_SECRET_KEY="sk_test_x",
        STRIPE_WEBHOOK_SECRET="whsec_test_x",
        STRIPE_TRIAL_DAYS=14,
    )
    with app.app_context():
        db.create_all()
        db.session.expire_on_commit = False
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()


# ---- data helpers ----

@pytest.fixture()
def make_user(app):
    def _make(email="user@example.com", stripe_customer_id=None, **kw):
        with app.app_context():
            u = User(email=email, first_name=kw.get("first_name", "Ada"), last_name=kw.get("last_name", "Lovelace"),
                     stripe_customer_id=stripe_customer_id)
            u.set_password("x")
            db.session.add(u)
            db.session.commit()
            return u.id
    return _make

@pytest.fixture()
def make_plan(app):
    def _make(name="Pro", price=299, stripe_price_id="price_pro_monthly", is_active=True, features=None):
        with app.app_context():
            p = SubscriptionPlan(name=name, price=price, stripe_price_id=stripe_price_id, is_active=is_active,
                                 features=features if features is not None else ["Unlimited usage"])
            db.session.add(p)
            db.session.commit()
            return p.id
    return _make

@pytest.fixture()
def login(client):
    def _login(user_id: int):
        # Simulate Flask-Login session
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user_id)
    return _login


# ---- Stripe fakes ----

def ts(days=0, minutes=0) -> int:
    return int(time.time() + days * 86400 + minutes * 60)

def subscription_obj(sub_id="sub_test", status="trialing", user_id=None, plan_id=None, **fields):
    """Stripe subscription object as it arrives in webhooks."""
    metadata = {}
    if user_id is not None:
        metadata["user_id"] = str(user_id)
    if plan_id is not None:
        metadata["plan_id"] = str(plan_id)
    obj = {
        "id": sub_id,
        "object": "subscription",
        "status": status,
        "customer": "cus_123",
        "metadata": metadata,
        "cancel_at_period_end": False,
    }
    obj.update(fields)
    return obj

def stripe_event(event_id, event_type, obj):
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}


class FakeStripe:
    """Stands in for StripeClient(key); records every call."""

    def __init__(self):
        self.key = None
        self.calls = []
        self.subscriptions_store = {}
        self.fail_with = None
        fake = self

        class _Customers:
            def create(self, params=None, options=None):
                fake._record("customers.create", params=params, options=options)
                return SimpleNamespace(id="cus_new_1")

        class _CheckoutSessions:
            def create(self, params=None, options=None):
                fake._record("checkout.sessions.create", params=params, options=options)
                return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

        class _PortalSessions:
            def create(self, params=None, options=None):
                fake._record("billing_portal.sessions.create", params=params)
                return SimpleNamespace(url="https://billing.stripe.test/session/bps_1")

        class _Subscriptions:
            def retrieve(self, sub_id, params=None, options=None):
                fake._record("subscriptions.retrieve", sub_id=sub_id)
                return fake.subscriptions_store[sub_id]

            def update(self, sub_id, params=None, options=None):
                fake._record("subscriptions.update", sub_id=sub_id, params=params)
                return {"id": sub_id, **(params or {})}

        self.customers = _Customers()
        self.checkout = SimpleNamespace(sessions=_CheckoutSessions())
        self.billing_portal = SimpleNamespace(sessions=_PortalSessions())
        self.subscriptions = _Subscriptions()

    def __call__(self, key):
        self.key = key
        return self

    def _record(self, name, **kwargs):
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append((name, kwargs))

    def calls_to(self, name):
        return [kw for n, kw in self.calls if n == name]


@pytest.fixture()
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr("screenhabit.services.billing.StripeClient", fake)
    return fake

@pytest.fixture()
def send_event(client, monkeypatch):
    # Trust our payload when the signature header is the known-good one
    def _fake_construct_event(payload, sig_header, secret):
        if sig_header != VALID_SIGNATURE or secret != "whsec_test_x":
            raise stripe.SignatureVerificationError("No signatures found matching the expected signature", sig_header)
        return json.loads(payload)
    monkeypatch.setattr(stripe.Webhook, "construct_event", staticmethod(_fake_construct_event))

    def _send(event, signature=VALID_SIGNATURE):
        headers = {"Content-Type": "application/json"}
        if signature is not None:
            headers["Stripe-Signature"] = signature
        return client.post("/api/webhooks/stripe", data=json.dumps(event), headers=headers)
    return _send
