import click
from flask import current_app
from flask.cli import with_appcontext
from screenhabit.extensions import db
from screenhabit.models import SubscriptionPlan, User, WebhookEvent

DEFAULT_PLANS = (
    {
        "name": "Pro",
        "price": 299,
        "features": [
            "Everything in trial",
            "Unlimited usage",
            "Detailed analytics",
            "Custom reminder settings",
            "Priority support",
            "Export data",
        ],
    },
    {
        "name": "Team",
        "price": 999,
        "features": [
            "Everything in Pro",
            "Team dashboard",
            "Usage insights",
            "Admin controls",
            "Priority support",
            "Custom integrations",
        ],
    },
)

def _plan_by_name(name: str) -> SubscriptionPlan:
    plan = db.session.query(SubscriptionPlan).filter_by(name=name).one_or_none()
    if not plan:
        raise click.ClickException(f"Plan {name!r} not found")
    return plan

@click.group()
def plans():
    """Subscription plan catalog."""

@plans.command("seed")
@with_appcontext
def plans_seed():
    if db.session.query(SubscriptionPlan).count():
        click.echo("Subscription plans already exist. Skipping setup.")
        return
    for entry in DEFAULT_PLANS:
        db.session.add(SubscriptionPlan(name=entry["name"], price=entry["price"], features=list(entry["features"]), is_active=True))
    db.session.commit()
    for plan in db.session.query(SubscriptionPlan).order_by(SubscriptionPlan.id):
        click.echo(f"Created plan id={plan.id} name={plan.name} price={plan.price}")
    click.echo("Attach Stripe prices with: flask plans set-price <NAME> <PRICE_ID>")

@plans.command("list")
@with_appcontext
def plans_list():
    for plan in db.session.query(SubscriptionPlan).order_by(SubscriptionPlan.id):
        flag = "active" if plan.is_active else "inactive"
        click.echo(f"{plan.id}\t{plan.name}\t{plan.price}\t{flag}\t{plan.stripe_price_id or '-'}")

@plans.command("set-price")
@click.argument("name")
@click.argument("price_id")
@with_appcontext
def plans_set_price(name, price_id):
    if not price_id.startswith("price_"):
        raise click.ClickException("Stripe price ids start with 'price_'")
    plan = _plan_by_name(name)
    plan.stripe_price_id = price_id
    db.session.commit()
    click.echo(f"Plan {plan.name} now bills with {price_id}")

@plans.command("deactivate")
@click.argument("name")
@with_appcontext
def plans_deactivate(name):
    plan = _plan_by_name(name)
    plan.is_active = False
    db.session.commit()
    click.echo(f"Plan {plan.name} deactivated")

@plans.command("activate")
@click.argument("name")
@with_appcontext
def plans_activate(name):
    plan = _plan_by_name(name)
    plan.is_active = True
    db.session.commit()
    click.echo(f"Plan {plan.name} activated")

@click.group()
def users():
    """User management."""

@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--first-name", default=None)
@click.option("--last-name", default=None)
@with_appcontext
def users_create(email, password, first_name, last_name):
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).count():
        raise click.ClickException("User already exists")

    user = User(email=email, first_name=first_name, last_name=last_name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(f"User created id={user.id} email={user.email}")

@click.group()
def webhooks():
    """Stripe webhook ledger ops."""

@webhooks.command("pending")
@with_appcontext
def webhooks_pending():
    rows = (
        db.session.query(WebhookEvent)
        .filter_by(processed=False)
        .order_by(WebhookEvent.received_at)
        .all()
    )
    if not rows:
        click.echo("No unprocessed events")
        return
    for row in rows:
        click.echo(f"{row.stripe_event_id}\t{row.event_type}\tretries={row.retries}\t{row.notes or ''}")

@webhooks.command("replay")
@click.argument("event_id")
@with_appcontext
def webhooks_replay(event_id):
    """Re-run a stored, unprocessed event (after fixing the data it tripped on)."""
    from screenhabit.billing.ledger import process_event
    from screenhabit.billing.settings import BillingSettings
    from screenhabit.services import billing as billing_service

    row = db.session.query(WebhookEvent).filter_by(stripe_event_id=event_id).one_or_none()
    if not row:
        raise click.ClickException("Event not found")
    if row.processed:
        raise click.ClickException("Event already processed")

    settings = BillingSettings.from_config(current_app.config)
    reconciler = billing_service.build_reconciler(settings)
    try:
        process_event(dict(row.payload or {}), reconciler)
    except Exception as exc:
        raise click.ClickException(f"Replay failed: {type(exc).__name__}: {exc}") from exc
    click.echo(f"Replayed {event_id}")

def register_cli(app):
    app.cli.add_command(plans)
    app.cli.add_command(users)
    app.cli.add_command(webhooks)
