"""
Subscription status derivation.

Every gating decision (status API, dashboard access, checkout conflict check)
goes through these two functions so the answers never drift apart.
"""
from datetime import datetime
from typing import Optional

from screenhabit.models.user_subscription import STATUS_ACTIVE, STATUS_TRIALING
from screenhabit.utils.helpers import as_utc, utcnow

ACTIVE_STATUSES = frozenset({STATUS_ACTIVE, STATUS_TRIALING})


def is_on_trial(subscription, now: Optional[datetime] = None) -> bool:
    """True when the subscription has a trial end that is still in the future."""
    if subscription is None:
        return False
    trial_end = as_utc(subscription.trial_end)
    if trial_end is None:
        return False
    return trial_end > (as_utc(now) or utcnow())


def is_active(subscription) -> bool:
    """True for `active` and `trialing`; every other Stripe status is blocked."""
    return bool(subscription is not None and subscription.status in ACTIVE_STATUSES)
