from functools import wraps
from typing import Callable
from flask_login import current_user
from screenhabit.billing.status import is_active
from screenhabit.models import UserSubscription


def current_subscription():
    """Authoritative (most recent) subscription row for the logged-in user."""
    user_id = getattr(current_user, "id", None)
    if not user_id:
        return None
    return UserSubscription.current_for(user_id)


def require_active_subscription(fn: Callable):
    """
    Gate for paid surfaces (dashboard data).
    Allowed: status in {"active","trialing"}. Blocked: past_due, unpaid, canceled, or no subscription.
    Apply after @login_required.
    """
    @wraps(fn)
    def _wrap(*args, **kwargs):
        if not is_active(current_subscription()):
            return {"success": False, "message": "An active subscription is required", "error": "subscription_required"}, 403
        return fn(*args, **kwargs)
    return _wrap
