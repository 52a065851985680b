from .user import User
from .subscription_plan import SubscriptionPlan
from .user_subscription import UserSubscription
from .webhook_event import WebhookEvent
from .download import Download, PLATFORMS
from .usage_stat import UsageStat

__all__ = [
    "User",
    "SubscriptionPlan",
    "UserSubscription",
    "WebhookEvent",
    "Download",
    "PLATFORMS",
    "UsageStat",
]
