from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

DEFAULT_TRIAL_DAYS = 14


@dataclass(frozen=True)
class BillingSettings:
    """Billing configuration handed to services instead of reading app.config ad hoc."""
    stripe_secret_key: Optional[str]
    webhook_secret: Optional[str]
    app_base_url: str
    trial_days: int = DEFAULT_TRIAL_DAYS

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "BillingSettings":
        return cls(
            stripe_secret_key=config.get("STRIPE_SECRET_KEY"),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET"),
            app_base_url=(config.get("APP_BASE_URL") or "").rstrip("/"),
            trial_days=int(config.get("STRIPE_TRIAL_DAYS") or DEFAULT_TRIAL_DAYS),
        )

    def absolute_url(self, path: str) -> str:
        return urljoin(self.app_base_url + "/", path.lstrip("/"))

    @property
    def checkout_success_url(self) -> str:
        return self.absolute_url("dashboard?success=true")

    @property
    def checkout_cancel_url(self) -> str:
        return self.absolute_url("pricing?canceled=true")

    @property
    def portal_return_url(self) -> str:
        return self.absolute_url("dashboard")
