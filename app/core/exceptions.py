"""Domain exceptions for entitlement, notification and billing services."""
from typing import Optional


class EntitlementError(Exception):
    """Base exception for all subscription and notification errors."""

    pass


class ValidationError(EntitlementError, ValueError):
    """Malformed input rejected before anything is written."""

    pass


class NotFoundError(EntitlementError):
    """A referenced subscription or user record does not exist."""

    pass


class PlanLimitExceeded(EntitlementError):
    """The user's plan does not allow another unit of the requested action."""

    def __init__(self, action: str, plan: str, limit: int, used: int):
        self.action = action
        self.plan = plan
        self.limit = limit
        self.used = used
        super().__init__(
            f"Plan limit reached for {action}: plan={plan}, limit={limit}, used={used}"
        )


class SubscriptionExpired(EntitlementError):
    """The subscription has expired and no longer grants the action."""

    def __init__(self, user_id: int, plan: Optional[str] = None):
        self.user_id = user_id
        self.plan = plan
        super().__init__(f"Subscription expired for user_id={user_id}")


class WebhookVerificationError(EntitlementError):
    """A billing webhook payload failed signature verification."""

    pass
