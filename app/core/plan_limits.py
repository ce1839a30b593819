"""
Plan-based entitlement configuration.

Single source of truth for the limits and price attached to each plan.
A limit of -1 (UNLIMITED) means no ceiling for that entitlement.
"""
import copy
import enum
from typing import Any, Dict, List

from app.core.exceptions import ValidationError

UNLIMITED = -1


class PlanType(str, enum.Enum):
    """Subscription plans."""
    FREE_TRIAL = "free_trial"
    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"


class SubscriptionStatus(str, enum.Enum):
    """Lifecycle states of a subscription record."""
    TRIAL = "trial"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    EXPIRED = "expired"


class AnalyticsTier(str, enum.Enum):
    BASIC = "basic"
    ADVANCED = "advanced"
    CUSTOM = "custom"


class SupportTier(str, enum.Enum):
    COMMUNITY = "community"
    PRIORITY = "priority"
    PREMIUM = "premium"


class BillingStatus(str, enum.Enum):
    PAID = "paid"
    FAILED = "failed"
    PENDING = "pending"


# Plans a user may switch to; free_trial is assigned by the system only
SELECTABLE_PLANS: List[PlanType] = [
    PlanType.FREE,
    PlanType.STANDARD,
    PlanType.PREMIUM,
]

ACTIVE_STATUSES = (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE)

# Plan limits
PLAN_LIMITS: Dict[PlanType, Dict[str, Any]] = {
    PlanType.FREE_TRIAL: {
        "social_accounts": 2,
        "scheduled_posts_per_week": 5,
        "analytics_tier": AnalyticsTier.BASIC,
        "support_tier": SupportTier.COMMUNITY,
        "team_members": 1,
    },
    PlanType.FREE: {
        "social_accounts": 1,
        "scheduled_posts_per_week": 1,
        "analytics_tier": AnalyticsTier.BASIC,
        "support_tier": SupportTier.COMMUNITY,
        "team_members": 1,
    },
    PlanType.STANDARD: {
        "social_accounts": 4,
        "scheduled_posts_per_week": 8,
        "analytics_tier": AnalyticsTier.ADVANCED,
        "support_tier": SupportTier.PRIORITY,
        "team_members": 1,
    },
    PlanType.PREMIUM: {
        "social_accounts": UNLIMITED,
        "scheduled_posts_per_week": UNLIMITED,
        "analytics_tier": AnalyticsTier.CUSTOM,
        "support_tier": SupportTier.PREMIUM,
        "team_members": UNLIMITED,
    },
}

# Monthly price in USD
PLAN_PRICES: Dict[PlanType, int] = {
    PlanType.FREE_TRIAL: 0,
    PlanType.FREE: 0,
    PlanType.STANDARD: 10,
    PlanType.PREMIUM: 25,
}

# Human-readable plan catalog
PLAN_CATALOG: Dict[PlanType, Dict[str, Any]] = {
    PlanType.FREE_TRIAL: {
        "name": "Free Trial",
        "interval": "30 days",
        "description": "Perfect for getting started",
        "features": [
            "2 social media account connections",
            "5 scheduled posts per week",
            "Basic analytics",
            "Community support",
            "30 days free access",
        ],
    },
    PlanType.FREE: {
        "name": "Free Plan",
        "interval": "forever",
        "description": "Keep a single account connected",
        "features": [
            "1 social media account connection",
            "1 scheduled post per week",
            "Basic analytics",
            "Community support",
        ],
    },
    PlanType.STANDARD: {
        "name": "Standard Plan",
        "interval": "month",
        "description": "Ideal for growing creators",
        "features": [
            "4 social media accounts (1 per platform)",
            "8 scheduled posts per week",
            "Advanced analytics",
            "Priority support",
        ],
    },
    PlanType.PREMIUM: {
        "name": "Premium Plan",
        "interval": "month",
        "description": "For teams, organizations, and businesses",
        "features": [
            "Unlimited social media accounts",
            "Unlimited scheduled posts",
            "Custom analytics reports",
            "24/7 premium support",
            "Unlimited team members",
        ],
    },
}


def parse_plan_type(value: Any) -> PlanType:
    """Coerce a raw plan identifier into PlanType, rejecting unknown values."""
    try:
        return PlanType(value)
    except ValueError:
        raise ValidationError(f"Invalid plan type: {value!r}") from None


def parse_status(value: Any) -> SubscriptionStatus:
    """Coerce a raw status string into SubscriptionStatus."""
    try:
        return SubscriptionStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid subscription status: {value!r}") from None


def is_unlimited(limit: int) -> bool:
    """Check if a limit value is the unlimited sentinel."""
    return limit == UNLIMITED


def get_plan_limits(plan_type: Any) -> Dict[str, Any]:
    """
    Get all limits for a plan type.

    Args:
        plan_type: Plan type (free_trial, free, standard, premium)

    Returns:
        A fresh dict of limits; mutating it does not affect the table

    Raises:
        ValidationError: If the plan type is not recognised
    """
    return dict(PLAN_LIMITS[parse_plan_type(plan_type)])


def get_plan_price(plan_type: Any) -> int:
    """Get the monthly price for a plan type."""
    return PLAN_PRICES[parse_plan_type(plan_type)]


def get_plan_details(plan_type: Any) -> Dict[str, Any]:
    """
    Get the catalog entry for a plan: name, price, interval, limits, features.

    Falls back to the free plan for unrecognised input.
    """
    try:
        plan = PlanType(plan_type)
    except ValueError:
        plan = PlanType.FREE

    details = copy.deepcopy(PLAN_CATALOG[plan])
    details["price"] = PLAN_PRICES[plan]
    details["limits"] = dict(PLAN_LIMITS[plan])
    return details


def list_plans() -> List[Dict[str, Any]]:
    """Catalog entries for every plan a user can choose, keyed by id."""
    return [
        {"id": plan.value, **get_plan_details(plan)}
        for plan in SELECTABLE_PLANS
    ]
