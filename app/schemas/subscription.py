"""
Pydantic schemas for subscription state, plan catalog and limit checks.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from app.core.plan_limits import (
    PlanType,
    SubscriptionStatus,
    AnalyticsTier,
    SupportTier,
    BillingStatus,
)


class PlanLimits(BaseModel):
    """Entitlements attached to a plan. -1 means unlimited."""
    social_accounts: int = Field(..., ge=-1, description="Connected social accounts allowed")
    scheduled_posts_per_week: int = Field(..., ge=-1, description="Posts that can be scheduled per week")
    analytics_tier: AnalyticsTier
    support_tier: SupportTier
    team_members: int = Field(..., ge=-1)


class UsageCounters(BaseModel):
    """Live usage consumed against plan limits."""
    connected_accounts: int = Field(0, ge=0)
    scheduled_posts_this_week: int = Field(0, ge=0)
    last_reset_date: Optional[datetime] = None


class BillingRecordResponse(BaseModel):
    """Schema for a single billing history entry."""
    date: datetime
    amount: float
    status: BillingStatus
    invoice_id: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class PlanDetails(BaseModel):
    """Human-readable plan catalog entry."""
    id: Optional[PlanType] = None
    name: str
    price: float
    interval: str
    description: Optional[str] = None
    limits: PlanLimits
    features: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "standard",
                "name": "Standard Plan",
                "price": 10,
                "interval": "month",
                "description": "Ideal for growing creators",
                "limits": {
                    "social_accounts": 4,
                    "scheduled_posts_per_week": 8,
                    "analytics_tier": "advanced",
                    "support_tier": "priority",
                    "team_members": 1
                },
                "features": ["4 social media accounts (1 per platform)"]
            }
        }


class SubscriptionResponse(BaseModel):
    """Serialized subscription record."""
    user_id: int
    plan_type: PlanType
    status: SubscriptionStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    price: float
    currency: str = "USD"
    limits: PlanLimits
    usage: UsageCounters
    billing_history: List[BillingRecordResponse] = Field(default_factory=list)
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None

    class Config:
        from_attributes = True


class SubscriptionOverview(SubscriptionResponse):
    """Subscription record plus derived entitlement state."""
    plan_details: PlanDetails
    days_remaining: int = Field(..., ge=0)
    has_active_subscription: bool
    is_expired: bool


class LimitCheckResponse(BaseModel):
    """Outcome of checking whether an action is allowed by the plan."""
    action: str = Field(..., description="connect-account or schedule-post")
    can_perform: bool
    message: str = ""
    current_usage: UsageCounters
    limits: PlanLimits

    class Config:
        json_schema_extra = {
            "example": {
                "action": "schedule-post",
                "can_perform": False,
                "message": "Your free plan allows 1 scheduled post(s) per week. Upgrade for more.",
                "current_usage": {
                    "connected_accounts": 1,
                    "scheduled_posts_this_week": 1,
                    "last_reset_date": "2026-01-11T00:00:00"
                },
                "limits": {
                    "social_accounts": 1,
                    "scheduled_posts_per_week": 1,
                    "analytics_tier": "basic",
                    "support_tier": "community",
                    "team_members": 1
                }
            }
        }
