"""
Subscription and billing history models.

One subscription row per user holds the plan, lifecycle status, billing dates,
plan limits and live usage counters. Limits are stored flat and exposed as the
nested `limits` / `usage` views consumers expect.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Index, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, backref
from app.db.base import Base
from app.core.plan_limits import (
    PlanType,
    SubscriptionStatus,
    AnalyticsTier,
    SupportTier,
    BillingStatus,
)


def _values(enum_cls):
    return [member.value for member in enum_cls]


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    plan_type = Column(
        Enum(PlanType, name="plan_type", values_callable=_values),
        default=PlanType.FREE_TRIAL,
        nullable=False,
    )
    status = Column(
        Enum(SubscriptionStatus, name="subscription_status", values_callable=_values),
        default=SubscriptionStatus.TRIAL,
        nullable=False,
    )

    # Billing dates (naive UTC)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    trial_end_date = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)

    price = Column(Float, default=0, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)

    # Plan limits, -1 means unlimited
    limit_social_accounts = Column(Integer, nullable=False, default=2)
    limit_scheduled_posts_per_week = Column(Integer, nullable=False, default=5)
    limit_analytics = Column(
        Enum(AnalyticsTier, name="analytics_tier", values_callable=_values),
        nullable=False,
        default=AnalyticsTier.BASIC,
    )
    limit_support = Column(
        Enum(SupportTier, name="support_tier", values_callable=_values),
        nullable=False,
        default=SupportTier.COMMUNITY,
    )
    limit_team_members = Column(Integer, nullable=False, default=1)

    # Usage counters
    connected_accounts = Column(Integer, nullable=False, default=0)
    scheduled_posts_this_week = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(DateTime, nullable=True)

    # Payment provider linkage, not interpreted here
    payment_method_id = Column(String, nullable=True)
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    stripe_price_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    billing_history = relationship(
        "BillingRecord",
        back_populates="subscription",
        order_by="BillingRecord.date",
        cascade="all, delete-orphan",
    )
    user = relationship("User", backref=backref("subscription", uselist=False))

    @property
    def limits(self) -> dict:
        return {
            "social_accounts": self.limit_social_accounts,
            "scheduled_posts_per_week": self.limit_scheduled_posts_per_week,
            "analytics_tier": self.limit_analytics,
            "support_tier": self.limit_support,
            "team_members": self.limit_team_members,
        }

    @property
    def usage(self) -> dict:
        return {
            "connected_accounts": self.connected_accounts,
            "scheduled_posts_this_week": self.scheduled_posts_this_week,
            "last_reset_date": self.last_reset_date,
        }

    def __repr__(self):
        return f"<Subscription(user_id={self.user_id}, plan_type='{self.plan_type}', status='{self.status}')>"


class BillingRecord(Base):
    """A single charge attempt in a subscription's billing history."""
    __tablename__ = "billing_records"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)

    date = Column(DateTime, nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(
        Enum(BillingStatus, name="billing_status", values_callable=_values),
        nullable=False,
    )
    invoice_id = Column(String, nullable=True)
    description = Column(String, nullable=True)

    subscription = relationship("Subscription", back_populates="billing_history")

    __table_args__ = (
        Index('idx_billing_subscription_date', 'subscription_id', 'date'),
        UniqueConstraint('subscription_id', 'invoice_id', 'status', name='uq_billing_subscription_invoice_status'),
    )
