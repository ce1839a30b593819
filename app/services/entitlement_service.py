"""
Entitlement service - what a user's plan permits and how much they have used.

The first half is pure derived state over an already-loaded Subscription
(no I/O, `now` injectable for tests). The second half are the use cases that
load, compute and commit the record and emit the matching notifications.

All dates are naive UTC.
"""
import calendar
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import TRIAL_PERIOD_DAYS
from app.core.exceptions import (
    ValidationError,
    NotFoundError,
    PlanLimitExceeded,
    SubscriptionExpired,
)
from app.core.plan_limits import (
    PlanType,
    SubscriptionStatus,
    BillingStatus,
    ACTIVE_STATUSES,
    SELECTABLE_PLANS,
    get_plan_limits,
    get_plan_price,
    get_plan_details,
    is_unlimited,
    parse_plan_type,
)
from app.db.models.subscription import Subscription, BillingRecord
from app.db.session import commit_or_rollback
from app.schemas.subscription import (
    BillingRecordResponse,
    LimitCheckResponse,
    SubscriptionOverview,
)
from app.services import notification_events

logger = logging.getLogger(__name__)

ACTION_CONNECT_ACCOUNT = "connect-account"
ACTION_SCHEDULE_POST = "schedule-post"


def _now(now: Optional[datetime] = None) -> datetime:
    return now or datetime.utcnow()


def add_one_month(value: datetime) -> datetime:
    """Same day next month, clamped to the month's last day."""
    year = value.year + value.month // 12
    month = value.month % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


# ============================================
# Pure derived state
# ============================================

def new_subscription(
    user_id: int,
    plan_type: Any = PlanType.FREE_TRIAL,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Build an unsaved subscription with signup defaults.

    free_trial starts in `trial` status with trial_end_date and end_date
    TRIAL_PERIOD_DAYS out; other plans start `active` with no end date.
    """
    plan = parse_plan_type(plan_type)
    now = _now(now)
    trial_end = now + timedelta(days=TRIAL_PERIOD_DAYS)

    subscription = Subscription(
        user_id=user_id,
        plan_type=plan,
        status=SubscriptionStatus.TRIAL if plan == PlanType.FREE_TRIAL else SubscriptionStatus.ACTIVE,
        start_date=now,
        trial_end_date=trial_end,
        end_date=trial_end if plan == PlanType.FREE_TRIAL else None,
        next_billing_date=None,
        currency="USD",
        connected_accounts=0,
        scheduled_posts_this_week=0,
        last_reset_date=now,
    )
    apply_plan_limits(subscription)
    return subscription


def apply_plan_limits(subscription: Subscription) -> Subscription:
    """
    Recompute limits and price from plan_type.

    Deterministic and idempotent. Must be called whenever plan_type changes,
    before the record is committed.
    """
    limits = get_plan_limits(subscription.plan_type)
    subscription.limit_social_accounts = limits["social_accounts"]
    subscription.limit_scheduled_posts_per_week = limits["scheduled_posts_per_week"]
    subscription.limit_analytics = limits["analytics_tier"]
    subscription.limit_support = limits["support_tier"]
    subscription.limit_team_members = limits["team_members"]
    subscription.price = get_plan_price(subscription.plan_type)
    return subscription


def is_expired(subscription: Subscription, now: Optional[datetime] = None) -> bool:
    """True once a free trial passes trial_end_date or any plan passes end_date."""
    now = _now(now)

    if (
        subscription.plan_type == PlanType.FREE_TRIAL
        and subscription.trial_end_date
        and now > subscription.trial_end_date
    ):
        return True

    if subscription.end_date and now > subscription.end_date:
        return True

    return False


def get_days_remaining(subscription: Subscription, now: Optional[datetime] = None) -> int:
    """Whole days left in a free trial (rounded up), 0 for every other plan."""
    if subscription.plan_type != PlanType.FREE_TRIAL or not subscription.trial_end_date:
        return 0

    remaining = subscription.trial_end_date - _now(now)
    days = math.ceil(remaining.total_seconds() / timedelta(days=1).total_seconds())
    return max(0, days)


def has_active_subscription(subscription: Subscription, now: Optional[datetime] = None) -> bool:
    return not is_expired(subscription, now) and subscription.status in ACTIVE_STATUSES


def can_connect_more_accounts(subscription: Subscription) -> bool:
    limit = subscription.limit_social_accounts
    if is_unlimited(limit):
        return True
    return subscription.connected_accounts < limit


def get_week_start(now: Optional[datetime] = None) -> datetime:
    """Most recent Sunday 00:00 (UTC) at or before now."""
    now = _now(now)
    days_since_sunday = (now.weekday() + 1) % 7
    return (now - timedelta(days=days_since_sunday)).replace(hour=0, minute=0, second=0, microsecond=0)


def reset_weekly_usage_if_due(subscription: Subscription, now: Optional[datetime] = None) -> bool:
    """
    Zero the weekly post counter when the last reset predates this week.

    Returns True if the counter was reset. The caller persists the record.
    """
    now = _now(now)
    last_reset = subscription.last_reset_date
    if last_reset is not None and last_reset >= get_week_start(now):
        return False

    subscription.scheduled_posts_this_week = 0
    subscription.last_reset_date = now
    return True


def can_schedule_more_posts(subscription: Subscription, now: Optional[datetime] = None) -> bool:
    """
    Pure check against the weekly post limit.

    Run reset_weekly_usage_if_due first so a stale counter is not held
    against the current week.
    """
    if is_expired(subscription, now):
        return False

    limit = subscription.limit_scheduled_posts_per_week
    return is_unlimited(limit) or subscription.scheduled_posts_this_week < limit


# ============================================
# Use cases
# ============================================

def get_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def _require_subscription(db: Session, user_id: int) -> Subscription:
    subscription = get_subscription(db, user_id)
    if not subscription:
        raise NotFoundError(f"Subscription not found for user_id={user_id}")
    return subscription


def get_or_create_subscription(db: Session, user_id: int, now: Optional[datetime] = None) -> Subscription:
    """Load the user's subscription, creating the free trial on first access."""
    subscription = get_subscription(db, user_id)
    if subscription:
        return subscription

    subscription = new_subscription(user_id, now=now)
    db.add(subscription)
    commit_or_rollback(db)
    db.refresh(subscription)

    logger.info(f"Subscription created: user_id={user_id}, plan={subscription.plan_type.value}, "
                f"trial_end_date={subscription.trial_end_date}")
    return subscription


def refresh_status(db: Session, subscription: Subscription, now: Optional[datetime] = None) -> Subscription:
    """Move an expired subscription to `expired` and notify the user once."""
    if not is_expired(subscription, now):
        return subscription
    if subscription.status in (SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED):
        return subscription

    subscription.status = SubscriptionStatus.EXPIRED
    commit_or_rollback(db)

    plan = subscription.plan_type
    logger.info(f"Subscription expired: user_id={subscription.user_id}, plan={plan.value}")
    notification_events.subscription_expired(
        db, subscription.user_id, plan.value, get_plan_details(plan)["name"]
    )
    return subscription


def change_plan(
    db: Session,
    user_id: int,
    plan_type: Any,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Switch a user to free, standard or premium.

    Limits and price are recomputed explicitly before the commit. Paid plans
    get a next billing date one month out.

    Raises:
        ValidationError: plan_type is unknown or is free_trial. Nothing is written.
    """
    plan = parse_plan_type(plan_type)
    if plan not in SELECTABLE_PLANS:
        raise ValidationError(f"Invalid plan type: {plan.value}. Must be one of "
                              f"{', '.join(p.value for p in SELECTABLE_PLANS)}")

    now = _now(now)
    subscription = get_or_create_subscription(db, user_id, now=now)
    previous_plan = subscription.plan_type

    if previous_plan == plan and subscription.status == SubscriptionStatus.ACTIVE:
        logger.debug(f"Plan unchanged: user_id={user_id}, plan={plan.value}")
        return subscription

    subscription.plan_type = plan
    apply_plan_limits(subscription)
    subscription.status = SubscriptionStatus.ACTIVE
    subscription.start_date = now
    subscription.end_date = None
    subscription.next_billing_date = add_one_month(now) if subscription.price > 0 else None
    commit_or_rollback(db)
    db.refresh(subscription)

    logger.info(f"Plan changed: user_id={user_id}, from={previous_plan.value}, to={plan.value}, "
                f"price={subscription.price}")
    notification_events.subscription_activated(db, user_id, plan.value, get_plan_details(plan)["name"])
    return subscription


def cancel_subscription(db: Session, user_id: int) -> Subscription:
    """Cancel the user's subscription and drop the payment linkage."""
    subscription = _require_subscription(db, user_id)

    subscription.status = SubscriptionStatus.CANCELLED
    subscription.next_billing_date = None
    subscription.payment_method_id = None
    subscription.stripe_subscription_id = None
    commit_or_rollback(db)
    db.refresh(subscription)

    plan = subscription.plan_type
    logger.info(f"Subscription cancelled: user_id={user_id}, plan={plan.value}")
    notification_events.subscription_cancelled(db, user_id, plan.value, get_plan_details(plan)["name"])
    return subscription


def set_payment_method(
    db: Session,
    user_id: int,
    payment_method_id: str,
    stripe_customer_id: Optional[str] = None,
) -> Subscription:
    """
    Store the user's payment method, creating the subscription if needed.

    Passing stripe_customer_id also links the Stripe customer.

    Raises:
        ValidationError: payment_method_id is empty. Nothing is written.
    """
    if not payment_method_id or not payment_method_id.strip():
        raise ValidationError("Payment method ID is required")

    subscription = get_or_create_subscription(db, user_id)
    subscription.payment_method_id = payment_method_id.strip()
    if stripe_customer_id:
        subscription.stripe_customer_id = stripe_customer_id
    commit_or_rollback(db)

    logger.info(f"Payment method set: user_id={user_id}, customer_id={subscription.stripe_customer_id}")
    return subscription


def check_limits(db: Session, user_id: int, action: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Report whether the plan allows one more connect-account or schedule-post.

    Returns:
        Dictionary with action, can_perform, message, current_usage and limits
    """
    if action not in (ACTION_CONNECT_ACCOUNT, ACTION_SCHEDULE_POST):
        raise ValidationError(f"Invalid action: {action!r}")

    subscription = get_or_create_subscription(db, user_id, now=now)
    plan = subscription.plan_type.value
    message = ""

    if action == ACTION_CONNECT_ACCOUNT:
        can_perform = can_connect_more_accounts(subscription)
        if not can_perform:
            message = (f"Your {plan} plan allows {subscription.limit_social_accounts} "
                       f"social account(s). Upgrade to connect more.")
    else:
        if reset_weekly_usage_if_due(subscription, now):
            commit_or_rollback(db)
        can_perform = can_schedule_more_posts(subscription, now)
        if not can_perform and is_expired(subscription, now):
            message = f"Your {plan} subscription has expired. Upgrade to continue scheduling posts."
        elif not can_perform:
            message = (f"Your {plan} plan allows {subscription.limit_scheduled_posts_per_week} "
                       f"scheduled post(s) per week. Upgrade for more.")

    return LimitCheckResponse(
        action=action,
        can_perform=can_perform,
        message=message,
        current_usage=subscription.usage,
        limits=subscription.limits,
    ).model_dump()


def consume_social_account(db: Session, user_id: int) -> Subscription:
    """
    Count a newly connected social account against the plan.

    Raises:
        PlanLimitExceeded: The plan's account limit is already reached
    """
    subscription = get_or_create_subscription(db, user_id)

    if not can_connect_more_accounts(subscription):
        logger.warning(f"Account limit reached: user_id={user_id}, plan={subscription.plan_type.value}, "
                       f"limit={subscription.limit_social_accounts}, used={subscription.connected_accounts}")
        raise PlanLimitExceeded(
            ACTION_CONNECT_ACCOUNT,
            subscription.plan_type.value,
            subscription.limit_social_accounts,
            subscription.connected_accounts,
        )

    subscription.connected_accounts += 1
    commit_or_rollback(db)

    logger.info(f"Account connected: user_id={user_id}, connected_accounts={subscription.connected_accounts}")
    return subscription


def release_social_account(db: Session, user_id: int) -> Subscription:
    """Give back one account slot after a disconnect."""
    subscription = _require_subscription(db, user_id)
    subscription.connected_accounts = max(0, subscription.connected_accounts - 1)
    commit_or_rollback(db)

    logger.info(f"Account released: user_id={user_id}, connected_accounts={subscription.connected_accounts}")
    return subscription


def sync_connected_accounts(db: Session, user_id: int, count: int) -> Subscription:
    """Overwrite the connected-account counter with a fresh recount."""
    if count < 0:
        raise ValidationError(f"Connected account count cannot be negative: {count}")

    subscription = get_or_create_subscription(db, user_id)
    if subscription.connected_accounts != count:
        logger.debug(f"Connected accounts resynced: user_id={user_id}, "
                     f"from={subscription.connected_accounts}, to={count}")
        subscription.connected_accounts = count
        commit_or_rollback(db)
    return subscription


def consume_scheduled_post(db: Session, user_id: int, now: Optional[datetime] = None) -> Subscription:
    """
    Count one scheduled post against this week's allowance.

    Raises:
        SubscriptionExpired: The subscription has expired
        PlanLimitExceeded: This week's allowance is used up
    """
    subscription = get_or_create_subscription(db, user_id, now=now)

    if reset_weekly_usage_if_due(subscription, now):
        logger.debug(f"Weekly post counter reset: user_id={user_id}")
        commit_or_rollback(db)

    plan = subscription.plan_type.value
    if is_expired(subscription, now):
        logger.warning(f"Post scheduling blocked, subscription expired: user_id={user_id}, plan={plan}")
        raise SubscriptionExpired(user_id, plan)

    if not can_schedule_more_posts(subscription, now):
        logger.warning(f"Weekly post limit reached: user_id={user_id}, plan={plan}, "
                       f"limit={subscription.limit_scheduled_posts_per_week}, "
                       f"used={subscription.scheduled_posts_this_week}")
        raise PlanLimitExceeded(
            ACTION_SCHEDULE_POST,
            plan,
            subscription.limit_scheduled_posts_per_week,
            subscription.scheduled_posts_this_week,
        )

    subscription.scheduled_posts_this_week += 1
    commit_or_rollback(db)

    logger.info(f"Post scheduled against plan: user_id={user_id}, "
                f"used={subscription.scheduled_posts_this_week}/{subscription.limit_scheduled_posts_per_week}")
    return subscription


def get_subscription_overview(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Get the user's subscription with plan details and derived state.

    Creates the free trial on first access and marks expired records.
    """
    subscription = get_or_create_subscription(db, user_id, now=now)
    refresh_status(db, subscription, now)

    return SubscriptionOverview.model_validate({
        **{column.name: getattr(subscription, column.name) for column in Subscription.__table__.columns},
        "limits": subscription.limits,
        "usage": subscription.usage,
        "billing_history": [BillingRecordResponse.model_validate(r) for r in subscription.billing_history],
        "plan_details": get_plan_details(subscription.plan_type),
        "days_remaining": get_days_remaining(subscription, now),
        "has_active_subscription": has_active_subscription(subscription, now),
        "is_expired": is_expired(subscription, now),
    }).model_dump()


def add_billing_record(
    db: Session,
    subscription: Subscription,
    amount: float,
    status: Any,
    invoice_id: Optional[str] = None,
    description: Optional[str] = None,
    date: Optional[datetime] = None,
) -> BillingRecord:
    """
    Append an entry to the subscription's billing history and commit.

    Each invoice outcome is recorded once per subscription: when a record with
    the same invoice_id and status exists it is returned instead (pending
    changes on the subscription are still committed). A failed attempt
    followed by a successful retry of the same invoice yields two records.
    """
    try:
        billing_status = BillingStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid billing status: {status!r}") from None

    if invoice_id:
        existing = db.query(BillingRecord).filter(
            BillingRecord.subscription_id == subscription.id,
            BillingRecord.invoice_id == invoice_id,
            BillingRecord.status == billing_status,
        ).first()
        if existing:
            commit_or_rollback(db)
            logger.info(f"Billing record already exists: user_id={subscription.user_id}, invoice_id={invoice_id}")
            return existing

    record = BillingRecord(
        date=_now(date),
        amount=amount,
        status=billing_status,
        invoice_id=invoice_id,
        description=description,
    )
    subscription.billing_history.append(record)
    commit_or_rollback(db)

    logger.info(f"Billing record added: user_id={subscription.user_id}, amount={amount}, "
                f"status={billing_status.value}, invoice_id={invoice_id}")
    return record


def get_billing_history(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Billing history newest first; empty when the user has no subscription."""
    subscription = get_subscription(db, user_id)
    if not subscription:
        return []

    records = sorted(subscription.billing_history, key=lambda r: r.date, reverse=True)
    return [BillingRecordResponse.model_validate(r).model_dump() for r in records]
