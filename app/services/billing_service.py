"""
Billing service for Stripe webhook reconciliation.

Translates Stripe subscription and invoice events into subscription state
changes and notifications. No outbound Stripe API calls are made here; the
only use of the Stripe SDK is local webhook signature verification.
"""
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from app.core import config
from app.core.exceptions import NotFoundError, WebhookVerificationError
from app.core.logging_config import sanitize_log_data
from app.core.plan_limits import (
    PlanType,
    SubscriptionStatus,
    BillingStatus,
    get_plan_details,
)
from app.db.models.subscription import Subscription
from app.db.session import commit_or_rollback
from app.services import entitlement_service, notification_events

logger = logging.getLogger(__name__)

# Stripe statuses that are not members of SubscriptionStatus
STRIPE_STATUS_ALIASES: Dict[str, SubscriptionStatus] = {
    "trialing": SubscriptionStatus.TRIAL,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
    "unpaid": SubscriptionStatus.PAST_DUE,
}


def get_plan_from_price_id(price_id: Optional[str]) -> PlanType:
    """Premium price ID maps to premium; any other price maps to standard."""
    if price_id and price_id == config.STRIPE_PRICE_ID_PREMIUM:
        return PlanType.PREMIUM
    if price_id != config.STRIPE_PRICE_ID_STANDARD:
        logger.warning(f"Unknown Stripe price_id={price_id}, defaulting to standard plan")
    return PlanType.STANDARD


def map_provider_status(status: Optional[str]) -> SubscriptionStatus:
    """Map a Stripe subscription status onto SubscriptionStatus."""
    if status == "active":
        return SubscriptionStatus.ACTIVE
    try:
        return SubscriptionStatus(status)
    except ValueError:
        pass
    if status in STRIPE_STATUS_ALIASES:
        return STRIPE_STATUS_ALIASES[status]
    logger.warning(f"Unknown Stripe subscription status '{status}', treating as inactive")
    return SubscriptionStatus.INACTIVE


def _timestamp_to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.utcfromtimestamp(int(value))
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Ignoring invalid Stripe timestamp: {value!r}")
        return None


def _price_id(stripe_subscription: Dict) -> Optional[str]:
    items = (stripe_subscription.get("items") or {}).get("data") or [{}]
    return (items[0].get("price") or {}).get("id")


def _metadata_user_id(obj: Dict) -> Optional[int]:
    metadata = obj.get("metadata") or {}
    user_id = metadata.get("user_id") or metadata.get("userId")
    if user_id is None:
        return None
    try:
        return int(user_id)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric user_id in Stripe metadata: {user_id!r}")
        return None


def _resolve_user_id(db: Session, obj: Dict, subscription_id: Optional[str] = None) -> int:
    """Find the user an event belongs to: metadata first, then stored Stripe IDs."""
    user_id = _metadata_user_id(obj)
    if user_id is not None:
        return user_id

    customer_id = obj.get("customer")
    query = db.query(Subscription)
    record = None
    if subscription_id:
        record = query.filter(Subscription.stripe_subscription_id == subscription_id).first()
    if not record and customer_id:
        record = query.filter(Subscription.stripe_customer_id == customer_id).first()

    if not record:
        raise NotFoundError(
            f"Cannot identify user for customer_id={customer_id}, subscription_id={subscription_id}"
        )
    return record.user_id


def sync_subscription_from_stripe(db: Session, user_id: int, stripe_subscription: Dict) -> Subscription:
    """
    Reconcile the user's subscription with a Stripe subscription object.

    Looks up or creates the record, maps price ID to plan and Stripe status to
    status, stores the provider IDs and period boundaries and recomputes plan
    limits before committing.

    Args:
        db: Database session
        user_id: Owner of the subscription
        stripe_subscription: Stripe subscription object (as a dict)

    Returns:
        Updated subscription object
    """
    subscription = entitlement_service.get_or_create_subscription(db, user_id)

    previous_plan = subscription.plan_type
    previous_status = subscription.status
    previous_period_end = subscription.current_period_end

    price_id = _price_id(stripe_subscription)
    plan = get_plan_from_price_id(price_id)
    status = map_provider_status(stripe_subscription.get("status"))
    period_start = _timestamp_to_datetime(stripe_subscription.get("current_period_start"))
    period_end = _timestamp_to_datetime(stripe_subscription.get("current_period_end"))

    subscription.plan_type = plan
    entitlement_service.apply_plan_limits(subscription)
    subscription.status = status
    subscription.stripe_subscription_id = stripe_subscription.get("id")
    subscription.stripe_customer_id = stripe_subscription.get("customer") or subscription.stripe_customer_id
    subscription.stripe_price_id = price_id
    subscription.current_period_start = period_start
    subscription.current_period_end = period_end
    subscription.start_date = period_start or datetime.utcnow()
    subscription.end_date = period_end
    subscription.next_billing_date = period_end

    commit_or_rollback(db)
    db.refresh(subscription)

    logger.info(f"Subscription synced from Stripe: user_id={user_id}, plan={plan.value}, "
                f"status={status.value}, subscription_id={subscription.stripe_subscription_id}")

    plan_name = get_plan_details(plan)["name"]
    if status == SubscriptionStatus.ACTIVE:
        if previous_status != SubscriptionStatus.ACTIVE or previous_plan != plan:
            notification_events.subscription_activated(db, user_id, plan.value, plan_name)
        elif period_end and previous_period_end and period_end > previous_period_end:
            notification_events.subscription_renewed(db, user_id, plan.value, plan_name, period_end)

    return subscription


def handle_checkout_session_completed(event_data: Dict, db: Session) -> Optional[Subscription]:
    """
    Handle checkout.session.completed webhook event.

    Links the Stripe customer and subscription IDs to the user. Plan and
    status follow from the customer.subscription.* events.
    """
    session_data = event_data.get("object", {})
    if session_data.get("mode") not in (None, "subscription"):
        logger.info(f"Ignoring non-subscription checkout: session_id={session_data.get('id')}")
        return None

    user_id = _resolve_user_id(db, session_data)
    subscription = entitlement_service.get_or_create_subscription(db, user_id)
    subscription.stripe_customer_id = session_data.get("customer") or subscription.stripe_customer_id
    subscription.stripe_subscription_id = session_data.get("subscription") or subscription.stripe_subscription_id
    commit_or_rollback(db)

    logger.info(f"Checkout completed: user_id={user_id}, subscription_id={subscription.stripe_subscription_id}")
    return subscription


def handle_subscription_created(event_data: Dict, db: Session) -> Subscription:
    """Handle customer.subscription.created webhook event."""
    stripe_subscription = event_data.get("object", {})
    user_id = _resolve_user_id(db, stripe_subscription, stripe_subscription.get("id"))
    return sync_subscription_from_stripe(db, user_id, stripe_subscription)


def handle_subscription_updated(event_data: Dict, db: Session) -> Subscription:
    """Handle customer.subscription.updated webhook event."""
    stripe_subscription = event_data.get("object", {})
    user_id = _resolve_user_id(db, stripe_subscription, stripe_subscription.get("id"))
    return sync_subscription_from_stripe(db, user_id, stripe_subscription)


def handle_subscription_deleted(event_data: Dict, db: Session) -> Subscription:
    """
    Handle customer.subscription.deleted webhook event.

    Marks the subscription cancelled and clears the Stripe subscription ID
    while keeping the customer ID for reactivation.
    """
    stripe_subscription = event_data.get("object", {})
    user_id = _resolve_user_id(db, stripe_subscription, stripe_subscription.get("id"))

    subscription = entitlement_service.get_subscription(db, user_id)
    if not subscription:
        raise NotFoundError(f"Subscription not found for user_id={user_id}")

    subscription.status = SubscriptionStatus.CANCELLED
    subscription.stripe_subscription_id = None
    subscription.next_billing_date = None
    commit_or_rollback(db)

    plan = subscription.plan_type
    logger.info(f"Subscription deleted: user_id={user_id}, plan={plan.value}")
    notification_events.subscription_cancelled(db, user_id, plan.value, get_plan_details(plan)["name"])
    return subscription


def _invoice_subscription(db: Session, invoice_data: Dict, event_type: str) -> Optional[Subscription]:
    subscription_id = invoice_data.get("subscription")
    if not subscription_id:
        logger.warning(f"{event_type}: No subscription ID in invoice")
        return None

    subscription = db.query(Subscription).filter(
        Subscription.stripe_subscription_id == subscription_id
    ).first()
    if not subscription:
        logger.warning(f"{event_type}: Subscription not found for subscription_id={subscription_id}")
    return subscription


def _invoice_amount(invoice_data: Dict, key: str) -> float:
    # Stripe amounts are in the smallest currency unit
    return (invoice_data.get(key) or 0) / 100


def handle_invoice_payment_succeeded(event_data: Dict, db: Session) -> Optional[Subscription]:
    """
    Handle invoice.payment_succeeded webhook event.

    Records a paid billing entry and keeps the subscription active.
    """
    invoice_data = event_data.get("object", {})
    subscription = _invoice_subscription(db, invoice_data, "invoice.payment_succeeded")
    if not subscription:
        return None

    subscription.status = SubscriptionStatus.ACTIVE
    entitlement_service.add_billing_record(
        db,
        subscription,
        amount=_invoice_amount(invoice_data, "amount_paid"),
        status=BillingStatus.PAID,
        invoice_id=invoice_data.get("id"),
        description=invoice_data.get("description") or f"{get_plan_details(subscription.plan_type)['name']} payment",
        date=_timestamp_to_datetime(invoice_data.get("created")),
    )

    logger.info(f"Invoice payment succeeded: user_id={subscription.user_id}, invoice_id={invoice_data.get('id')}")
    return subscription


def handle_invoice_payment_failed(event_data: Dict, db: Session) -> Optional[Subscription]:
    """
    Handle invoice.payment_failed webhook event.

    Records a failed billing entry and moves the subscription to past_due.
    """
    invoice_data = event_data.get("object", {})
    subscription = _invoice_subscription(db, invoice_data, "invoice.payment_failed")
    if not subscription:
        return None

    subscription.status = SubscriptionStatus.PAST_DUE
    entitlement_service.add_billing_record(
        db,
        subscription,
        amount=_invoice_amount(invoice_data, "amount_due"),
        status=BillingStatus.FAILED,
        invoice_id=invoice_data.get("id"),
        description=invoice_data.get("description") or "Payment failed",
        date=_timestamp_to_datetime(invoice_data.get("created")),
    )

    logger.warning(f"Invoice payment failed: user_id={subscription.user_id}, invoice_id={invoice_data.get('id')}")
    return subscription


WEBHOOK_HANDLERS: Dict[str, Callable[[Dict, Session], Any]] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_created,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
}


def handle_webhook_event(event: Dict, db: Session) -> Any:
    """
    Dispatch a verified Stripe event to its handler.

    Unknown event types are logged and ignored. Handler errors propagate so
    the caller can answer with a non-2xx status and let Stripe retry.
    """
    event_type = event.get("type")
    handler = WEBHOOK_HANDLERS.get(event_type)
    if not handler:
        logger.info(f"Unhandled Stripe event type: {event_type}")
        return None

    logger.info(f"Processing Stripe event: type={event_type}, id={event.get('id')}")
    metadata = (event.get("data", {}).get("object") or {}).get("metadata") or {}
    logger.debug(f"Stripe event metadata: {sanitize_log_data(metadata)}")
    return handler(event.get("data", {}), db)


def verify_webhook(request_body: bytes, signature: str, secret: Optional[str] = None) -> Dict:
    """
    Verify and parse Stripe webhook event.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value
        secret: Webhook signing secret (defaults to STRIPE_WEBHOOK_SECRET)

    Returns:
        Parsed event dictionary

    Raises:
        WebhookVerificationError: If webhook verification fails
    """
    secret = secret or config.STRIPE_WEBHOOK_SECRET
    if not secret:
        raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET not configured")

    try:
        stripe.WebhookSignature.verify_header(
            request_body, signature, secret, stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(request_body)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise WebhookVerificationError(f"Invalid webhook payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Invalid signature: {e}") from e

    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event
