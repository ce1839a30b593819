"""
Domain-event notifications.

One helper per notification type. Each composes the fixed title and message
template for the event and records it through create_notification.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from sqlalchemy.orm import Session

from app.db.models.notification import Notification, NotificationType
from app.services.notification_service import create_notification

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50
ERROR_LENGTH = 200

Platforms = Union[str, Iterable[str]]


def _platform_list(platforms: Platforms) -> str:
    if isinstance(platforms, str):
        return platforms
    return ", ".join(platforms)


def _platforms_value(platforms: Platforms) -> Any:
    return platforms if isinstance(platforms, str) else list(platforms)


def _preview(post_content: Optional[str]) -> str:
    if not post_content:
        return "Media post"
    if len(post_content) > PREVIEW_LENGTH:
        return post_content[:PREVIEW_LENGTH] + "..."
    return post_content


def _shorten(text: Any, length: int = ERROR_LENGTH) -> str:
    text = str(text)
    return text if len(text) <= length else text[:length - 3] + "..."


def _isoformat(value: Union[datetime, str, None]) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _as_datetime(value: Union[datetime, str]) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


# Social accounts

def social_account_connected(db: Session, user_id: int, platform: str, account_name: str) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SOCIAL_ACCOUNT_CONNECTED,
        "Account Connected",
        f"Successfully connected your {platform} account (@{account_name})",
        {"platform": platform, "accountName": account_name},
    )


def social_account_disconnected(db: Session, user_id: int, platform: str, account_name: str) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SOCIAL_ACCOUNT_DISCONNECTED,
        "Account Disconnected",
        f"Your {platform} account (@{account_name}) has been disconnected",
        {"platform": platform, "accountName": account_name},
    )


def social_account_connection_failed(db: Session, user_id: int, platform: str, error: Any) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SOCIAL_ACCOUNT_CONNECTION_FAILED,
        "Connection Failed",
        f"Failed to connect {platform} account: {_shorten(error)}",
        {"platform": platform, "error": str(error)},
    )


# Posts

def post_published(db: Session, user_id: int, platforms: Platforms, post_content: Optional[str] = None) -> Notification:
    logger.debug(f"Recording publish success: user_id={user_id}, platforms={platforms}")
    return create_notification(
        db, user_id,
        NotificationType.POST_PUBLISHED,
        "Post Published",
        f"Your post \"{_preview(post_content)}\" was successfully published to {_platform_list(platforms)}",
        {"platforms": _platforms_value(platforms), "postContent": post_content},
    )


def post_scheduled(
    db: Session,
    user_id: int,
    platforms: Platforms,
    scheduled_time: Union[datetime, str],
    post_content: Optional[str] = None,
) -> Notification:
    time_str = _as_datetime(scheduled_time).strftime("%Y-%m-%d %H:%M")
    return create_notification(
        db, user_id,
        NotificationType.POST_SCHEDULED,
        "Post Scheduled",
        f"Your post \"{_preview(post_content)}\" is scheduled for {time_str} on {_platform_list(platforms)}",
        {
            "platforms": _platforms_value(platforms),
            "scheduledTime": _isoformat(scheduled_time),
            "postContent": post_content,
        },
    )


def post_publish_failed(
    db: Session,
    user_id: int,
    platforms: Platforms,
    error: Any,
    post_content: Optional[str] = None,
) -> Notification:
    logger.debug(f"Recording publish failure: user_id={user_id}, platforms={platforms}, error={error}")
    return create_notification(
        db, user_id,
        NotificationType.POST_PUBLISH_FAILED,
        "Post Failed",
        f"Failed to publish your post \"{_preview(post_content)}\" to {_platform_list(platforms)}: {_shorten(error)}",
        {"platforms": _platforms_value(platforms), "error": str(error), "postContent": post_content},
    )


def post_schedule_failed(
    db: Session,
    user_id: int,
    platforms: Platforms,
    error: Any,
    post_content: Optional[str] = None,
) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.POST_SCHEDULE_FAILED,
        "Scheduling Failed",
        f"Failed to schedule your post \"{_preview(post_content)}\" for {_platform_list(platforms)}: {_shorten(error)}",
        {"platforms": _platforms_value(platforms), "error": str(error), "postContent": post_content},
    )


def scheduled_post_edited(db: Session, user_id: int, post_content: Optional[str] = None) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SCHEDULED_POST_EDITED,
        "Scheduled Post Updated",
        f"Your scheduled post \"{_preview(post_content)}\" has been updated",
        {"postContent": post_content},
    )


# Subscriptions

def subscription_activated(db: Session, user_id: int, plan_type: str, plan_name: str) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SUBSCRIPTION_ACTIVATED,
        "Subscription Activated",
        f"Your {plan_name} subscription is now active! Enjoy your enhanced features.",
        {"planType": plan_type, "planName": plan_name},
    )


def subscription_cancelled(db: Session, user_id: int, plan_type: str, plan_name: str) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SUBSCRIPTION_CANCELLED,
        "Subscription Cancelled",
        f"Your {plan_name} subscription has been cancelled. You'll retain access until your billing period ends.",
        {"planType": plan_type, "planName": plan_name},
    )


def subscription_expired(db: Session, user_id: int, plan_type: str, plan_name: str) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.SUBSCRIPTION_EXPIRED,
        "Subscription Expired",
        f"Your {plan_name} subscription has expired. Upgrade to continue enjoying premium features.",
        {"planType": plan_type, "planName": plan_name},
    )


def subscription_renewed(
    db: Session,
    user_id: int,
    plan_type: str,
    plan_name: str,
    next_billing_date: Union[datetime, str],
) -> Notification:
    billing_str = _as_datetime(next_billing_date).strftime("%Y-%m-%d")
    return create_notification(
        db, user_id,
        NotificationType.SUBSCRIPTION_RENEWED,
        "Subscription Renewed",
        f"Your {plan_name} subscription has been renewed. Next billing date: {billing_str}",
        {"planType": plan_type, "planName": plan_name, "nextBillingDate": _isoformat(next_billing_date)},
    )


# Profile

def profile_updated(db: Session, user_id: int, changed_fields: Union[str, Iterable[str]]) -> Notification:
    fields = changed_fields if isinstance(changed_fields, str) else list(changed_fields)
    fields_list = fields if isinstance(fields, str) else ", ".join(fields)
    return create_notification(
        db, user_id,
        NotificationType.PROFILE_UPDATED,
        "Profile Updated",
        _shorten(f"Your profile has been updated. Changes: {fields_list}", 500),
        {"changedFields": fields},
    )


def password_changed(db: Session, user_id: int) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.PASSWORD_CHANGED,
        "Password Changed",
        "Your password has been successfully changed for security.",
        {"timestamp": datetime.utcnow().isoformat()},
    )


def profile_picture_updated(db: Session, user_id: int) -> Notification:
    return create_notification(
        db, user_id,
        NotificationType.PROFILE_PICTURE_UPDATED,
        "Profile Picture Updated",
        "Your profile picture has been updated successfully.",
        {"timestamp": datetime.utcnow().isoformat()},
    )
