"""
Notification service - records domain events per user and manages read state.

Everything here must succeed or raise, except get_unread_count, which is a
best-effort badge counter and returns 0 on any fault.

mark_as_read and mark_as_unread return the live ORM Notification. Deleted
rows no longer exist once committed, so delete_notification returns a
NotificationResponse snapshot taken before the delete.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

import pydantic
from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.db.session import commit_or_rollback
from app.db.models.notification import Notification, NotificationType
from app.schemas.notification import (
    NotificationCreate,
    NotificationResponse,
    NotificationListResponse,
    PaginationInfo,
)

logger = logging.getLogger(__name__)


def _parse_type(value: Any) -> NotificationType:
    try:
        return NotificationType(value)
    except ValueError:
        raise ValidationError(f"Invalid notification type: {value!r}") from None


def create_notification(
    db: Session,
    user_id: int,
    type: Any,
    title: str,
    message: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Notification:
    """
    Validate and persist a notification.

    Args:
        db: Database session
        user_id: Owner of the notification
        type: A NotificationType or its string value
        title: Up to 100 characters
        message: Up to 500 characters
        metadata: Free-form JSON-serialisable details

    Returns:
        The stored Notification

    Raises:
        ValidationError: Unknown type or oversized/empty title or message.
            Nothing is written in that case.
    """
    try:
        payload = NotificationCreate(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            metadata=metadata or {},
        )
    except pydantic.ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        logger.warning(f"Rejected notification: user_id={user_id}, type={type}, invalid={fields}")
        raise ValidationError(f"Invalid notification ({fields})") from e

    notification = Notification(
        user_id=payload.user_id,
        type=payload.type,
        title=payload.title,
        message=payload.message,
        event_metadata=payload.metadata,
    )
    db.add(notification)
    commit_or_rollback(db)
    db.refresh(notification)

    logger.info(f"Notification created: id={notification.id}, user_id={user_id}, type={payload.type.value}")
    return notification


def get_unread_count(db: Session, user_id: int) -> int:
    """Count unread notifications. Returns 0 instead of raising on any fault."""
    try:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        ).count()
    except Exception as e:
        logger.error(f"Failed to count unread notifications for user_id={user_id}: {e}", exc_info=True)
        db.rollback()
        return 0


def _find(db: Session, notification_id: int, user_id: Optional[int]) -> Optional[Notification]:
    query = db.query(Notification).filter(Notification.id == notification_id)
    if user_id is not None:
        query = query.filter(Notification.user_id == user_id)
    return query.first()


def mark_as_read(db: Session, notification_id: int, user_id: Optional[int] = None) -> Optional[Notification]:
    """
    Flip a notification to read.

    Passing user_id restricts the lookup to that owner. Returns None if no
    matching notification exists; marking an already-read one is a no-op.
    """
    notification = _find(db, notification_id, user_id)
    if not notification:
        return None

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        commit_or_rollback(db)
        db.refresh(notification)
        logger.debug(f"Notification marked read: id={notification_id}")

    return notification


def mark_as_unread(db: Session, notification_id: int, user_id: Optional[int] = None) -> Optional[Notification]:
    """Flip a notification back to unread. Returns None if not found."""
    notification = _find(db, notification_id, user_id)
    if not notification:
        return None

    if notification.is_read:
        notification.is_read = False
        notification.read_at = None
        commit_or_rollback(db)
        db.refresh(notification)
        logger.debug(f"Notification marked unread: id={notification_id}")

    return notification


def mark_all_as_read(db: Session, user_id: int) -> Dict[str, int]:
    """Mark every unread notification of a user as read."""
    matched = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).update(
        {Notification.is_read: True, Notification.read_at: datetime.utcnow()},
        synchronize_session=False,
    )
    commit_or_rollback(db)

    logger.info(f"Marked all notifications read: user_id={user_id}, matched={matched}")
    return {"matched_count": matched}


def get_notifications(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
    type: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Get a page of a user's notifications, newest first.

    Returns:
        Dictionary with notifications, pagination (page, limit, total,
        total_pages, has_next, has_prev) and unread_count
    """
    if page < 1 or limit < 1:
        raise ValidationError(f"page and limit must be positive (page={page}, limit={limit})")

    query = db.query(Notification).filter(Notification.user_id == user_id)

    if unread_only:
        query = query.filter(Notification.is_read.is_(False))

    if type is not None:
        query = query.filter(Notification.type == _parse_type(type))

    total = query.count()
    offset = (page - 1) * limit
    notifications = (
        query.order_by(desc(Notification.created_at), desc(Notification.id))
        .offset(offset)
        .limit(limit)
        .all()
    )

    total_pages = math.ceil(total / limit)
    response = NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        pagination=PaginationInfo(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
        unread_count=get_unread_count(db, user_id),
    )

    logger.debug(f"Notifications listed: user_id={user_id}, total={total}, page={page}")
    return response.model_dump()


def delete_notification(db: Session, notification_id: int, user_id: int) -> Optional[NotificationResponse]:
    """
    Delete a notification owned by user_id.

    Returns a NotificationResponse snapshot of the deleted notification (not
    the ORM row, which is gone after the commit), or None when it does not
    exist or belongs to another user (in which case nothing is deleted).
    """
    notification = _find(db, notification_id, user_id)
    if not notification:
        logger.warning(f"Delete skipped, notification not found: id={notification_id}, user_id={user_id}")
        return None

    snapshot = NotificationResponse.model_validate(notification)
    db.delete(notification)
    commit_or_rollback(db)

    logger.info(f"Notification deleted: id={notification_id}, user_id={user_id}")
    return snapshot


def delete_all_notifications(db: Session, user_id: int) -> Dict[str, int]:
    """Delete every notification of a user."""
    deleted = db.query(Notification).filter(
        Notification.user_id == user_id
    ).delete(synchronize_session=False)
    commit_or_rollback(db)

    logger.info(f"All notifications deleted: user_id={user_id}, deleted={deleted}")
    return {"deleted_count": deleted}
