"""
Notification model - an append-only per-user event log with read state.
"""
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Index, Enum
from sqlalchemy.orm import relationship
from app.db.base import Base


class NotificationType(str, enum.Enum):
    """Domain events a notification can record."""
    SOCIAL_ACCOUNT_CONNECTED = "social_account_connected"
    SOCIAL_ACCOUNT_DISCONNECTED = "social_account_disconnected"
    SOCIAL_ACCOUNT_CONNECTION_FAILED = "social_account_connection_failed"
    POST_PUBLISHED = "post_published"
    POST_SCHEDULED = "post_scheduled"
    POST_PUBLISH_FAILED = "post_publish_failed"
    POST_SCHEDULE_FAILED = "post_schedule_failed"
    SCHEDULED_POST_EDITED = "scheduled_post_edited"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    PROFILE_PICTURE_UPDATED = "profile_picture_updated"


TITLE_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 500


class Notification(Base):
    """
    Notification model.

    Immutable once written except for the read flag. `event_metadata` maps to
    the `metadata` column (the attribute name is reserved by SQLAlchemy).
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    type = Column(
        Enum(NotificationType, name="notification_type",
             values_callable=lambda e: [member.value for member in e]),
        nullable=False,
        index=True,
    )
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    message = Column(String(MESSAGE_MAX_LENGTH), nullable=False)
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)

    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User", backref="notifications")

    __table_args__ = (
        Index('idx_notification_user_created', 'user_id', 'created_at'),
        Index('idx_notification_user_read_created', 'user_id', 'is_read', 'created_at'),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}', is_read={self.is_read})>"
