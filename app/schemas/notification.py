"""
Pydantic schemas for notifications.
"""
from typing import Optional, Dict, Any, List
from datetime import datetime
from pydantic import BaseModel, Field

from app.db.models.notification import (
    NotificationType,
    TITLE_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
)


class NotificationCreate(BaseModel):
    """Validated input for recording a notification."""
    user_id: int
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NotificationResponse(BaseModel):
    """Schema for a stored notification."""
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 12,
                "user_id": 3,
                "type": "post_published",
                "title": "Post Published",
                "message": "Your post \"Launch day!\" was successfully published to facebook, x",
                "metadata": {"platforms": ["facebook", "x"], "postContent": "Launch day!"},
                "is_read": False,
                "read_at": None,
                "created_at": "2026-01-15T10:30:00"
            }
        }


class PaginationInfo(BaseModel):
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool


class NotificationListResponse(BaseModel):
    """Schema for a page of notifications."""
    notifications: List[NotificationResponse]
    pagination: PaginationInfo
    unread_count: int = Field(..., ge=0)
