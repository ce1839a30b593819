"""
Unit tests for domain-event notifications.
Tests titles, message templates and metadata of each event helper.
"""
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models.user import User
from app.db.models.notification import NotificationType
from app.services import notification_events


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def user_id(db):
    user = User(full_name="Test User", email="test@example.com")
    db.add(user)
    db.commit()
    return user.id


def test_social_account_connected(db, user_id):
    n = notification_events.social_account_connected(db, user_id, "instagram", "socialflow")
    assert n.type == NotificationType.SOCIAL_ACCOUNT_CONNECTED
    assert n.title == "Account Connected"
    assert n.message == "Successfully connected your instagram account (@socialflow)"
    assert n.event_metadata == {"platform": "instagram", "accountName": "socialflow"}


def test_social_account_disconnected(db, user_id):
    n = notification_events.social_account_disconnected(db, user_id, "x", "socialflow")
    assert n.title == "Account Disconnected"
    assert "@socialflow" in n.message


def test_connection_failed_shortens_long_errors(db, user_id):
    """Test a huge provider error still fits within the message limit."""
    error = "E" * 2000
    n = notification_events.social_account_connection_failed(db, user_id, "linkedin", error)
    assert n.title == "Connection Failed"
    assert len(n.message) <= 500
    assert n.message.startswith("Failed to connect linkedin account: ")
    assert n.event_metadata["error"] == error


def test_post_published_preview(db, user_id):
    content = "A" * 80
    n = notification_events.post_published(db, user_id, ["facebook", "x"], content)
    assert n.type == NotificationType.POST_PUBLISHED
    assert n.title == "Post Published"
    assert n.message == f"Your post \"{'A' * 50}...\" was successfully published to facebook, x"
    assert n.event_metadata == {"platforms": ["facebook", "x"], "postContent": content}


def test_post_published_media_only(db, user_id):
    n = notification_events.post_published(db, user_id, "instagram")
    assert "\"Media post\"" in n.message
    assert n.event_metadata["platforms"] == "instagram"


def test_post_scheduled(db, user_id):
    when = datetime(2026, 3, 1, 15, 30)
    n = notification_events.post_scheduled(db, user_id, ["x"], when, "Hello")
    assert n.title == "Post Scheduled"
    assert n.message == "Your post \"Hello\" is scheduled for 2026-03-01 15:30 on x"
    assert n.event_metadata["scheduledTime"] == "2026-03-01T15:30:00"


def test_post_publish_failed(db, user_id):
    n = notification_events.post_publish_failed(db, user_id, ["facebook"], "token expired", "Hi")
    assert n.type == NotificationType.POST_PUBLISH_FAILED
    assert n.title == "Post Failed"
    assert n.message == "Failed to publish your post \"Hi\" to facebook: token expired"


def test_post_schedule_failed(db, user_id):
    n = notification_events.post_schedule_failed(db, user_id, ["x"], "in the past")
    assert n.title == "Scheduling Failed"
    assert n.event_metadata["error"] == "in the past"


def test_scheduled_post_edited(db, user_id):
    n = notification_events.scheduled_post_edited(db, user_id, "Updated copy")
    assert n.title == "Scheduled Post Updated"
    assert n.message == "Your scheduled post \"Updated copy\" has been updated"


def test_subscription_events(db, user_id):
    activated = notification_events.subscription_activated(db, user_id, "premium", "Premium Plan")
    assert activated.title == "Subscription Activated"
    assert "Premium Plan" in activated.message
    assert activated.event_metadata == {"planType": "premium", "planName": "Premium Plan"}

    cancelled = notification_events.subscription_cancelled(db, user_id, "premium", "Premium Plan")
    assert cancelled.type == NotificationType.SUBSCRIPTION_CANCELLED

    expired = notification_events.subscription_expired(db, user_id, "free_trial", "Free Trial")
    assert expired.title == "Subscription Expired"


def test_subscription_renewed(db, user_id):
    n = notification_events.subscription_renewed(
        db, user_id, "standard", "Standard Plan", datetime(2026, 2, 14)
    )
    assert n.title == "Subscription Renewed"
    assert n.message.endswith("Next billing date: 2026-02-14")
    assert n.event_metadata["nextBillingDate"] == "2026-02-14T00:00:00"


def test_profile_events(db, user_id):
    updated = notification_events.profile_updated(db, user_id, ["name", "bio"])
    assert updated.message == "Your profile has been updated. Changes: name, bio"
    assert updated.event_metadata == {"changedFields": ["name", "bio"]}

    password = notification_events.password_changed(db, user_id)
    assert password.type == NotificationType.PASSWORD_CHANGED
    assert "timestamp" in password.event_metadata

    picture = notification_events.profile_picture_updated(db, user_id)
    assert picture.title == "Profile Picture Updated"
