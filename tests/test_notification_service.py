"""
Unit tests for notification service.
Tests validation, pagination, read state and ownership checks.
"""
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models.user import User
from app.db.models.notification import Notification, NotificationType
from app.core.exceptions import ValidationError
from app.schemas.notification import NotificationResponse
from app.services.notification_service import (
    create_notification,
    get_unread_count,
    mark_as_read,
    mark_as_unread,
    mark_all_as_read,
    get_notifications,
    delete_notification,
    delete_all_notifications,
)


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
def test_user(db):
    """Create a test user."""
    user = User(full_name="Test User", email="test@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = User(full_name="Other User", email="other@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _create(db, user_id, title="Post Published", message="Your post was published", **kwargs):
    return create_notification(db, user_id, NotificationType.POST_PUBLISHED, title, message, **kwargs)


def test_create_notification(db, test_user):
    notification = _create(db, test_user.id, metadata={"platforms": ["x"]})

    assert notification.id is not None
    assert notification.type == NotificationType.POST_PUBLISHED
    assert notification.is_read is False
    assert notification.read_at is None
    assert notification.event_metadata == {"platforms": ["x"]}
    assert notification.created_at is not None


def test_create_notification_accepts_type_string(db, test_user):
    notification = create_notification(db, test_user.id, "password_changed", "Password Changed", "Done")
    assert notification.type == NotificationType.PASSWORD_CHANGED
    assert notification.event_metadata == {}


def test_title_length_boundary(db, test_user):
    """Test a 100-character title is accepted and 101 is rejected."""
    assert _create(db, test_user.id, title="t" * 100).title == "t" * 100

    with pytest.raises(ValidationError):
        _create(db, test_user.id, title="t" * 101)

    assert db.query(Notification).count() == 1


def test_message_length_boundary(db, test_user):
    """Test a 500-character message is accepted and 501 is rejected."""
    assert len(_create(db, test_user.id, message="m" * 500).message) == 500

    with pytest.raises(ValidationError):
        _create(db, test_user.id, message="m" * 501)

    assert db.query(Notification).count() == 1


def test_empty_title_rejected(db, test_user):
    with pytest.raises(ValidationError):
        _create(db, test_user.id, title="")


def test_unknown_type_rejected(db, test_user):
    with pytest.raises(ValidationError):
        create_notification(db, test_user.id, "something_happened", "Title", "Message")
    assert db.query(Notification).count() == 0


def test_unread_count(db, test_user, other_user):
    first = _create(db, test_user.id)
    _create(db, test_user.id)
    _create(db, other_user.id)

    assert get_unread_count(db, test_user.id) == 2
    mark_as_read(db, first.id)
    assert get_unread_count(db, test_user.id) == 1


def test_unread_count_masks_store_errors(db, test_user, monkeypatch):
    """Test the badge counter returns 0 when the query fails."""
    _create(db, test_user.id)

    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT count(*)", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "query", broken_query)
    assert get_unread_count(db, test_user.id) == 0


def test_mark_as_read_and_unread(db, test_user):
    notification = _create(db, test_user.id)

    read = mark_as_read(db, notification.id)
    assert read.is_read is True
    assert read.read_at is not None

    unread = mark_as_unread(db, notification.id)
    assert unread.is_read is False
    assert unread.read_at is None


def test_mark_as_read_twice_is_noop(db, test_user):
    notification = _create(db, test_user.id)
    first_read_at = mark_as_read(db, notification.id).read_at
    assert mark_as_read(db, notification.id).read_at == first_read_at


def test_mark_as_read_respects_owner(db, test_user, other_user):
    notification = _create(db, test_user.id)
    assert mark_as_read(db, notification.id, user_id=other_user.id) is None
    assert mark_as_read(db, 9999) is None
    assert get_unread_count(db, test_user.id) == 1


def test_mark_all_as_read(db, test_user, other_user):
    for _ in range(3):
        _create(db, test_user.id)
    _create(db, other_user.id)

    result = mark_all_as_read(db, test_user.id)

    assert result == {"matched_count": 3}
    assert get_unread_count(db, test_user.id) == 0
    assert get_unread_count(db, other_user.id) == 1
    assert mark_all_as_read(db, test_user.id) == {"matched_count": 0}


def test_get_notifications_pagination(db, test_user):
    """Test 25 notifications split into pages of 20 and 5, newest first."""
    base = datetime(2026, 1, 14, 9, 0)
    for i in range(25):
        notification = _create(db, test_user.id, title=f"Notification {i}")
        notification.created_at = base + timedelta(minutes=i)
    db.commit()

    page1 = get_notifications(db, test_user.id, page=1, limit=20)
    assert len(page1["notifications"]) == 20
    assert page1["notifications"][0]["title"] == "Notification 24"
    assert page1["pagination"] == {
        "page": 1,
        "limit": 20,
        "total": 25,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }
    assert page1["unread_count"] == 25

    page2 = get_notifications(db, test_user.id, page=2, limit=20)
    assert len(page2["notifications"]) == 5
    assert page2["notifications"][-1]["title"] == "Notification 0"
    assert page2["pagination"]["has_next"] is False
    assert page2["pagination"]["has_prev"] is True

    ids = [n["id"] for n in page1["notifications"] + page2["notifications"]]
    assert len(set(ids)) == 25


def test_get_notifications_empty(db, test_user):
    result = get_notifications(db, test_user.id)
    assert result["notifications"] == []
    assert result["pagination"]["total"] == 0
    assert result["pagination"]["total_pages"] == 0
    assert result["pagination"]["has_next"] is False


def test_get_notifications_filters(db, test_user):
    first = _create(db, test_user.id)
    _create(db, test_user.id)
    create_notification(db, test_user.id, NotificationType.PASSWORD_CHANGED, "Password Changed", "Done")
    mark_as_read(db, first.id)

    unread = get_notifications(db, test_user.id, unread_only=True)
    assert unread["pagination"]["total"] == 2

    by_type = get_notifications(db, test_user.id, type="password_changed")
    assert by_type["pagination"]["total"] == 1
    assert by_type["notifications"][0]["type"] == NotificationType.PASSWORD_CHANGED


def test_get_notifications_exposes_metadata(db, test_user):
    _create(db, test_user.id, metadata={"platforms": ["facebook"]})
    result = get_notifications(db, test_user.id)
    assert result["notifications"][0]["metadata"] == {"platforms": ["facebook"]}


@pytest.mark.parametrize("page,limit", [(0, 20), (1, 0), (-1, 5)])
def test_get_notifications_rejects_bad_paging(db, test_user, page, limit):
    with pytest.raises(ValidationError):
        get_notifications(db, test_user.id, page=page, limit=limit)


def test_get_notifications_rejects_unknown_type(db, test_user):
    with pytest.raises(ValidationError):
        get_notifications(db, test_user.id, type="nope")


def test_delete_notification(db, test_user):
    notification = _create(db, test_user.id)
    notification_id = notification.id

    deleted = delete_notification(db, notification_id, test_user.id)

    assert deleted.id == notification_id
    assert deleted.title == "Post Published"
    assert db.query(Notification).filter(Notification.id == notification_id).first() is None


def test_delete_notification_other_owner(db, test_user, other_user):
    """Test a user cannot delete another user's notification."""
    notification = _create(db, test_user.id)

    assert delete_notification(db, notification.id, other_user.id) is None
    assert db.query(Notification).filter(Notification.id == notification.id).first() is not None


def test_delete_all_notifications(db, test_user, other_user):
    for _ in range(4):
        _create(db, test_user.id)
    _create(db, other_user.id)

    assert delete_all_notifications(db, test_user.id) == {"deleted_count": 4}
    assert db.query(Notification).filter(Notification.user_id == test_user.id).count() == 0
    assert db.query(Notification).filter(Notification.user_id == other_user.id).count() == 1


def test_unread_count_masks_unexpected_errors(db, test_user, monkeypatch):
    _create(db, test_user.id)

    def broken_query(*args, **kwargs):
        raise TypeError("unexpected driver value")

    monkeypatch.setattr(db, "query", broken_query)
    assert get_unread_count(db, test_user.id) == 0


def test_mark_and_delete_return_types(db, test_user):
    """Test marking returns the ORM row while deleting returns a snapshot."""
    notification = _create(db, test_user.id)

    assert isinstance(mark_as_read(db, notification.id), Notification)
    assert isinstance(mark_as_unread(db, notification.id), Notification)

    deleted = delete_notification(db, notification.id, test_user.id)
    assert isinstance(deleted, NotificationResponse)
    assert deleted.is_read is False
