import pytest

from training_portal.services.message_service import MessageService
from training_portal.services.notification_service import NotificationService

# Async tests
pytestmark = pytest.mark.asyncio

TRAINEE = {"uid": "t1", "name": "Ada Obi", "email": "ada@example.com", "role": "trainee", "tag_number": "TRN20250001"}
RESOURCE_PERSON = {"uid": "rp1", "name": "Dr Musa", "email": "musa@example.com", "role": "resource_person"}
ADMIN = {"uid": "admin_1", "name": "Admin", "email": "admin@example.com", "role": "admin"}


@pytest.fixture
def notifications(fake_db):
    svc = NotificationService()
    svc.db = fake_db
    return svc


@pytest.fixture
def service(fake_db, notifications):
    fake_db.seed("resource_persons", "rp1", {"first_name": "Musa", "surname": "Bala", "email": "musa@example.com"})
    fake_db.seed("trainees", "t1", {"trainee_id": "t1", "first_name": "Ada", "surname": "Obi",
                                    "email": "ada@example.com", "sponsor_id": "sp1", "is_active": True})
    svc = MessageService()
    svc.db = fake_db
    svc.notification_service = notifications
    return svc


async def test_trainee_message_to_resource_person(service, notifications):
    ok, message, error = await service.send_message(TRAINEE, "rp1", "Week 2 notes", "Where are they?", "trainee_to_rp")

    assert ok, error
    assert message["to_name"] == "Musa Bala"
    assert message["from_tag_number"] == "TRN20250001"
    assert message["is_read"] is False

    [notification] = await notifications.get_user_notifications("rp1")
    assert notification["type"] == "message"
    assert notification["title"] == "New message from Ada Obi (TRN20250001)"
    assert notification["message"] == "Week 2 notes - From: ada@example.com"
    assert notification["message_id"] == message["id"]


async def test_sender_role_must_match_message_type(service):
    ok, _, error = await service.send_message(RESOURCE_PERSON, "rp1", "Hi", "Hello", "trainee_to_rp")
    assert not ok
    assert error == "Only a trainee can send trainee_to_rp messages"

    ok, _, error = await service.send_message(TRAINEE, "t1", "Hi", "Hello", "admin_broadcast")
    assert not ok
    assert error == "Invalid message type: admin_broadcast"


async def test_unknown_recipient(service):
    ok, _, error = await service.send_message(RESOURCE_PERSON, "t9", "Hi", "Hello", "rp_to_trainee")
    assert not ok
    assert error == "Recipient not found"


async def test_priority_and_content_checked(service):
    ok, _, error = await service.send_message(TRAINEE, "rp1", "Hi", "Hello", "trainee_to_rp", priority="asap")
    assert not ok
    assert error == "Invalid priority: asap"

    ok, _, error = await service.send_message(TRAINEE, "rp1", " ", "Hello", "trainee_to_rp")
    assert not ok
    assert error == "Subject and message are required"


async def test_broadcast_reaches_active_trainees_in_scope(service):
    service.db.seed("trainees", "t2", {"trainee_id": "t2", "email": "b@example.com", "sponsor_id": "sp1",
                                       "is_active": False})
    service.db.seed("trainees", "t3", {"trainee_id": "t3", "email": "c@example.com", "sponsor_id": "sp2",
                                       "is_active": True})

    ok, sent, error = await service.broadcast_message(ADMIN, "Holiday", "No classes Friday", sponsor_id="sp1")
    assert ok, error
    assert sent == 1

    ok, sent, _ = await service.broadcast_message(ADMIN, "Holiday", "No classes Friday")
    assert sent == 2
    assert all(m["message_type"] == "admin_broadcast" for m in service.db.all("messages"))


async def test_only_recipient_marks_read(service):
    _, message, _ = await service.send_message(RESOURCE_PERSON, "t1", "Feedback", "Good work", "rp_to_trainee")
    assert await service.get_unread_count("t1") == 1

    ok, error = await service.mark_as_read(message["id"], "rp1")
    assert not ok
    assert error == "Only the recipient can mark a message as read"

    ok, error = await service.mark_as_read(message["id"], "t1")
    assert ok, error
    assert await service.get_unread_count("t1") == 0

    ok, error = await service.mark_as_read("missing", "t1")
    assert error == "Message not found"


async def test_inbox_and_sent(service):
    await service.send_message(TRAINEE, "rp1", "One", "First", "trainee_to_rp")
    await service.send_message(TRAINEE, "rp1", "Two", "Second", "trainee_to_rp")

    assert len(await service.get_inbox("rp1")) == 2
    assert len(await service.get_sent("t1")) == 2
    assert await service.get_inbox("t1") == []


async def test_notifications_mark_all_read(notifications):
    await notifications.create_notification("t1", "A", "a", "announcement")
    await notifications.create_notification("t1", "B", "b", "message")
    await notifications.create_notification("t2", "C", "c", "message")

    ok, _, error = await notifications.create_notification("t1", "D", "d", "gossip")
    assert not ok
    assert error == "Invalid notification type: gossip"

    assert await notifications.get_unread_count("t1") == 2
    assert await notifications.mark_all_as_read("t1") == 2
    assert await notifications.get_unread_count("t1") == 0
    assert await notifications.get_unread_count("t2") == 1


async def test_notification_owner_check(notifications):
    _, notification_id, _ = await notifications.create_notification("t1", "A", "a", "announcement")

    ok, error = await notifications.mark_as_read(notification_id, "t2")
    assert not ok
    assert error == "Notification belongs to another user"
