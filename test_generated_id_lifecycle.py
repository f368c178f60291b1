import pytest

from training_portal.services.generated_id_service import GeneratedIdService

# Async tests
pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(fake_db, fake_email):
    svc = GeneratedIdService()
    svc.db = fake_db
    svc.email_service = fake_email
    return svc


def _status(service, generated_id):
    return service.db.data["generated_ids"][generated_id]["status"]


async def test_generate_continues_numbering_per_type(service):
    ok, first, _ = await service.generate_ids("staff", 3, created_by="admin")
    assert ok
    assert first == ["ST-0C0S0S1", "ST-0C0S0S2", "ST-0C0S0S3"]

    ok, rp, _ = await service.generate_ids("resource_person", 2)
    assert rp == ["RP-0C0S0S1", "RP-0C0S0S2"]

    ok, more, _ = await service.generate_ids("staff", 1)
    assert more == ["ST-0C0S0S4"]
    assert _status(service, "ST-0C0S0S4") == "available"


@pytest.mark.parametrize("id_type,count", [("staff", 0), ("staff", 101), ("admin", 1)])
async def test_generate_rejects_bad_requests(service, id_type, count):
    ok, ids, error = await service.generate_ids(id_type, count)
    assert not ok
    assert ids == []
    assert error


async def test_unknown_id_does_not_exist(service):
    valid, message = await service.validate_id_availability("ST-0C0S0S99")
    assert not valid
    assert message == "ID does not exist"


async def test_full_lifecycle_with_reuse(service):
    await service.generate_ids("staff", 1)
    gid = "ST-0C0S0S1"

    valid, message = await service.validate_and_activate_id(gid, "Jane@Example.com")
    assert valid, message
    assert _status(service, gid) == "assigned"
    assert service.db.data["generated_ids"][gid]["assigned_to"] == "jane@example.com"

    # same email again is a no-op success
    valid, _ = await service.validate_and_activate_id(gid, "jane@example.com")
    assert valid

    # a different email is refused
    valid, message = await service.validate_and_activate_id(gid, "john@example.com")
    assert not valid
    assert message == "ID is already assigned to another user"

    ok, error = await service.finalize_id_activation(gid)
    assert ok, error
    assert _status(service, gid) == "activated"

    valid, message = await service.validate_id_availability(gid)
    assert not valid
    assert message == "ID has already been activated"

    ok, error = await service.free_id(gid, reason="User deleted by admin")
    assert ok, error
    doc = service.db.data["generated_ids"][gid]
    assert doc["status"] == "available"
    assert doc["assigned_to"] is None
    assert doc["last_assigned_to"] == "jane@example.com"
    assert doc["usage_count"] == 1
    assert doc["freed_reason"] == "User deleted by admin"

    valid, message = await service.validate_and_activate_id(gid, "john@example.com")
    assert valid, message
    assert service.db.data["generated_ids"][gid]["assigned_to"] == "john@example.com"


async def test_finalize_requires_assigned(service):
    await service.generate_ids("staff", 1)
    ok, error = await service.finalize_id_activation("ST-0C0S0S1")
    assert not ok
    assert "Only assigned IDs" in error


async def test_free_requires_assigned_or_activated(service):
    await service.generate_ids("staff", 1)
    ok, error = await service.free_id("ST-0C0S0S1")
    assert not ok
    assert "current status: available" in error


async def test_email_with_activated_id_cannot_take_another(service):
    await service.generate_ids("staff", 2)
    await service.validate_and_activate_id("ST-0C0S0S1", "jane@example.com")
    await service.finalize_id_activation("ST-0C0S0S1")

    valid, message = await service.validate_and_activate_id("ST-0C0S0S2", "jane@example.com")
    assert not valid
    assert message == "This email already has an activated ID"


async def test_deactivate_and_reactivate(service):
    await service.generate_ids("resource_person", 1)
    gid = "RP-0C0S0S1"

    ok, _ = await service.deactivate_id(gid, reason="Leaked")
    assert ok
    assert _status(service, gid) == "deactivated"

    valid, message = await service.validate_and_activate_id(gid, "rp@example.com")
    assert not valid
    assert message == "ID has been deactivated"

    ok, error = await service.deactivate_id(gid)
    assert not ok
    assert error == "ID is already deactivated"

    ok, _ = await service.reactivate_id(gid)
    assert ok
    assert _status(service, gid) == "available"

    ok, error = await service.reactivate_id(gid)
    assert not ok


async def test_id_held_by_a_record_is_in_use(service):
    await service.generate_ids("staff", 1)
    service.db.seed("staff", "uid_9", {"generated_id": "ST-0C0S0S1", "email": "old@example.com"})

    valid, message = await service.validate_id_availability("ST-0C0S0S1")
    assert not valid
    assert message == "ID is already in use"


async def test_admin_assignment_emails_recipient(service, fake_email):
    await service.generate_ids("staff", 1)

    ok, error = await service.activate_id("ST-0C0S0S1", "new@example.com")
    assert ok, error
    assert ("id_assigned", "new@example.com", "ST-0C0S0S1") in fake_email.sent

    ok, error = await service.activate_id("ST-0C0S0S1", "other@example.com")
    assert not ok


async def test_statistics(service):
    await service.generate_ids("staff", 3)
    await service.generate_ids("resource_person", 1)
    await service.validate_and_activate_id("ST-0C0S0S1", "a@example.com")
    await service.validate_and_activate_id("ST-0C0S0S2", "b@example.com")
    await service.finalize_id_activation("ST-0C0S0S2")
    await service.free_id("ST-0C0S0S2")
    await service.deactivate_id("RP-0C0S0S1")

    stats = await service.get_statistics()
    assert stats["total"] == 4
    assert stats["available"] == 2
    assert stats["assigned"] == 1
    assert stats["activated"] == 0
    assert stats["deactivated"] == 1
    assert stats["freed"] == 1
    assert stats["by_type"]["staff"]["total"] == 3
    assert stats["by_type"]["resource_person"]["deactivated"] == 1
