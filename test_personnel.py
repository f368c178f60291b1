import pytest

from training_portal.models.user import PersonnelRegistration, UserRole
from training_portal.services.generated_id_service import GeneratedIdService
from training_portal.services.personnel_service import PersonnelService
from training_portal.services.registration_service import RegistrationService

# Async tests
pytestmark = pytest.mark.asyncio


@pytest.fixture
def id_service(fake_db, fake_email):
    svc = GeneratedIdService()
    svc.db = fake_db
    svc.email_service = fake_email
    return svc


@pytest.fixture
def service(fake_db, fake_auth, id_service):
    svc = PersonnelService()
    svc.db = fake_db
    svc.auth = fake_auth
    svc.id_service = id_service
    return svc


@pytest.fixture
def registration(fake_db, fake_auth, fake_email, id_service):
    svc = RegistrationService()
    svc.db = fake_db
    svc.auth = fake_auth
    svc.email_service = fake_email
    svc.id_service = id_service
    return svc


def _payload(email):
    return PersonnelRegistration(
        generated_id="RP-0C0S0S1", email=email, password="secret123", confirm_password="secret123",
        first_name="Musa", surname="Bala", specialization="Electrical",
    )


async def test_deleting_personnel_releases_id_for_reuse(service, registration, id_service, fake_auth, fake_db):
    await id_service.generate_ids("resource_person", 1)
    ok, record, error = await registration.register_personnel(UserRole.RESOURCE_PERSON, _payload("musa@example.com"))
    assert ok, error
    uid = record["uid"]

    ok, error = await service.delete_personnel("resource_person", uid)

    assert ok, error
    assert uid in fake_auth.deleted
    assert uid not in fake_db.data["resource_persons"]
    assert fake_db.data["resource_person_registrations"] == {}
    assert uid not in fake_db.data["users"]
    doc = fake_db.data["generated_ids"]["RP-0C0S0S1"]
    assert doc["status"] == "available"
    assert doc["last_assigned_to"] == "musa@example.com"

    ok, record, error = await registration.register_personnel(UserRole.RESOURCE_PERSON, _payload("new@example.com"))
    assert ok, error
    assert fake_db.data["generated_ids"]["RP-0C0S0S1"]["assigned_to"] == "new@example.com"


async def test_unknown_role_and_record(service):
    with pytest.raises(ValueError):
        await service.list_personnel("trainee")

    ok, error = await service.delete_personnel("staff", "ghost")
    assert not ok
    assert error == "Staff not found"


async def test_update_personnel_ignores_empty_values(service, fake_db):
    fake_db.seed("staff", "uid_1", {"generated_id": "ST-0C0S0S1", "email": "s@example.com", "phone": "080"})

    ok, error = await service.update_personnel("staff", "uid_1", {"phone": None})
    assert not ok
    assert error == "No valid fields to update"

    ok, error = await service.update_personnel("staff", "uid_1", {"department": "Welding"})
    assert ok, error
    assert fake_db.data["staff"]["uid_1"]["department"] == "Welding"


async def test_deactivate_trainee_blocks_login(service, fake_auth, fake_db):
    fake_db.seed("trainees", "t1", {"tag_number": "TRN20250001", "is_active": True})
    fake_db.seed("users", "t1", {"email": "ada@example.com", "role": "trainee", "status": "active"})

    ok, error = await service.deactivate_trainee("t1")

    assert ok, error
    assert fake_db.data["trainees"]["t1"]["is_active"] is False
    assert fake_db.data["users"]["t1"]["status"] == "inactive"
    assert fake_auth.updated["t1"] == {"disabled": True}


async def test_trainee_lookups(service, fake_db):
    fake_db.seed("trainees", "t1", {"tag_number": "TRN20250001", "email": "ada@example.com", "sponsor_id": "sp1",
                                    "is_active": True})
    fake_db.seed("trainees", "t2", {"tag_number": "TRN20250002", "email": "bola@example.com", "sponsor_id": "sp2",
                                    "is_active": True})

    assert (await service.get_trainee_by_tag("TRN20250002"))["id"] == "t2"
    assert (await service.get_trainee_by_email("ada@example.com"))["id"] == "t1"
    assert [t["id"] for t in await service.list_trainees(sponsor_id="sp2")] == ["t2"]
