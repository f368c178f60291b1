from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeAuth
from training_portal.core.config import settings
from training_portal.models.user import PersonnelRegistration, TraineeRegistration, UserRole
from training_portal.services.generated_id_service import GeneratedIdService
from training_portal.services.registration_service import RegistrationService
from training_portal.services.sponsor_service import SponsorService

# Async tests
pytestmark = pytest.mark.asyncio


def _build(fake_db, fake_email, auth):
    id_service = GeneratedIdService()
    id_service.db = fake_db
    id_service.email_service = fake_email

    sponsors = SponsorService()
    sponsors.db = fake_db

    svc = RegistrationService()
    svc.db = fake_db
    svc.auth = auth
    svc.email_service = fake_email
    svc.id_service = id_service
    svc.sponsor_service = sponsors
    return svc


@pytest.fixture
def service(fake_db, fake_email, fake_auth):
    return _build(fake_db, fake_email, fake_auth)


def _trainee_payload(email="ada@example.com", **overrides):
    data = {
        "email": email,
        "password": "secret123",
        "confirm_password": "secret123",
        "first_name": "Ada",
        "surname": "Obi",
        "phone": "08030000000",
        "gender": "Female",
        "date_of_birth": "2001-04-12",
        "state": "Lagos",
        "lga": "Ikeja",
    }
    data.update(overrides)
    return TraineeRegistration(**data)


def _personnel_payload(generated_id, email="staff@example.com"):
    return PersonnelRegistration(
        generated_id=generated_id,
        email=email,
        password="secret123",
        confirm_password="secret123",
        first_name="Tunde",
        surname="Bello",
        department="Welding",
    )


async def _verified(service, email):
    ok, error = await service.start_trainee_registration(email)
    assert ok, error
    code = service.db.data["email_verifications"][email.lower()]["code"]
    ok, error = await service.verify_email_code(email, code)
    assert ok, error


async def test_start_stores_code_and_emails_it(service, fake_email):
    ok, error = await service.start_trainee_registration("Ada@Example.com")

    assert ok, error
    record = service.db.data["email_verifications"]["ada@example.com"]
    assert len(record["code"]) == 6
    assert record["verified"] is False
    assert ("verification_code", "ada@example.com", record["code"]) in fake_email.sent


async def test_start_refuses_registered_email(service):
    service.db.seed("staff", "uid_1", {"email": "ada@example.com", "generated_id": "ST-0C0S0S1"})

    ok, error = await service.start_trainee_registration("ada@example.com")
    assert not ok
    assert error == "Email already registered"


async def test_verify_code_errors(service):
    ok, error = await service.verify_email_code("nobody@example.com", "123456")
    assert not ok
    assert error == "No verification code found"

    await service.start_trainee_registration("ada@example.com")
    code = service.db.data["email_verifications"]["ada@example.com"]["code"]
    wrong = "000000" if code != "000000" else "111111"

    ok, error = await service.verify_email_code("ada@example.com", wrong)
    assert not ok
    assert error == "Invalid verification code"

    later = datetime.now(timezone.utc) + timedelta(minutes=11)
    ok, error = await service.verify_email_code("ada@example.com", code, now=later)
    assert not ok
    assert error == "Verification code has expired"


async def test_verification_locks_after_repeated_wrong_codes(service, monkeypatch):
    monkeypatch.setattr(settings, "MAX_VERIFICATION_ATTEMPTS", 3)
    await service.start_trainee_registration("ada@example.com")
    record = service.db.data["email_verifications"]["ada@example.com"]
    code = record["code"]
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(3):
        ok, error = await service.verify_email_code("ada@example.com", wrong)
        assert error == "Invalid verification code"
    assert record["attempts"] == 3

    ok, error = await service.verify_email_code("ada@example.com", code)
    assert not ok
    assert error == "Too many incorrect attempts. Request a new code"
    assert record["verified"] is False

    # A fresh code resets the counter
    await service.start_trainee_registration("ada@example.com")
    fresh = service.db.data["email_verifications"]["ada@example.com"]
    ok, error = await service.verify_email_code("ada@example.com", fresh["code"])
    assert ok, error


async def test_complete_requires_verified_email(service):
    await service.start_trainee_registration("ada@example.com")

    ok, _, error = await service.complete_trainee_registration(_trainee_payload())
    assert not ok
    assert error == "Email has not been verified"


async def test_complete_requires_active_sponsor(service):
    await _verified(service, "ada@example.com")

    ok, _, error = await service.complete_trainee_registration(_trainee_payload())
    assert not ok
    assert error == "No active sponsor for registration"


async def test_complete_creates_trainee_with_sequential_tags(service, fake_auth, fake_email):
    service.db.seed("sponsors", "sp1", {"name": "Delta Skills", "is_active": True,
                                        "created_at": datetime.now(timezone.utc)})
    year = datetime.now(timezone.utc).year

    await _verified(service, "ada@example.com")
    ok, trainee, error = await service.complete_trainee_registration(_trainee_payload())
    assert ok, error
    assert trainee["tag_number"] == f"TRN{year}0001"
    assert trainee["sponsor_id"] == "sp1"
    assert trainee["gender"] == "female"
    assert trainee["nationality"] == "Nigerian"

    uid = trainee["id"]
    assert fake_auth.claims[uid] == {"role": "trainee", "tag_number": f"TRN{year}0001", "sponsor_id": "sp1"}
    assert service.db.data["users"][uid]["role"] == "trainee"
    assert "ada@example.com" not in service.db.data["email_verifications"]
    assert ("registration_complete", "ada@example.com", f"TRN{year}0001") in fake_email.sent

    await _verified(service, "bola@example.com")
    ok, second, error = await service.complete_trainee_registration(_trainee_payload("bola@example.com"))
    assert ok, error
    assert second["tag_number"] == f"TRN{year}0002"


async def test_tag_skips_numbers_already_taken(service):
    service.db.seed("trainees", "t1", {"tag_number": "TRN20250001"})

    assert await service.generate_tag_number(2025) == "TRN20250002"
    assert await service.generate_tag_number(2025) == "TRN20250003"


async def test_personnel_rejects_wrong_id_type(service):
    await service.id_service.generate_ids("resource_person", 1)

    ok, _, error = await service.register_personnel(UserRole.STAFF, _personnel_payload("RP-0C0S0S1"))
    assert not ok
    assert error == "ID RP-0C0S0S1 is not a staff ID"


async def test_personnel_unknown_id(service):
    ok, _, error = await service.register_personnel(UserRole.STAFF, _personnel_payload("st-0c0s0s9"))
    assert not ok
    assert error == "ID does not exist"


async def test_personnel_registration_activates_id(service, fake_auth):
    await service.id_service.generate_ids("staff", 1)

    ok, record, error = await service.register_personnel(UserRole.STAFF, _personnel_payload("st-0c0s0s1"))

    assert ok, error
    uid = record["uid"]
    assert record["generated_id"] == "ST-0C0S0S1"
    assert record["department"] == "Welding"
    assert service.db.data["generated_ids"]["ST-0C0S0S1"]["status"] == "activated"
    assert service.db.data["staff"][uid]["email"] == "staff@example.com"
    assert service.db.data["users"][uid]["role"] == "staff"
    assert len(service.db.data["staff_registrations"]) == 1
    assert fake_auth.claims[uid] == {"role": "staff", "generated_id": "ST-0C0S0S1"}


async def test_failed_account_creation_frees_the_id(fake_db, fake_email):
    service = _build(fake_db, fake_email, FakeAuth(fail_create=True))
    await service.id_service.generate_ids("staff", 1)

    ok, _, error = await service.register_personnel(UserRole.STAFF, _personnel_payload("ST-0C0S0S1"))

    assert not ok
    assert "EMAIL_EXISTS" in error
    doc = fake_db.data["generated_ids"]["ST-0C0S0S1"]
    assert doc["status"] == "available"
    assert doc["assigned_to"] is None
    assert not fake_db.data.get("staff")


async def test_failed_profile_write_leaves_id_and_email_reusable(service, fake_db, fake_auth):
    await service.id_service.generate_ids("staff", 1)
    fake_db.fail_collections.add("users")

    ok, _, error = await service.register_personnel(UserRole.STAFF, _personnel_payload("ST-0C0S0S1"))

    assert not ok
    assert error == "Failed to create profile: Write to users failed"
    assert fake_auth.deleted == ["uid_1"]
    assert fake_db.data["staff"] == {}
    assert fake_db.data["staff_registrations"] == {}
    assert fake_db.data["generated_ids"]["ST-0C0S0S1"]["status"] == "available"
    assert await service.id_service.validate_id_availability("ST-0C0S0S1") == (True, "ID is available")
    assert await service.check_email_available("staff@example.com") == (True, "Email is available")

    fake_db.fail_collections.clear()
    ok, record, error = await service.register_personnel(UserRole.STAFF, _personnel_payload("ST-0C0S0S1"))
    assert ok, error
    assert fake_db.data["generated_ids"]["ST-0C0S0S1"]["status"] == "activated"


async def test_password_reset_never_reveals_unknown_email(service, fake_auth, fake_email):
    fake_auth.users["uid_1"] = {"email": "ada@example.com"}

    assert await service.request_password_reset("nobody@example.com") is True
    assert await service.request_password_reset("ADA@example.com") is True

    assert [s[:2] for s in fake_email.sent] == [("password_reset", "ada@example.com")]


async def test_cleanup_expired_verifications(service):
    now = datetime.now(timezone.utc)
    service.db.seed("email_verifications", "old@example.com",
                    {"email": "old@example.com", "code": "111111", "expires_at": now - timedelta(minutes=1)})
    service.db.seed("email_verifications", "new@example.com",
                    {"email": "new@example.com", "code": "222222", "expires_at": now + timedelta(minutes=5)})

    removed = await service.cleanup_expired_verifications(now=now)

    assert removed == 1
    assert list(service.db.data["email_verifications"]) == ["new@example.com"]
