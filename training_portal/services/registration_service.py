from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timedelta, timezone
import logging
import secrets
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..auth.firebase_auth import firebase_auth
from ..core.config import settings
from ..models.user import PersonnelRegistration, TraineeRegistration, UserRole, UserStatus
from ..models.database_models import GeneratedIdType
from .email_service import email_service
from .generated_id_service import generated_id_service
from .sponsor_service import sponsor_service

logger = logging.getLogger(__name__)

# Every collection an email may already be registered in
EMAIL_COLLECTIONS = [
    'trainees',
    'staff',
    'resource_persons',
    'staff_registrations',
    'resource_person_registrations',
    'users',
]

PERSONNEL_COLLECTIONS = {
    UserRole.STAFF: ('staff', 'staff_registrations', GeneratedIdType.STAFF),
    UserRole.RESOURCE_PERSON: ('resource_persons', 'resource_person_registrations', GeneratedIdType.RESOURCE_PERSON),
}


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _as_utc(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RegistrationService:
    def __init__(self):
        self.db = database_service
        self.auth = firebase_auth
        self.email_service = email_service
        self.id_service = generated_id_service
        self.sponsor_service = sponsor_service

    # ── Email checks ────────────────────────────────────────────────────────

    async def check_email_available(self, email: str) -> Tuple[bool, str]:
        email = _normalize_email(email)
        for key in EMAIL_COLLECTIONS:
            success, docs, _ = await self.db.query_documents(
                COLLECTIONS[key], [("email", "==", email)], limit=1
            )
            if success and docs:
                return False, "Email already registered"
        return True, "Email is available"

    # ── Trainee registration ────────────────────────────────────────────────

    @staticmethod
    def generate_verification_code() -> str:
        return f"{secrets.randbelow(10 ** 6):06d}"

    async def start_trainee_registration(self, email: str) -> Tuple[bool, Optional[str]]:
        """Step 1: send a six digit code to the email address."""
        email = _normalize_email(email)
        available, message = await self.check_email_available(email)
        if not available:
            return False, message

        code = self.generate_verification_code()
        now = datetime.now(timezone.utc)
        ttl = settings.VERIFICATION_CODE_TTL_MINUTES

        success, _, error = await self.db.create_document(
            COLLECTIONS['email_verifications'],
            {
                "email": email,
                "code": code,
                "expires_at": now + timedelta(minutes=ttl),
                "verified": False,
                "attempts": 0,
                "created_at": now,
            },
            document_id=email
        )
        if not success:
            return False, f"Failed to store verification code: {error}"

        sent = await self.email_service.send_verification_code(email, code, ttl)
        if not sent:
            logger.warning(f"Verification email to {email} was not delivered")
        logger.info(f"Verification code issued for {email}")
        return True, None

    async def verify_email_code(self, email: str, code: str, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
        """Step 2: check the code the user typed."""
        email = _normalize_email(email)
        now = now or datetime.now(timezone.utc)

        success, record, _ = await self.db.get_document(COLLECTIONS['email_verifications'], email)
        if not success or not record:
            return False, "No verification code found"

        expires_at = _as_utc(record.get("expires_at"))
        if expires_at is None or now > expires_at:
            return False, "Verification code has expired"

        attempts = int(record.get("attempts") or 0)
        if attempts >= settings.MAX_VERIFICATION_ATTEMPTS:
            return False, "Too many incorrect attempts. Request a new code"

        if str(record.get("code")) != (code or "").strip():
            await self.db.update_document(
                COLLECTIONS['email_verifications'], email, {"attempts": attempts + 1}
            )
            remaining = settings.MAX_VERIFICATION_ATTEMPTS - attempts - 1
            logger.warning(f"Wrong verification code for {email} ({remaining} attempts left)")
            return False, "Invalid verification code"

        ok, error = await self.db.update_document(
            COLLECTIONS['email_verifications'],
            email,
            {"verified": True, "verified_at": now}
        )
        if not ok:
            return False, error
        return True, None

    async def generate_tag_number(self, year: Optional[int] = None) -> str:
        """
        Next trainee tag in the form TRN{year}{NNNN}, e.g. TRN20250001.
        Tags already held by a trainee are skipped.
        """
        year = year or datetime.now(timezone.utc).year
        counter_id = f"trainee_tag_counter_{year}"

        success, counter_data, _ = await self.db.get_document(COLLECTIONS['counters'], counter_id)
        current = int(counter_data.get("counter", 0)) if success and counter_data else 0

        next_number = current + 1
        while True:
            tag_number = f"TRN{year}{next_number:04d}"
            taken, docs, _ = await self.db.query_documents(
                COLLECTIONS['trainees'], [("tag_number", "==", tag_number)], limit=1
            )
            if not (taken and docs):
                break
            next_number += 1

        counter_payload = {"year": year, "counter": next_number, "last_updated": datetime.now(timezone.utc)}
        if success and counter_data:
            await self.db.update_document(COLLECTIONS['counters'], counter_id, counter_payload, validate=False)
        else:
            await self.db.create_document(COLLECTIONS['counters'], counter_payload, counter_id, validate=False)

        return tag_number

    async def complete_trainee_registration(self, payload: TraineeRegistration) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """Step 3: create the account and the trainee record."""
        email = _normalize_email(payload.email)

        success, record, _ = await self.db.get_document(COLLECTIONS['email_verifications'], email)
        if not success or not record or not record.get("verified"):
            return False, None, "Email has not been verified"

        available, message = await self.check_email_available(email)
        if not available:
            return False, None, message

        sponsor = await self.sponsor_service.get_active_sponsor()
        if not sponsor:
            return False, None, "No active sponsor for registration"
        sponsor_id = sponsor.get("_doc_id") or sponsor.get("id")

        tag_number = await self.generate_tag_number()
        display_name = f"{payload.first_name} {payload.surname}"

        try:
            firebase_user = await self.auth.create_user(email=email, password=payload.password, display_name=display_name)
        except Exception as e:
            logger.error(f"Trainee account creation failed for {email}: {e}")
            return False, None, str(e)

        uid = firebase_user["uid"]
        now = datetime.now(timezone.utc)
        trainee = {
            "id": uid,
            "trainee_id": uid,
            "tag_number": tag_number,
            "first_name": payload.first_name,
            "surname": payload.surname,
            "middle_name": payload.middle_name,
            "email": email,
            "phone": payload.phone,
            "gender": payload.gender.value,
            "date_of_birth": payload.date_of_birth,
            "state": payload.state,
            "lga": payload.lga,
            "nationality": payload.nationality or settings.DEFAULT_NATIONALITY,
            "sponsor_id": sponsor_id,
            "room_number": None,
            "lecture_venue": None,
            "is_active": True,
            "email_verified": True,
            "created_at": now,
            "updated_at": now,
        }

        try:
            await self.auth.set_custom_claims(uid, {
                "role": UserRole.TRAINEE.value,
                "tag_number": tag_number,
                "sponsor_id": sponsor_id,
            })
            ok, _, error = await self.db.create_document(COLLECTIONS['trainees'], trainee, document_id=uid)
            if not ok:
                raise Exception(error)
            ok, _, error = await self.db.create_document(
                COLLECTIONS['users'],
                {
                    "id": uid,
                    "email": email,
                    "first_name": payload.first_name,
                    "last_name": payload.surname,
                    "role": UserRole.TRAINEE.value,
                    "status": UserStatus.ACTIVE.value,
                    "tag_number": tag_number,
                },
                document_id=uid
            )
            if not ok:
                raise Exception(error)
        except Exception as e:
            logger.error(f"Trainee profile creation failed for {email}: {e}")
            try:
                await self.auth.delete_user(uid)
            except Exception:
                logger.warning("Rollback Firebase user failed.", exc_info=True)
            await self.db.delete_document(COLLECTIONS['trainees'], uid)
            return False, None, f"Failed to create trainee profile: {e}"

        await self.db.delete_document(COLLECTIONS['email_verifications'], email)
        await self.email_service.send_registration_complete(email, display_name, tag_number)

        logger.info(f"Trainee registered uid={uid} tag={tag_number} sponsor={sponsor_id}")
        return True, trainee, None

    # ── Staff / resource person registration ────────────────────────────────

    async def register_personnel(self, role: UserRole, payload: PersonnelRegistration) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        if role not in PERSONNEL_COLLECTIONS:
            return False, None, f"Role {role.value} cannot register with an ID"

        personnel_key, registration_key, id_type = PERSONNEL_COLLECTIONS[role]
        email = _normalize_email(payload.email)
        generated_id = payload.generated_id

        success, id_doc, error = await self.id_service.get_id(generated_id)
        if not success:
            return False, None, error
        if id_doc.get("type") != id_type.value:
            return False, None, f"ID {generated_id} is not a {id_type.value.replace('_', ' ')} ID"

        available, message = await self.check_email_available(email)
        if not available:
            return False, None, message

        valid, message = await self.id_service.validate_and_activate_id(generated_id, email)
        if not valid:
            return False, None, message

        display_name = f"{payload.first_name} {payload.surname}"
        try:
            firebase_user = await self.auth.create_user(email=email, password=payload.password, display_name=display_name)
        except Exception as e:
            logger.error(f"{role.value} account creation failed for {email}: {e}")
            await self.id_service.free_id(generated_id, reason="Registration failed")
            return False, None, str(e)

        uid = firebase_user["uid"]
        now = datetime.now(timezone.utc)
        record = {
            "id": uid,
            "uid": uid,
            "generated_id": generated_id,
            "email": email,
            "first_name": payload.first_name,
            "surname": payload.surname,
            "middle_name": payload.middle_name,
            "phone": payload.phone,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        if role == UserRole.STAFF:
            record["department"] = payload.department
        else:
            record["specialization"] = payload.specialization

        # (collection, doc_id) written so far, removed again if a later step fails
        written = []
        try:
            await self.auth.set_custom_claims(uid, {"role": role.value, "generated_id": generated_id})

            registration = dict(record, id=str(uuid.uuid4()), status="approved")
            ok, doc_id, error = await self.db.create_document(
                COLLECTIONS[registration_key], registration, document_id=registration["id"]
            )
            if not ok:
                raise Exception(error)
            written.append((COLLECTIONS[registration_key], doc_id))

            ok, doc_id, error = await self.db.create_document(COLLECTIONS[personnel_key], record, document_id=uid)
            if not ok:
                raise Exception(error)
            written.append((COLLECTIONS[personnel_key], doc_id))

            ok, _, error = await self.db.create_document(
                COLLECTIONS['users'],
                {
                    "id": uid,
                    "email": email,
                    "first_name": payload.first_name,
                    "last_name": payload.surname,
                    "role": role.value,
                    "status": UserStatus.ACTIVE.value,
                    "generated_id": generated_id,
                },
                document_id=uid
            )
            if not ok:
                raise Exception(error)
        except Exception as e:
            logger.error(f"{role.value} profile creation failed for {email}: {e}")
            for collection, doc_id in reversed(written):
                await self.db.delete_document(collection, doc_id)
            try:
                await self.auth.delete_user(uid)
            except Exception:
                logger.warning("Rollback Firebase user failed.", exc_info=True)
            await self.id_service.free_id(generated_id, reason="Registration failed")
            return False, None, f"Failed to create profile: {e}"

        ok, error = await self.id_service.finalize_id_activation(generated_id)
        if not ok:
            logger.error(f"Could not finalize {generated_id} for {email}: {error}")

        logger.info(f"Registered {role.value} uid={uid} id={generated_id} email={email}")
        return True, record, None

    # ── Passwords & housekeeping ────────────────────────────────────────────

    async def request_password_reset(self, email: str) -> bool:
        """Email a reset link. Always reports success so account existence is not leaked."""
        email = _normalize_email(email)
        link = await self.auth.generate_password_reset_link(email)
        if link:
            await self.email_service.send_password_reset(email, link)
        else:
            logger.info(f"Password reset requested for unknown or invalid email {email}")
        return True

    async def cleanup_expired_verifications(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        success, records, _ = await self.db.query_documents(
            COLLECTIONS['email_verifications'], [("expires_at", "<", now)]
        )
        if not success:
            return 0

        removed = 0
        for record in records:
            ok, _ = await self.db.delete_document(
                COLLECTIONS['email_verifications'], record.get("_doc_id") or record.get("email")
            )
            if ok:
                removed += 1
        return removed


registration_service = RegistrationService()
