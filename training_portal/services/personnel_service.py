from typing import Any, Dict, List, Optional, Tuple
import logging

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..auth.firebase_auth import firebase_auth
from ..models.user import UserRole
from .generated_id_service import generated_id_service

logger = logging.getLogger(__name__)

PERSONNEL_ROLES = {
    UserRole.STAFF.value: ('staff', 'staff_registrations'),
    UserRole.RESOURCE_PERSON.value: ('resource_persons', 'resource_person_registrations'),
}

# Trainee fields an admin may edit
TRAINEE_EDITABLE_FIELDS = {
    "first_name", "surname", "middle_name", "phone", "state", "lga",
    "sponsor_id", "room_number", "lecture_venue", "is_active",
}


class PersonnelService:
    """Admin-side management of trainees, staff and resource persons."""

    def __init__(self):
        self.db = database_service
        self.auth = firebase_auth
        self.id_service = generated_id_service

    # ── Trainees ────────────────────────────────────────────────────────────

    async def list_trainees(self, sponsor_id: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
        filters = []
        if sponsor_id:
            filters.append(("sponsor_id", "==", sponsor_id))
        if active_only:
            filters.append(("is_active", "==", True))

        success, trainees, error = await self.db.query_documents(
            COLLECTIONS['trainees'], filters or None, order_by="created_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list trainees: {error}")
            return []
        return trainees

    async def get_trainee(self, trainee_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, trainee, _ = await self.db.get_document(COLLECTIONS['trainees'], trainee_id)
        if not success or not trainee:
            return False, None, "Trainee not found"
        return True, trainee, None

    async def _find_trainee(self, field: str, value: str) -> Optional[Dict[str, Any]]:
        success, trainees, _ = await self.db.query_documents(
            COLLECTIONS['trainees'], [(field, "==", value)], limit=1
        )
        if success and trainees:
            return trainees[0]
        return None

    async def get_trainee_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._find_trainee("email", (email or "").strip().lower())

    async def get_trainee_by_tag(self, tag_number: str) -> Optional[Dict[str, Any]]:
        return await self._find_trainee("tag_number", (tag_number or "").strip().upper())

    async def update_trainee(self, trainee_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_trainee(trainee_id)
        if not success:
            return False, error

        updates = {k: v for k, v in data.items() if k in TRAINEE_EDITABLE_FIELDS and v is not None}
        if not updates:
            return False, "No valid fields to update"
        return await self.db.update_document(COLLECTIONS['trainees'], trainee_id, updates)

    async def deactivate_trainee(self, trainee_id: str) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_trainee(trainee_id)
        if not success:
            return False, error
        ok, error = await self.db.update_document(COLLECTIONS['trainees'], trainee_id, {"is_active": False})
        if not ok:
            return False, error

        # Login checks the users profile; the auth account is disabled as well
        await self.db.update_document(COLLECTIONS['users'], trainee_id, {"status": "inactive"})
        try:
            await self.auth.update_user(trainee_id, disabled=True)
        except Exception as e:
            logger.warning(f"Could not disable auth account for trainee {trainee_id}: {e}")
        return True, None

    # ── Staff & resource persons ────────────────────────────────────────────

    @staticmethod
    def _collections_for(role: str) -> Tuple[str, str]:
        if role not in PERSONNEL_ROLES:
            raise ValueError(f"Unknown personnel role: {role}")
        return PERSONNEL_ROLES[role]

    async def list_personnel(self, role: str) -> List[Dict[str, Any]]:
        personnel_key, _ = self._collections_for(role)
        success, records, error = await self.db.query_documents(
            COLLECTIONS[personnel_key], order_by="created_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list {role}: {error}")
            return []
        return records

    async def get_personnel(self, role: str, uid: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        personnel_key, _ = self._collections_for(role)
        success, record, _ = await self.db.get_document(COLLECTIONS[personnel_key], uid)
        if not success or not record:
            return False, None, f"{role.replace('_', ' ').title()} not found"
        return True, record, None

    async def update_personnel(self, role: str, uid: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        personnel_key, _ = self._collections_for(role)
        success, _, error = await self.get_personnel(role, uid)
        if not success:
            return False, error

        updates = {k: v for k, v in data.items() if v is not None}
        if not updates:
            return False, "No valid fields to update"
        return await self.db.update_document(COLLECTIONS[personnel_key], uid, updates)

    async def delete_personnel(self, role: str, uid: str) -> Tuple[bool, Optional[str]]:
        """Remove a staff member or resource person and release their ID for reuse."""
        personnel_key, registration_key = self._collections_for(role)
        success, record, error = await self.get_personnel(role, uid)
        if not success:
            return False, error

        generated_id = record.get("generated_id")

        ok, error = await self.db.delete_document(COLLECTIONS[personnel_key], uid)
        if not ok:
            return False, error

        if generated_id:
            found, registrations, _ = await self.db.query_documents(
                COLLECTIONS[registration_key], [("generated_id", "==", generated_id)]
            )
            for registration in registrations if found else []:
                await self.db.delete_document(COLLECTIONS[registration_key], registration.get("_doc_id") or registration["id"])

        await self.db.delete_document(COLLECTIONS['users'], uid)
        try:
            await self.auth.delete_user(uid)
        except Exception as e:
            logger.warning(f"Could not delete auth user {uid}: {e}")

        if generated_id:
            freed, free_error = await self.id_service.free_id(generated_id, reason="User deleted by admin")
            if not freed:
                logger.warning(f"Could not free {generated_id} after deleting {uid}: {free_error}")

        logger.info(f"Deleted {role} {uid} (ID {generated_id})")
        return True, None


personnel_service = PersonnelService()
