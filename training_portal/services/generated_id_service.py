from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import re

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..models.database_models import GeneratedIdStatus, GeneratedIdType
from ..core.config import settings
from .email_service import email_service

logger = logging.getLogger(__name__)

ID_PREFIXES = {
    GeneratedIdType.STAFF.value: "ST-0C0S0S",
    GeneratedIdType.RESOURCE_PERSON.value: "RP-0C0S0S",
}

# Allowed status changes; anything else is rejected
ALLOWED_TRANSITIONS = {
    GeneratedIdStatus.AVAILABLE.value: {GeneratedIdStatus.ASSIGNED.value, GeneratedIdStatus.DEACTIVATED.value},
    GeneratedIdStatus.ASSIGNED.value: {
        GeneratedIdStatus.ACTIVATED.value,
        GeneratedIdStatus.AVAILABLE.value,
        GeneratedIdStatus.DEACTIVATED.value,
    },
    GeneratedIdStatus.ACTIVATED.value: {GeneratedIdStatus.AVAILABLE.value, GeneratedIdStatus.DEACTIVATED.value},
    GeneratedIdStatus.DEACTIVATED.value: {GeneratedIdStatus.AVAILABLE.value},
}

# Records that hold an ID once someone has registered with it
ID_HOLDER_COLLECTIONS = [
    'staff',
    'resource_persons',
    'staff_registrations',
    'resource_person_registrations',
]


class GeneratedIdService:
    """
    Issues staff / resource person IDs and moves them through their lifecycle:

        available -> assigned -> activated
        any state -> deactivated, deactivated -> available (reactivate)
        assigned/activated -> available (free, for reuse)
    """

    def __init__(self):
        self.db = database_service
        self.email_service = email_service

    @staticmethod
    def get_prefix(id_type: str) -> str:
        if id_type not in ID_PREFIXES:
            raise ValueError(f"Unknown ID type: {id_type}")
        return ID_PREFIXES[id_type]

    @staticmethod
    def parse_number(generated_id: str, prefix: str) -> Optional[int]:
        match = re.fullmatch(re.escape(prefix) + r"(\d+)", generated_id or "")
        return int(match.group(1)) if match else None

    @staticmethod
    def can_transition(current: str, target: str) -> bool:
        return target in ALLOWED_TRANSITIONS.get(current, set())

    async def _next_number(self, id_type: str) -> int:
        prefix = self.get_prefix(id_type)
        success, docs, error = await self.db.query_documents(
            COLLECTIONS['generated_ids'],
            [("type", "==", id_type)]
        )
        if not success:
            raise Exception(f"Failed to read existing IDs: {error}")

        max_number = 0
        for doc in docs:
            number = self.parse_number(doc.get("id") or doc.get("_doc_id"), prefix)
            if number is not None:
                max_number = max(max_number, number)
        return max_number + 1

    async def generate_ids(self, id_type: str, count: int, created_by: Optional[str] = None) -> Tuple[bool, List[str], Optional[str]]:
        """
        Create ``count`` new available IDs continuing from the highest existing number.

        Returns:
            (success, generated_ids, error_message)
        """
        if id_type not in ID_PREFIXES:
            return False, [], f"Invalid ID type: {id_type}"
        if count < 1 or count > settings.MAX_ID_BATCH:
            return False, [], f"Count must be between 1 and {settings.MAX_ID_BATCH}"

        try:
            prefix = self.get_prefix(id_type)
            start = await self._next_number(id_type)
            generated: List[str] = []

            for number in range(start, start + count):
                new_id = f"{prefix}{number}"
                now = datetime.now(timezone.utc)
                ok, _, error = await self.db.create_document(
                    COLLECTIONS['generated_ids'],
                    {
                        "id": new_id,
                        "type": id_type,
                        "status": GeneratedIdStatus.AVAILABLE.value,
                        "assigned_to": None,
                        "assigned_at": None,
                        "usage_count": 0,
                        "created_by": created_by,
                        "created_at": now,
                        "updated_at": now,
                    },
                    document_id=new_id
                )
                if not ok:
                    logger.error(f"Failed to create generated ID {new_id}: {error}")
                    return False, generated, f"Failed to create {new_id}: {error}"
                generated.append(new_id)

            logger.info(f"Generated {len(generated)} {id_type} IDs: {generated[0]}..{generated[-1]}")
            return True, generated, None
        except Exception as e:
            logger.error(f"Error generating IDs: {e}")
            return False, [], str(e)

    async def list_ids(self, id_type: Optional[str] = None, status: Optional[str] = None) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        filters = []
        if id_type:
            filters.append(("type", "==", id_type))
        if status:
            filters.append(("status", "==", status))
        return await self.db.query_documents(
            COLLECTIONS['generated_ids'],
            filters or None,
            order_by="created_at",
            descending=True
        )

    async def get_id(self, generated_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, doc, _ = await self.db.get_document(COLLECTIONS['generated_ids'], generated_id)
        if not success or not doc:
            return False, None, "ID does not exist"
        return True, doc, None

    async def is_id_in_use(self, generated_id: str) -> bool:
        """True when any personnel or registration record carries this ID."""
        for key in ID_HOLDER_COLLECTIONS:
            success, docs, _ = await self.db.query_documents(
                COLLECTIONS[key],
                [("generated_id", "==", generated_id)],
                limit=1
            )
            if success and docs:
                return True
        return False

    async def validate_id_availability(self, generated_id: str) -> Tuple[bool, str]:
        """
        Check whether an ID can be handed to a new registrant.

        Returns:
            (is_valid, message)
        """
        success, doc, _ = await self.get_id(generated_id)
        if not success:
            return False, "ID does not exist"

        status = doc.get("status")
        if status == GeneratedIdStatus.DEACTIVATED.value:
            return False, "ID has been deactivated"
        if status == GeneratedIdStatus.ASSIGNED.value:
            return False, f"ID is already assigned to {doc.get('assigned_to')}"
        if status == GeneratedIdStatus.ACTIVATED.value:
            return False, "ID has already been activated"
        if await self.is_id_in_use(generated_id):
            return False, "ID is already in use"
        return True, "ID is available"

    async def _email_has_activated_id(self, email: str) -> bool:
        success, docs, _ = await self.db.query_documents(
            COLLECTIONS['generated_ids'],
            [("assigned_to", "==", email), ("status", "==", GeneratedIdStatus.ACTIVATED.value)],
            limit=1
        )
        return bool(success and docs)

    async def validate_and_activate_id(self, generated_id: str, email: str) -> Tuple[bool, str]:
        """
        Validate an ID for a registrant and reserve it for their email.

        Re-running for the same email while the ID is still ``assigned`` succeeds
        without changing anything.
        """
        email = (email or "").strip().lower()
        success, doc, _ = await self.get_id(generated_id)
        if not success:
            return False, "ID does not exist"

        status = doc.get("status")
        if status == GeneratedIdStatus.DEACTIVATED.value:
            return False, "ID has been deactivated"
        if status == GeneratedIdStatus.ACTIVATED.value:
            return False, "ID has already been activated"
        if status == GeneratedIdStatus.ASSIGNED.value and doc.get("assigned_to") != email:
            return False, "ID is already assigned to another user"
        if await self._email_has_activated_id(email):
            return False, "This email already has an activated ID"

        if status == GeneratedIdStatus.ASSIGNED.value:
            return True, "ID already assigned to this email"

        ok, error = await self._assign(generated_id, email)
        if not ok:
            return False, error
        return True, "ID validated and assigned"

    async def _assign(self, generated_id: str, email: str) -> Tuple[bool, Optional[str]]:
        return await self.db.update_document(
            COLLECTIONS['generated_ids'],
            generated_id,
            {
                "status": GeneratedIdStatus.ASSIGNED.value,
                "assigned_to": email,
                "assigned_at": datetime.now(timezone.utc),
            }
        )

    async def activate_id(self, generated_id: str, email: str, notify: bool = True) -> Tuple[bool, Optional[str]]:
        """Admin hand-out: assign an available ID to an email and tell the recipient."""
        email = (email or "").strip().lower()
        success, doc, error = await self.get_id(generated_id)
        if not success:
            return False, error

        if not self.can_transition(doc.get("status"), GeneratedIdStatus.ASSIGNED.value):
            return False, f"Cannot assign an ID that is {doc.get('status')}"

        ok, error = await self._assign(generated_id, email)
        if not ok:
            return False, error

        logger.info(f"Assigned {generated_id} to {email}")
        if notify:
            try:
                await self.email_service.send_id_assigned_email(email, generated_id, doc.get("type"))
            except Exception as e:
                logger.error(f"Failed to email assigned ID {generated_id} to {email}: {e}")
        return True, None

    async def finalize_id_activation(self, generated_id: str) -> Tuple[bool, Optional[str]]:
        success, doc, error = await self.get_id(generated_id)
        if not success:
            return False, error

        if doc.get("status") != GeneratedIdStatus.ASSIGNED.value:
            return False, f"Only assigned IDs can be activated (current status: {doc.get('status')})"

        ok, error = await self.db.update_document(
            COLLECTIONS['generated_ids'],
            generated_id,
            {
                "status": GeneratedIdStatus.ACTIVATED.value,
                "activated_at": datetime.now(timezone.utc),
            }
        )
        if ok:
            logger.info(f"Activated {generated_id} for {doc.get('assigned_to')}")
        return ok, error

    async def free_id(self, generated_id: str, reason: str = "Freed by admin") -> Tuple[bool, Optional[str]]:
        """Return an assigned or activated ID to the pool, keeping a trace of the last holder."""
        success, doc, error = await self.get_id(generated_id)
        if not success:
            return False, error

        status = doc.get("status")
        if status not in (GeneratedIdStatus.ASSIGNED.value, GeneratedIdStatus.ACTIVATED.value):
            return False, f"Only assigned or activated IDs can be freed (current status: {status})"

        now = datetime.now(timezone.utc)
        ok, error = await self.db.update_document(
            COLLECTIONS['generated_ids'],
            generated_id,
            {
                "status": GeneratedIdStatus.AVAILABLE.value,
                "assigned_to": None,
                "assigned_at": None,
                "activated_at": None,
                "freed_at": now,
                "freed_reason": reason,
                "last_assigned_to": doc.get("assigned_to"),
                "last_assigned_at": doc.get("assigned_at"),
                "usage_count": int(doc.get("usage_count") or 0) + 1,
            }
        )
        if ok:
            logger.info(f"Freed {generated_id} (was {doc.get('assigned_to')}): {reason}")
        return ok, error

    async def deactivate_id(self, generated_id: str, reason: str = "Deactivated by admin") -> Tuple[bool, Optional[str]]:
        success, doc, error = await self.get_id(generated_id)
        if not success:
            return False, error

        if not self.can_transition(doc.get("status"), GeneratedIdStatus.DEACTIVATED.value):
            return False, "ID is already deactivated"

        return await self.db.update_document(
            COLLECTIONS['generated_ids'],
            generated_id,
            {
                "status": GeneratedIdStatus.DEACTIVATED.value,
                "deactivated_at": datetime.now(timezone.utc),
                "deactivation_reason": reason,
            }
        )

    async def reactivate_id(self, generated_id: str) -> Tuple[bool, Optional[str]]:
        success, doc, error = await self.get_id(generated_id)
        if not success:
            return False, error

        if doc.get("status") != GeneratedIdStatus.DEACTIVATED.value:
            return False, "Only deactivated IDs can be reactivated"

        return await self.db.update_document(
            COLLECTIONS['generated_ids'],
            generated_id,
            {
                "status": GeneratedIdStatus.AVAILABLE.value,
                "assigned_to": None,
                "assigned_at": None,
                "deactivated_at": None,
                "deactivation_reason": None,
            }
        )

    async def get_statistics(self) -> Dict[str, Any]:
        success, docs, _ = await self.db.query_documents(COLLECTIONS['generated_ids'])
        docs = docs if success else []

        def _counts(items: List[Dict[str, Any]]) -> Dict[str, int]:
            counts = {"total": len(items)}
            for status in GeneratedIdStatus:
                counts[status.value] = sum(1 for d in items if d.get("status") == status.value)
            counts["freed"] = sum(1 for d in items if d.get("freed_at"))
            return counts

        stats = _counts(docs)
        stats["by_type"] = {
            id_type.value: _counts([d for d in docs if d.get("type") == id_type.value])
            for id_type in GeneratedIdType
        }
        return stats


generated_id_service = GeneratedIdService()
