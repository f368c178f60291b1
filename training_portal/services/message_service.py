from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from .notification_service import notification_service

logger = logging.getLogger(__name__)

PRIORITIES = {"low", "normal", "high", "urgent"}

# message_type -> (sender role, recipient collection)
DIRECT_MESSAGE_TYPES = {
    "trainee_to_rp": ("trainee", "resource_persons"),
    "rp_to_trainee": ("resource_person", "trainees"),
}


def _display_name(record: Dict[str, Any]) -> str:
    return " ".join(p for p in [record.get("first_name"), record.get("surname")] if p) or record.get("email", "")


def notification_title(from_name: str, from_tag_number: Optional[str]) -> str:
    if from_tag_number:
        return f"New message from {from_name} ({from_tag_number})"
    return f"New message from {from_name}"


class MessageService:
    def __init__(self):
        self.db = database_service
        self.notification_service = notification_service

    async def _store(self, sender: Dict[str, Any], recipient: Dict[str, Any], subject: str, message: str,
                     message_type: str, priority: str, sponsor_id: Optional[str] = None) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        message_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        data = {
            "id": message_id,
            "from_id": sender.get("uid"),
            "from_name": sender.get("name"),
            "from_email": sender.get("email"),
            "from_tag_number": sender.get("tag_number"),
            "from_role": sender.get("role"),
            "to_id": recipient.get("uid"),
            "to_name": recipient.get("name"),
            "to_email": recipient.get("email"),
            "subject": subject,
            "message": message,
            "is_read": False,
            "message_type": message_type,
            "priority": priority,
            "sponsor_id": sponsor_id,
            "created_at": now,
            "updated_at": now,
        }
        success, _, error = await self.db.create_document(COLLECTIONS['messages'], data, document_id=message_id)
        if not success:
            return False, None, f"Failed to send message: {error}"

        try:
            await self.notification_service.create_notification(
                user_id=data["to_id"],
                title=notification_title(data["from_name"], data["from_tag_number"]),
                message=f"{subject} - From: {data['from_email']}",
                notification_type="message",
                message_id=message_id,
                from_id=data["from_id"],
                from_name=data["from_name"],
            )
        except Exception as e:
            logger.error(f"Failed to create notification for message {message_id}: {e}")

        return True, data, None

    async def send_message(
        self,
        sender: Dict[str, Any],
        to_id: str,
        subject: str,
        message: str,
        message_type: str,
        priority: str = "normal"
    ) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """
        Send a direct message between a trainee and a resource person.

        ``sender`` carries uid, name, email, role and (for trainees) tag_number.
        """
        if message_type not in DIRECT_MESSAGE_TYPES:
            return False, None, f"Invalid message type: {message_type}"
        if priority not in PRIORITIES:
            return False, None, f"Invalid priority: {priority}"
        if not to_id:
            return False, None, "Recipient is required"
        if not subject.strip() or not message.strip():
            return False, None, "Subject and message are required"

        sender_role, recipient_collection = DIRECT_MESSAGE_TYPES[message_type]
        if sender.get("role") != sender_role:
            return False, None, f"Only a {sender_role.replace('_', ' ')} can send {message_type} messages"

        found, recipient_record, _ = await self.db.get_document(COLLECTIONS[recipient_collection], to_id)
        if not found or not recipient_record:
            return False, None, "Recipient not found"

        recipient = {
            "uid": to_id,
            "name": _display_name(recipient_record),
            "email": recipient_record.get("email"),
        }
        return await self._store(sender, recipient, subject, message, message_type, priority)

    async def broadcast_message(
        self,
        sender: Dict[str, Any],
        subject: str,
        message: str,
        sponsor_id: Optional[str] = None,
        priority: str = "normal"
    ) -> Tuple[bool, int, Optional[str]]:
        """Admin broadcast: one message per active trainee in scope."""
        if priority not in PRIORITIES:
            return False, 0, f"Invalid priority: {priority}"

        filters = [("is_active", "==", True)]
        if sponsor_id:
            filters.append(("sponsor_id", "==", sponsor_id))
        success, trainees, error = await self.db.query_documents(COLLECTIONS['trainees'], filters)
        if not success:
            return False, 0, error

        sent = 0
        for trainee in trainees:
            recipient = {
                "uid": trainee.get("trainee_id") or trainee.get("_doc_id"),
                "name": _display_name(trainee),
                "email": trainee.get("email"),
            }
            ok, _, err = await self._store(sender, recipient, subject, message, "admin_broadcast", priority, sponsor_id)
            if ok:
                sent += 1
            else:
                logger.warning(f"Broadcast to {recipient['uid']} failed: {err}")

        logger.info(f"Broadcast '{subject}' delivered to {sent}/{len(trainees)} trainee(s)")
        return True, sent, None

    async def get_inbox(self, user_id: str) -> List[Dict[str, Any]]:
        success, messages, _ = await self.db.query_documents(
            COLLECTIONS['messages'], [("to_id", "==", user_id)], order_by="created_at", descending=True
        )
        return messages if success else []

    async def get_sent(self, user_id: str) -> List[Dict[str, Any]]:
        success, messages, _ = await self.db.query_documents(
            COLLECTIONS['messages'], [("from_id", "==", user_id)], order_by="created_at", descending=True
        )
        return messages if success else []

    async def mark_as_read(self, message_id: str, user_id: str) -> Tuple[bool, Optional[str]]:
        success, message, _ = await self.db.get_document(COLLECTIONS['messages'], message_id)
        if not success or not message:
            return False, "Message not found"
        if message.get("to_id") != user_id:
            return False, "Only the recipient can mark a message as read"
        return await self.db.update_document(
            COLLECTIONS['messages'], message_id, {"is_read": True, "read_at": datetime.now(timezone.utc)}
        )

    async def get_unread_count(self, user_id: str) -> int:
        success, messages, _ = await self.db.query_documents(
            COLLECTIONS['messages'], [("to_id", "==", user_id), ("is_read", "==", False)]
        )
        return len(messages) if success else 0


message_service = MessageService()
