from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
import logging
import uuid

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {"admin_reply", "announcement", "message"}

class NotificationService:
    def __init__(self):
        self.db = database_service

    async def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        notification_type: str,
        announcement_id: Optional[str] = None,
        reply_id: Optional[str] = None,
        message_id: Optional[str] = None,
        from_id: Optional[str] = None,
        from_name: Optional[str] = None
    ) -> Tuple[bool, Optional[str], Optional[str]]:
        """Create an in-app notification for a single user"""
        if notification_type not in NOTIFICATION_TYPES:
            return False, None, f"Invalid notification type: {notification_type}"

        try:
            notification_id = str(uuid.uuid4())
            notification_data = {
                "id": notification_id,
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "announcement_id": announcement_id,
                "reply_id": reply_id,
                "message_id": message_id,
                "from_id": from_id,
                "from_name": from_name,
                "is_read": False,
                "created_at": datetime.now(timezone.utc),
            }

            success, doc_id, error = await self.db.create_document(
                COLLECTIONS['notifications'],
                notification_data,
                document_id=notification_id
            )
            if not success:
                logger.error(f"Failed to create notification for {user_id}: {error}")
                return False, None, error

            return True, doc_id, None

        except Exception as e:
            logger.error(f"Failed to create notification: {str(e)}")
            return False, None, str(e)

    async def notify_many(self, user_ids: List[str], title: str, message: str, notification_type: str, **kwargs) -> int:
        """Fan a notification out to several users; returns how many were created."""
        created = 0
        for user_id in user_ids:
            ok, _, _ = await self.create_notification(user_id, title, message, notification_type, **kwargs)
            if ok:
                created += 1
        return created

    async def get_user_notifications(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Dict[str, Any]]:
        filters = [("user_id", "==", user_id)]
        if unread_only:
            filters.append(("is_read", "==", False))

        success, notifications, error = await self.db.query_documents(
            COLLECTIONS['notifications'],
            filters,
            order_by="created_at",
            descending=True,
            limit=limit
        )
        if not success:
            logger.error(f"Failed to load notifications for {user_id}: {error}")
            return []
        return notifications

    async def mark_as_read(self, notification_id: str, user_id: str) -> Tuple[bool, Optional[str]]:
        success, notification, _ = await self.db.get_document(COLLECTIONS['notifications'], notification_id)
        if not success or not notification:
            return False, "Notification not found"
        if notification.get("user_id") != user_id:
            return False, "Notification belongs to another user"

        return await self.db.update_document(
            COLLECTIONS['notifications'],
            notification_id,
            {"is_read": True, "read_at": datetime.now(timezone.utc)}
        )

    async def mark_all_as_read(self, user_id: str) -> int:
        unread = await self.get_user_notifications(user_id, unread_only=True, limit=None)
        updated = 0
        for notification in unread:
            ok, _ = await self.db.update_document(
                COLLECTIONS['notifications'],
                notification.get("_doc_id") or notification["id"],
                {"is_read": True, "read_at": datetime.now(timezone.utc)}
            )
            if ok:
                updated += 1
        return updated

    async def get_unread_count(self, user_id: str) -> int:
        unread = await self.get_user_notifications(user_id, unread_only=True, limit=None)
        return len(unread)


notification_service = NotificationService()
