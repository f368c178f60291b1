from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime, timezone
import logging
import uuid

from ..database.database_service import database_service, sort_documents
from ..database.collections import COLLECTIONS
from .notification_service import notification_service

logger = logging.getLogger(__name__)

ADMIN_REPLY_PREVIEW_LENGTH = 50


def _preview(text: str, length: int = ADMIN_REPLY_PREVIEW_LENGTH) -> str:
    return f"{(text or '')[:length]}..."


class AnnouncementService:
    """Announcements scoped to a sponsor (or global), with threaded replies."""

    def __init__(self):
        self.db = database_service
        self.notification_service = notification_service

    async def create_announcement(
        self,
        title: str,
        message: str,
        author: str = "Admin",
        sponsor_id: Optional[str] = None,
        created_by: Optional[str] = None,
        notify_trainees: bool = True
    ) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Create an announcement and notify the trainees who can see it.

        Args:
            title: Short headline
            message: Full announcement text
            author: Display name shown as the sender
            sponsor_id: Limit to one sponsor's trainees; None makes it global
            created_by: uid of the admin creating it
            notify_trainees: Whether to fan out in-app notifications

        Returns:
            (success, announcement_id, error_message)
        """
        try:
            announcement_id = str(uuid.uuid4())
            now = datetime.now(timezone.utc)
            announcement_data = {
                "id": announcement_id,
                "title": title,
                "message": message,
                "author": author,
                "sponsor_id": sponsor_id,
                "is_active": True,
                "created_by": created_by,
                "created_at": now,
                "updated_at": now,
            }

            success, doc_id, error = await self.db.create_document(
                COLLECTIONS['announcements'],
                announcement_data,
                document_id=announcement_id
            )
            if not success:
                return False, None, f"Failed to create announcement: {error}"

            logger.info(f"Announcement created: {announcement_id} by {created_by} (sponsor={sponsor_id or 'all'})")

            if notify_trainees:
                try:
                    recipients = await self._recipients(sponsor_id)
                    sent = await self.notification_service.notify_many(
                        recipients,
                        title=f"New announcement: {title}",
                        message=_preview(message, 100) if len(message) > 100 else message,
                        notification_type="announcement",
                        announcement_id=announcement_id,
                        from_id=created_by,
                        from_name=author,
                    )
                    logger.info(f"Announcement {announcement_id} notified {sent} trainee(s)")
                except Exception as e:
                    logger.error(f"Failed to notify trainees about announcement {announcement_id}: {e}")

            return True, doc_id, None

        except Exception as e:
            logger.error(f"Error creating announcement: {e}")
            return False, None, str(e)

    async def _recipients(self, sponsor_id: Optional[str]) -> List[str]:
        filters = [("is_active", "==", True)]
        if sponsor_id:
            filters.append(("sponsor_id", "==", sponsor_id))
        success, trainees, _ = await self.db.query_documents(COLLECTIONS['trainees'], filters)
        if not success:
            return []
        return [t.get("trainee_id") or t.get("_doc_id") for t in trainees]

    async def list_announcements(self, sponsor_id: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
        """Announcements for a sponsor plus the global ones, newest first."""
        filters = [("is_active", "==", True)] if active_only else None
        success, announcements, error = await self.db.query_documents(
            COLLECTIONS['announcements'], filters, order_by="created_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list announcements: {error}")
            return []

        if sponsor_id:
            announcements = [
                a for a in announcements
                if not a.get("sponsor_id") or a.get("sponsor_id") == sponsor_id
            ]
        return announcements

    async def get_announcement(self, announcement_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, announcement, _ = await self.db.get_document(COLLECTIONS['announcements'], announcement_id)
        if not success or not announcement:
            return False, None, "Announcement not found"
        return True, announcement, None

    async def update_announcement(self, announcement_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_announcement(announcement_id)
        if not success:
            return False, error

        allowed = {"title", "message", "author", "sponsor_id", "is_active"}
        updates = {k: v for k, v in data.items() if k in allowed and v is not None}
        if not updates:
            return False, "No valid fields to update"
        return await self.db.update_document(COLLECTIONS['announcements'], announcement_id, updates)

    async def set_active(self, announcement_id: str, is_active: bool) -> Tuple[bool, Optional[str]]:
        return await self.update_announcement(announcement_id, {"is_active": is_active})

    async def delete_announcement(self, announcement_id: str) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_announcement(announcement_id)
        if not success:
            return False, error

        found, replies, _ = await self.db.query_documents(
            COLLECTIONS['announcement_replies'], [("announcement_id", "==", announcement_id)]
        )
        for reply in replies if found else []:
            await self.db.delete_document(COLLECTIONS['announcement_replies'], reply.get("_doc_id") or reply["id"])

        return await self.db.delete_document(COLLECTIONS['announcements'], announcement_id)

    # ===== Replies =====

    async def create_reply(
        self,
        announcement_id: str,
        message: str,
        from_id: str,
        from_name: str,
        from_role: str,
        reply_to_id: Optional[str] = None
    ) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        if from_role not in ("admin", "trainee"):
            return False, None, "Only admins and trainees can reply to announcements"
        if not (message or "").strip():
            return False, None, "Reply message is required"

        success, _, error = await self.get_announcement(announcement_id)
        if not success:
            return False, None, error

        parent = None
        if reply_to_id:
            found, parent, _ = await self.db.get_document(COLLECTIONS['announcement_replies'], reply_to_id)
            if not found or not parent or parent.get("announcement_id") != announcement_id:
                return False, None, "Reply being answered was not found"

        reply_id = str(uuid.uuid4())
        reply = {
            "id": reply_id,
            "announcement_id": announcement_id,
            "message": message,
            "from_name": from_name,
            "from_id": from_id,
            "from_role": from_role,
            "reply_to_id": reply_to_id,
            "created_at": datetime.now(timezone.utc),
        }
        ok, _, error = await self.db.create_document(COLLECTIONS['announcement_replies'], reply, document_id=reply_id)
        if not ok:
            return False, None, f"Failed to create reply: {error}"

        # An admin answering a trainee's reply notifies that trainee
        if from_role == "admin" and parent and parent.get("from_role") == "trainee":
            try:
                await self.notification_service.create_notification(
                    user_id=parent.get("from_id"),
                    title="Admin Response",
                    message=_preview(message),
                    notification_type="admin_reply",
                    announcement_id=announcement_id,
                    reply_id=reply_id,
                    from_id=from_id,
                    from_name=from_name,
                )
            except Exception as e:
                logger.error(f"Failed to notify trainee about admin reply {reply_id}: {e}")

        return True, reply, None

    async def list_replies(self, announcement_id: str) -> List[Dict[str, Any]]:
        success, replies, error = await self.db.query_documents(
            COLLECTIONS['announcement_replies'],
            [("announcement_id", "==", announcement_id)],
            order_by="created_at"
        )
        if not success:
            # Index may still be building
            logger.warning(f"Could not load replies for {announcement_id}: {error}")
            return []
        return sort_documents(replies, "created_at")


announcement_service = AnnouncementService()
