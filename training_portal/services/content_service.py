from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)

CONTENT_TYPES = {"video", "quiz", "assignment"}
PROGRESS_STATUSES = {"not_started", "in_progress", "completed"}
CONTENT_FIELDS = {"title", "description", "type", "video_id", "file_id", "sponsor_id", "order_index", "is_active"}


class ContentService:
    """Learning content items and per-trainee progress through them."""

    def __init__(self):
        self.db = database_service

    async def create_content(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[str]]:
        content_type = data.get("type", "video")
        if content_type not in CONTENT_TYPES:
            return False, None, f"Invalid content type: {content_type}"

        content_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        content = {k: v for k, v in data.items() if k in CONTENT_FIELDS}
        content.update({
            "id": content_id,
            "type": content_type,
            "order_index": data.get("order_index", 0),
            "is_active": data.get("is_active", True),
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })
        success, doc_id, error = await self.db.create_document(COLLECTIONS['content'], content, document_id=content_id)
        if not success:
            return False, None, f"Failed to create content: {error}"
        return True, doc_id, None

    async def list_content(self, sponsor_id: Optional[str] = None, active_only: bool = True) -> List[Dict[str, Any]]:
        filters = [("is_active", "==", True)] if active_only else None
        success, items, error = await self.db.query_documents(
            COLLECTIONS['content'], filters, order_by="order_index"
        )
        if not success:
            logger.error(f"Failed to list content: {error}")
            return []
        if sponsor_id:
            items = [c for c in items if not c.get("sponsor_id") or c.get("sponsor_id") == sponsor_id]
        return items

    async def get_content(self, content_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, content, _ = await self.db.get_document(COLLECTIONS['content'], content_id)
        if not success or not content:
            return False, None, "Content not found"
        return True, content, None

    async def update_content(self, content_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_content(content_id)
        if not success:
            return False, error
        updates = {k: v for k, v in data.items() if k in CONTENT_FIELDS and v is not None}
        if "type" in updates and updates["type"] not in CONTENT_TYPES:
            return False, f"Invalid content type: {updates['type']}"
        return await self.db.update_document(COLLECTIONS['content'], content_id, updates)

    async def delete_content(self, content_id: str) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_content(content_id)
        if not success:
            return False, error
        return await self.db.update_document(COLLECTIONS['content'], content_id, {"is_active": False})

    # ===== Progress =====

    async def update_progress(
        self,
        trainee_id: str,
        content_id: str,
        status: str,
        progress: Optional[int] = None
    ) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        if status not in PROGRESS_STATUSES:
            return False, None, f"Invalid progress status: {status}"
        if progress is not None and not 0 <= progress <= 100:
            return False, None, "Progress must be between 0 and 100"

        found, _, error = await self.get_content(content_id)
        if not found:
            return False, None, error

        now = datetime.now(timezone.utc)
        if status == "completed":
            progress = 100
        elif progress is None:
            progress = 0

        success, existing, _ = await self.db.query_documents(
            COLLECTIONS['trainee_progress'],
            [("trainee_id", "==", trainee_id), ("content_id", "==", content_id)],
            limit=1
        )
        updates = {
            "status": status,
            "progress": progress,
            "completed_at": now if status == "completed" else None,
        }

        if success and existing:
            record = existing[0]
            record_id = record.get("_doc_id") or record["id"]
            ok, error = await self.db.update_document(COLLECTIONS['trainee_progress'], record_id, updates)
            if not ok:
                return False, None, error
            return True, {**record, **updates}, None

        record = {
            "id": str(uuid.uuid4()),
            "trainee_id": trainee_id,
            "content_id": content_id,
            **updates,
            "created_at": now,
            "updated_at": now,
        }
        ok, _, error = await self.db.create_document(COLLECTIONS['trainee_progress'], record, document_id=record["id"])
        if not ok:
            return False, None, error
        return True, record, None

    async def get_trainee_progress(self, trainee_id: str) -> List[Dict[str, Any]]:
        success, records, _ = await self.db.query_documents(
            COLLECTIONS['trainee_progress'], [("trainee_id", "==", trainee_id)]
        )
        return records if success else []

    async def count_completed(self, trainee_id: Optional[str] = None) -> int:
        filters = [("status", "==", "completed")]
        if trainee_id:
            filters.append(("trainee_id", "==", trainee_id))
        success, records, _ = await self.db.query_documents(COLLECTIONS['trainee_progress'], filters)
        return len(records) if success else 0


content_service = ContentService()
