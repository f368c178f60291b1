from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import uuid

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)


class SponsorService:
    """Sponsors group trainees; at most one sponsor is active for new registrations."""

    def __init__(self):
        self.db = database_service

    async def create_sponsor(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[str]]:
        try:
            sponsor_id = str(uuid.uuid4())
            now = datetime.now(timezone.utc)
            sponsor_data = {
                "id": sponsor_id,
                "name": data.get("name"),
                "description": data.get("description"),
                "logo_url": data.get("logo_url"),
                "start_date": data.get("start_date"),
                "end_date": data.get("end_date"),
                "is_active": False,
                "created_by": created_by,
                "created_at": now,
                "updated_at": now,
            }
            success, doc_id, error = await self.db.create_document(
                COLLECTIONS['sponsors'], sponsor_data, document_id=sponsor_id
            )
            if not success:
                return False, None, f"Failed to create sponsor: {error}"

            if data.get("is_active"):
                await self.activate_sponsor(sponsor_id)

            logger.info(f"Sponsor created: {sponsor_data['name']} ({sponsor_id})")
            return True, doc_id, None
        except Exception as e:
            logger.error(f"Error creating sponsor: {e}")
            return False, None, str(e)

    async def list_sponsors(self) -> List[Dict[str, Any]]:
        success, sponsors, error = await self.db.query_documents(
            COLLECTIONS['sponsors'], order_by="created_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list sponsors: {error}")
            return []
        return sponsors

    async def get_sponsor(self, sponsor_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, sponsor, _ = await self.db.get_document(COLLECTIONS['sponsors'], sponsor_id)
        if not success or not sponsor:
            return False, None, "Sponsor not found"
        return True, sponsor, None

    async def get_active_sponsor(self) -> Optional[Dict[str, Any]]:
        success, sponsors, _ = await self.db.query_documents(
            COLLECTIONS['sponsors'],
            [("is_active", "==", True)],
            order_by="created_at",
            descending=True,
            limit=1
        )
        if success and sponsors:
            return sponsors[0]
        return None

    async def update_sponsor(self, sponsor_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_sponsor(sponsor_id)
        if not success:
            return False, error

        updates = {k: v for k, v in data.items() if v is not None and k != "is_active"}
        if updates:
            ok, error = await self.db.update_document(COLLECTIONS['sponsors'], sponsor_id, updates)
            if not ok:
                return False, error

        if data.get("is_active") is True:
            return await self.activate_sponsor(sponsor_id)
        if data.get("is_active") is False:
            return await self.db.update_document(COLLECTIONS['sponsors'], sponsor_id, {"is_active": False})
        return True, None

    async def activate_sponsor(self, sponsor_id: str) -> Tuple[bool, Optional[str]]:
        """Make ``sponsor_id`` the only active sponsor."""
        success, _, error = await self.get_sponsor(sponsor_id)
        if not success:
            return False, error

        await self.deactivate_all_sponsors(exclude_id=sponsor_id)
        return await self.db.update_document(COLLECTIONS['sponsors'], sponsor_id, {"is_active": True})

    async def deactivate_all_sponsors(self, exclude_id: Optional[str] = None) -> int:
        success, active, _ = await self.db.query_documents(
            COLLECTIONS['sponsors'], [("is_active", "==", True)]
        )
        if not success:
            return 0

        count = 0
        for sponsor in active:
            sponsor_id = sponsor.get("_doc_id") or sponsor.get("id")
            if sponsor_id == exclude_id:
                continue
            ok, _ = await self.db.update_document(COLLECTIONS['sponsors'], sponsor_id, {"is_active": False})
            if ok:
                count += 1
        return count

    async def delete_sponsor(self, sponsor_id: str) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_sponsor(sponsor_id)
        if not success:
            return False, error
        return await self.db.delete_document(COLLECTIONS['sponsors'], sponsor_id)


sponsor_service = SponsorService()
