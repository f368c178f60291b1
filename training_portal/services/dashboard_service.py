from typing import Any, Dict
import logging

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from .content_service import content_service
from .generated_id_service import generated_id_service

logger = logging.getLogger(__name__)


class DashboardService:
    def __init__(self):
        self.db = database_service

    async def _count(self, collection_key: str, filters=None) -> int:
        success, docs, error = await self.db.query_documents(COLLECTIONS[collection_key], filters)
        if not success:
            logger.warning(f"Could not count {collection_key}: {error}")
            return 0
        return len(docs)

    async def get_statistics(self) -> Dict[str, Any]:
        """Headline numbers for the admin dashboard."""
        return {
            "total_trainees": await self._count('trainees'),
            "active_trainees": await self._count('trainees', [("is_active", "==", True)]),
            "active_sponsors": await self._count('sponsors', [("is_active", "==", True)]),
            "completed_courses": await content_service.count_completed(),
            "active_content": await self._count('content', [("is_active", "==", True)]),
            "total_exams": await self._count('cbt_exams'),
            "total_attempts": await self._count('cbt_exam_attempts'),
            "total_staff": await self._count('staff'),
            "total_resource_persons": await self._count('resource_persons'),
            "generated_ids": await generated_id_service.get_statistics(),
        }


dashboard_service = DashboardService()
