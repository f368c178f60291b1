from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)


class SettingsService:
    """Key/value system settings, one document per key."""

    def __init__(self):
        self.db = database_service

    async def get_setting(self, key: str, default: Any = None) -> Any:
        success, setting, _ = await self.db.get_document(COLLECTIONS['system_settings'], key)
        if not success or not setting:
            return default
        return setting.get("value", default)

    async def set_setting(self, key: str, value: Any, description: Optional[str] = None,
                          updated_by: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        if not key or not key.strip():
            return False, "Setting key is required"

        data = {
            "key": key,
            "value": value,
            "updated_by": updated_by,
            "updated_at": datetime.now(timezone.utc),
        }
        if description is not None:
            data["description"] = description

        exists, _, _ = await self.db.get_document(COLLECTIONS['system_settings'], key)
        if exists:
            return await self.db.update_document(COLLECTIONS['system_settings'], key, data)

        success, _, error = await self.db.create_document(COLLECTIONS['system_settings'], data, document_id=key)
        if success:
            logger.info(f"Setting '{key}' created by {updated_by}")
        return success, error

    async def list_settings(self) -> List[Dict[str, Any]]:
        success, settings_list, _ = await self.db.query_documents(COLLECTIONS['system_settings'], order_by="key")
        return settings_list if success else []


settings_service = SettingsService()
