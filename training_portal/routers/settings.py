from fastapi import APIRouter, HTTPException, Depends
from typing import Any, Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin
from ..services.settings_service import settings_service

logger = logging.getLogger("training_portal.routers.settings")

router = APIRouter(prefix="/api/settings", tags=["settings"])


class SettingRequest(BaseModel):
    value: Any = Field(..., description="Any JSON value")
    description: Optional[str] = None


@router.get("/")
async def list_settings(current_user: dict = Depends(require_admin)):
    settings_list = await settings_service.list_settings()
    return {"success": True, "settings": settings_list}


@router.get("/{key}")
async def get_setting(key: str, current_user: dict = Depends(get_current_user)):
    value = await settings_service.get_setting(key)
    if value is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"key": key, "value": value}


@router.put("/{key}")
async def put_setting(key: str, request: SettingRequest, current_user: dict = Depends(require_admin)):
    success, error = await settings_service.set_setting(
        key, request.value, description=request.description, updated_by=current_user.get("uid")
    )
    if not success:
        raise HTTPException(status_code=400, detail=error)
    return {"success": True, "key": key, "value": request.value}
