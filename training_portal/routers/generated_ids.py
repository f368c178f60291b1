"""
Admin management of staff / resource person IDs.

Lifecycle: available -> assigned -> activated; any -> deactivated;
assigned/activated -> available when freed.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
import logging

from ..auth.dependencies import require_admin
from ..core.config import settings
from ..models.database_models import GeneratedIdStatus, GeneratedIdType
from ..services.generated_id_service import generated_id_service

logger = logging.getLogger("training_portal.routers.generated_ids")

router = APIRouter(prefix="/api/generated-ids", tags=["generated-ids"])


class GenerateIdsRequest(BaseModel):
    id_type: GeneratedIdType = Field(..., description="staff or resource_person")
    count: int = Field(1, ge=1, le=settings.MAX_ID_BATCH, description="How many IDs to generate")


class AssignIdRequest(BaseModel):
    email: EmailStr = Field(..., description="Recipient of the ID")
    notify: bool = Field(True, description="Email the ID to the recipient")


class ReasonRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Why the ID is being freed or deactivated")


def _raise(error: Optional[str]):
    status_code = 404 if error == "ID does not exist" else 400
    raise HTTPException(status_code=status_code, detail=error)


@router.post("/generate")
async def generate_ids(request: GenerateIdsRequest, current_user: dict = Depends(require_admin)):
    try:
        success, ids, error = await generated_id_service.generate_ids(
            request.id_type.value, request.count, created_by=current_user.get("uid")
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "ids": ids, "count": len(ids)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating IDs: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/")
async def list_ids(
    id_type: Optional[GeneratedIdType] = Query(None),
    status: Optional[GeneratedIdStatus] = Query(None),
    current_user: dict = Depends(require_admin)
):
    success, ids, error = await generated_id_service.list_ids(
        id_type.value if id_type else None, status.value if status else None
    )
    if not success:
        raise HTTPException(status_code=500, detail=error)
    return {"success": True, "ids": ids, "count": len(ids)}


@router.get("/statistics")
async def get_statistics(current_user: dict = Depends(require_admin)):
    return {"success": True, "statistics": await generated_id_service.get_statistics()}


@router.get("/{generated_id}")
async def get_id(generated_id: str, current_user: dict = Depends(require_admin)):
    success, doc, error = await generated_id_service.get_id(generated_id.strip().upper())
    if not success:
        _raise(error)
    return {"success": True, "id": doc}


@router.get("/{generated_id}/validate")
async def validate_id(generated_id: str, current_user: dict = Depends(require_admin)):
    valid, message = await generated_id_service.validate_id_availability(generated_id.strip().upper())
    return {"generated_id": generated_id.strip().upper(), "valid": valid, "message": message}


@router.post("/{generated_id}/assign")
async def assign_id(generated_id: str, request: AssignIdRequest, current_user: dict = Depends(require_admin)):
    success, error = await generated_id_service.activate_id(
        generated_id.strip().upper(), request.email, notify=request.notify
    )
    if not success:
        _raise(error)
    return {"success": True, "message": f"ID assigned to {request.email}"}


@router.post("/{generated_id}/free")
async def free_id(generated_id: str, request: ReasonRequest, current_user: dict = Depends(require_admin)):
    success, error = await generated_id_service.free_id(
        generated_id.strip().upper(), reason=request.reason or "Freed by admin"
    )
    if not success:
        _raise(error)
    return {"success": True, "message": "ID returned to the available pool"}


@router.post("/{generated_id}/deactivate")
async def deactivate_id(generated_id: str, request: ReasonRequest, current_user: dict = Depends(require_admin)):
    success, error = await generated_id_service.deactivate_id(
        generated_id.strip().upper(), reason=request.reason or "Deactivated by admin"
    )
    if not success:
        _raise(error)
    return {"success": True, "message": "ID deactivated"}


@router.post("/{generated_id}/reactivate")
async def reactivate_id(generated_id: str, current_user: dict = Depends(require_admin)):
    success, error = await generated_id_service.reactivate_id(generated_id.strip().upper())
    if not success:
        _raise(error)
    return {"success": True, "message": "ID reactivated"}
