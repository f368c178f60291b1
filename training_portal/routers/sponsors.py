from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin
from ..services.sponsor_service import sponsor_service

logger = logging.getLogger("training_portal.routers.sponsors")

router = APIRouter(prefix="/api/sponsors", tags=["sponsors"])


class SponsorCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Sponsor name")
    description: Optional[str] = Field(None, description="Sponsor description")
    logo_url: Optional[str] = None
    start_date: Optional[str] = Field(None, description="Programme start date (YYYY-MM-DD)")
    end_date: Optional[str] = Field(None, description="Programme end date (YYYY-MM-DD)")
    is_active: bool = Field(False, description="Make this the sponsor new trainees register under")


class SponsorUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_active: Optional[bool] = None


def _status_for(error: Optional[str]) -> int:
    return 404 if error and "not found" in error.lower() else 400


@router.post("/")
async def create_sponsor(request: SponsorCreateRequest, current_user: dict = Depends(require_admin)):
    try:
        success, sponsor_id, error = await sponsor_service.create_sponsor(
            request.model_dump(), created_by=current_user.get("uid")
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "sponsor_id": sponsor_id, "message": "Sponsor created successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/")
async def list_sponsors(current_user: dict = Depends(get_current_user)):
    sponsors = await sponsor_service.list_sponsors()
    return {"success": True, "sponsors": sponsors, "count": len(sponsors)}


@router.get("/active")
async def get_active_sponsor():
    """The sponsor new trainee registrations are attached to. Public for the sign-up page."""
    sponsor = await sponsor_service.get_active_sponsor()
    if not sponsor:
        raise HTTPException(status_code=404, detail="No active sponsor")
    return {"success": True, "sponsor": sponsor}


@router.post("/deactivate-all")
async def deactivate_all_sponsors(current_user: dict = Depends(require_admin)):
    count = await sponsor_service.deactivate_all_sponsors()
    return {"success": True, "deactivated": count}


@router.get("/{sponsor_id}")
async def get_sponsor(sponsor_id: str, current_user: dict = Depends(get_current_user)):
    success, sponsor, error = await sponsor_service.get_sponsor(sponsor_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "sponsor": sponsor}


@router.put("/{sponsor_id}")
async def update_sponsor(sponsor_id: str, request: SponsorUpdateRequest, current_user: dict = Depends(require_admin)):
    try:
        success, error = await sponsor_service.update_sponsor(sponsor_id, request.model_dump(exclude_unset=True))
        if not success:
            raise HTTPException(status_code=_status_for(error), detail=error)
        return {"success": True, "message": "Sponsor updated successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{sponsor_id}/activate")
async def activate_sponsor(sponsor_id: str, current_user: dict = Depends(require_admin)):
    success, error = await sponsor_service.activate_sponsor(sponsor_id)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Sponsor activated"}


@router.delete("/{sponsor_id}")
async def delete_sponsor(sponsor_id: str, current_user: dict = Depends(require_admin)):
    success, error = await sponsor_service.delete_sponsor(sponsor_id)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Sponsor deleted successfully"}
