from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from ..auth.dependencies import require_admin, require_personnel, require_self_or_admin
from ..models.user import TraineeUpdate
from ..services.personnel_service import personnel_service

logger = logging.getLogger("training_portal.routers.trainees")

router = APIRouter(prefix="/api/trainees", tags=["trainees"])


@router.get("/")
async def list_trainees(
    sponsor_id: Optional[str] = Query(None, description="Only trainees of this sponsor"),
    active_only: bool = Query(False),
    current_user: dict = Depends(require_personnel)
):
    trainees = await personnel_service.list_trainees(sponsor_id=sponsor_id, active_only=active_only)
    return {"success": True, "trainees": trainees, "count": len(trainees)}


@router.get("/by-email/{email}")
async def get_trainee_by_email(email: str, current_user: dict = Depends(require_personnel)):
    trainee = await personnel_service.get_trainee_by_email(email)
    if not trainee:
        raise HTTPException(status_code=404, detail="Trainee not found")
    return {"success": True, "trainee": trainee}


@router.get("/by-tag/{tag_number}")
async def get_trainee_by_tag(tag_number: str, current_user: dict = Depends(require_personnel)):
    trainee = await personnel_service.get_trainee_by_tag(tag_number)
    if not trainee:
        raise HTTPException(status_code=404, detail="Trainee not found")
    return {"success": True, "trainee": trainee}


@router.get("/{trainee_id}")
async def get_trainee(trainee_id: str, current_user: dict = Depends(require_self_or_admin)):
    """Trainees may read their own record; personnel may read any."""
    success, trainee, error = await personnel_service.get_trainee(trainee_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "trainee": trainee}


@router.patch("/{trainee_id}")
async def update_trainee(trainee_id: str, request: TraineeUpdate, current_user: dict = Depends(require_admin)):
    try:
        success, error = await personnel_service.update_trainee(trainee_id, request.model_dump(exclude_unset=True))
        if not success:
            status_code = 404 if error == "Trainee not found" else 400
            raise HTTPException(status_code=status_code, detail=error)
        return {"success": True, "message": "Trainee updated successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating trainee {trainee_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{trainee_id}/deactivate")
async def deactivate_trainee(trainee_id: str, current_user: dict = Depends(require_admin)):
    success, error = await personnel_service.deactivate_trainee(trainee_id)
    if not success:
        status_code = 404 if error == "Trainee not found" else 400
        raise HTTPException(status_code=status_code, detail=error)
    return {"success": True, "message": "Trainee deactivated"}
