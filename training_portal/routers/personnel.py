from fastapi import APIRouter, Depends, HTTPException
import logging

from ..auth.dependencies import require_admin, require_role
from ..models.user import PersonnelUpdate
from ..services.personnel_service import PERSONNEL_ROLES, personnel_service

logger = logging.getLogger("training_portal.routers.personnel")

router = APIRouter(prefix="/api/personnel", tags=["personnel"])


def _check_role(role: str) -> str:
    if role not in PERSONNEL_ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {', '.join(PERSONNEL_ROLES)}")
    return role


@router.get("/{role}")
async def list_personnel(role: str, current_user: dict = Depends(require_role(["admin", "staff"]))):
    """List staff or resource persons."""
    _check_role(role)
    records = await personnel_service.list_personnel(role)
    return {"success": True, "role": role, "personnel": records, "count": len(records)}


@router.get("/{role}/{uid}")
async def get_personnel(role: str, uid: str, current_user: dict = Depends(require_role(["admin", "staff", "resource_person", "trainee"]))):
    _check_role(role)
    success, record, error = await personnel_service.get_personnel(role, uid)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "personnel": record}


@router.patch("/{role}/{uid}")
async def update_personnel(role: str, uid: str, request: PersonnelUpdate, current_user: dict = Depends(require_admin)):
    _check_role(role)
    try:
        success, error = await personnel_service.update_personnel(role, uid, request.model_dump(exclude_unset=True))
        if not success:
            status_code = 404 if error and "not found" in error else 400
            raise HTTPException(status_code=status_code, detail=error)
        return {"success": True, "message": "Profile updated successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{role}/{uid}")
async def delete_personnel(role: str, uid: str, current_user: dict = Depends(require_admin)):
    """Delete the account and return its generated ID to the pool."""
    _check_role(role)
    try:
        success, error = await personnel_service.delete_personnel(role, uid)
        if not success:
            status_code = 404 if error and "not found" in error else 400
            raise HTTPException(status_code=status_code, detail=error)
        return {"success": True, "message": "User deleted and ID freed"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting {role} {uid}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
