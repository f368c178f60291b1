from fastapi import APIRouter, HTTPException, Depends
import logging

from ..auth.dependencies import require_admin
from ..services.dashboard_service import dashboard_service

logger = logging.getLogger("training_portal.routers.admin_dashboard")

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/statistics")
async def get_statistics(current_user: dict = Depends(require_admin)):
    """Headline counts for the admin dashboard."""
    try:
        return {"success": True, "statistics": await dashboard_service.get_statistics()}
    except Exception as e:
        logger.error(f"Error building dashboard statistics: {e}")
        raise HTTPException(status_code=500, detail=str(e))
