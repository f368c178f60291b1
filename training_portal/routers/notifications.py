from fastapi import APIRouter, HTTPException, Depends, Query
import logging

from ..auth.dependencies import get_current_user
from ..services.notification_service import notification_service

logger = logging.getLogger("training_portal.routers.notifications")

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/")
async def get_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user)
):
    """The caller's notifications, newest first."""
    notifications = await notification_service.get_user_notifications(
        current_user["uid"], unread_only=unread_only, limit=limit
    )
    return {"success": True, "notifications": notifications, "count": len(notifications)}


@router.get("/unread-count")
async def get_unread_count(current_user: dict = Depends(get_current_user)):
    return {"unread_count": await notification_service.get_unread_count(current_user["uid"])}


@router.patch("/read-all")
async def mark_all_as_read(current_user: dict = Depends(get_current_user)):
    updated = await notification_service.mark_all_as_read(current_user["uid"])
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
async def mark_as_read(notification_id: str, current_user: dict = Depends(get_current_user)):
    success, error = await notification_service.mark_as_read(notification_id, current_user["uid"])
    if not success:
        status_code = 404 if error == "Notification not found" else 403
        raise HTTPException(status_code=status_code, detail=error)
    return {"success": True}
