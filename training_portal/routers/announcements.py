from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin, require_role
from ..services.announcement_service import announcement_service

logger = logging.getLogger("training_portal.routers.announcements")

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


# Request models
class AnnouncementCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, description="Announcement title")
    message: str = Field(..., min_length=1, description="Announcement content")
    author: str = Field("Admin", description="Name shown as the sender")
    sponsor_id: Optional[str] = Field(None, description="Limit to one sponsor; empty means everyone")
    notify_trainees: bool = Field(True, description="Send in-app notifications to trainees")


class AnnouncementUpdateRequest(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    author: Optional[str] = None
    sponsor_id: Optional[str] = None
    is_active: Optional[bool] = None


class ActiveToggleRequest(BaseModel):
    is_active: bool


class ReplyRequest(BaseModel):
    message: str = Field(..., min_length=1, description="Reply text")
    reply_to_id: Optional[str] = Field(None, description="Reply being answered")


def _status_for(error: Optional[str]) -> int:
    return 404 if error and "not found" in error.lower() else 400


@router.post("/")
async def create_announcement(request: AnnouncementCreateRequest, current_user: dict = Depends(require_admin)):
    """Create an announcement (admin only). Trainees in scope get notified."""
    try:
        success, announcement_id, error = await announcement_service.create_announcement(
            title=request.title,
            message=request.message,
            author=request.author,
            sponsor_id=request.sponsor_id,
            created_by=current_user.get("uid"),
            notify_trainees=request.notify_trainees,
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {
            "success": True,
            "announcement_id": announcement_id,
            "message": "Announcement created successfully",
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/")
async def get_announcements(
    sponsor_id: Optional[str] = Query(None, description="Sponsor filter"),
    active_only: bool = Query(True, description="Only return active announcements"),
    current_user: dict = Depends(get_current_user)
):
    """Trainees see active announcements for their sponsor plus the global ones."""
    try:
        if current_user.get("role") == "trainee":
            sponsor_id = current_user.get("sponsor_id")
            active_only = True
        announcements = await announcement_service.list_announcements(sponsor_id=sponsor_id, active_only=active_only)
        return {"success": True, "announcements": announcements, "count": len(announcements)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{announcement_id}")
async def get_announcement(announcement_id: str, current_user: dict = Depends(get_current_user)):
    success, announcement, error = await announcement_service.get_announcement(announcement_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "announcement": announcement}


@router.put("/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    request: AnnouncementUpdateRequest,
    current_user: dict = Depends(require_admin)
):
    success, error = await announcement_service.update_announcement(
        announcement_id, request.model_dump(exclude_unset=True)
    )
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Announcement updated successfully"}


@router.patch("/{announcement_id}/active")
async def toggle_announcement(
    announcement_id: str,
    request: ActiveToggleRequest,
    current_user: dict = Depends(require_admin)
):
    success, error = await announcement_service.set_active(announcement_id, request.is_active)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "is_active": request.is_active}


@router.delete("/{announcement_id}")
async def delete_announcement(announcement_id: str, current_user: dict = Depends(require_admin)):
    """Delete an announcement together with its replies."""
    success, error = await announcement_service.delete_announcement(announcement_id)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Announcement deleted successfully"}


# ===== Replies =====

@router.get("/{announcement_id}/replies")
async def get_replies(announcement_id: str, current_user: dict = Depends(get_current_user)):
    replies = await announcement_service.list_replies(announcement_id)
    return {"success": True, "replies": replies, "count": len(replies)}


@router.post("/{announcement_id}/replies")
async def create_reply(
    announcement_id: str,
    request: ReplyRequest,
    current_user: dict = Depends(require_role(["admin", "trainee"]))
):
    try:
        success, reply, error = await announcement_service.create_reply(
            announcement_id=announcement_id,
            message=request.message,
            from_id=current_user.get("uid"),
            from_name=current_user.get("name") or current_user.get("email") or "Unknown",
            from_role=current_user.get("role"),
            reply_to_id=request.reply_to_id,
        )
        if not success:
            raise HTTPException(status_code=_status_for(error), detail=error)
        return {"success": True, "reply": reply}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error replying to announcement {announcement_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
