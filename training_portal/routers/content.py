from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin, require_self_or_admin, require_trainee
from ..services.content_service import content_service

logger = logging.getLogger("training_portal.routers.content")

router = APIRouter(prefix="/api/content", tags=["content"])


class ContentRequest(BaseModel):
    title: str = Field(..., min_length=1, description="Content title")
    description: Optional[str] = None
    type: str = Field("video", description="video, quiz or assignment")
    video_id: Optional[str] = Field(None, description="Uploaded video backing this item")
    file_id: Optional[str] = Field(None, description="Uploaded file backing this item")
    sponsor_id: Optional[str] = Field(None, description="Limit to one sponsor; empty means everyone")
    order_index: int = Field(0, description="Position in the course")
    is_active: bool = True


class ContentUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    video_id: Optional[str] = None
    file_id: Optional[str] = None
    sponsor_id: Optional[str] = None
    order_index: Optional[int] = None
    is_active: Optional[bool] = None


class ProgressRequest(BaseModel):
    status: str = Field(..., description="not_started, in_progress or completed")
    progress: Optional[int] = Field(None, ge=0, le=100, description="Percent watched / done")


@router.post("/")
async def create_content(request: ContentRequest, current_user: dict = Depends(require_admin)):
    try:
        success, content_id, error = await content_service.create_content(
            request.model_dump(), created_by=current_user.get("uid")
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "content_id": content_id, "message": "Content created successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/")
async def list_content(
    sponsor_id: Optional[str] = Query(None),
    include_inactive: bool = Query(False, description="Admins only"),
    current_user: dict = Depends(get_current_user)
):
    """Trainees only see active content for their own sponsor."""
    if current_user.get("role") == "trainee":
        sponsor_id = current_user.get("sponsor_id")
        include_inactive = False
    items = await content_service.list_content(sponsor_id=sponsor_id, active_only=not include_inactive)
    return {"success": True, "content": items, "count": len(items)}


# ===== Progress =====

@router.get("/progress/me")
async def get_my_progress(current_user: dict = Depends(require_trainee)):
    records = await content_service.get_trainee_progress(current_user["uid"])
    return {"success": True, "progress": records, "count": len(records)}


@router.get("/progress/{trainee_id}")
async def get_trainee_progress(trainee_id: str, current_user: dict = Depends(require_self_or_admin)):
    records = await content_service.get_trainee_progress(trainee_id)
    completed = sum(1 for r in records if r.get("status") == "completed")
    return {"success": True, "progress": records, "completed": completed, "count": len(records)}


@router.put("/{content_id}/progress")
async def update_progress(content_id: str, request: ProgressRequest, current_user: dict = Depends(require_trainee)):
    try:
        success, record, error = await content_service.update_progress(
            current_user["uid"], content_id, request.status, request.progress
        )
        if not success:
            status_code = 404 if error == "Content not found" else 400
            raise HTTPException(status_code=status_code, detail=error)
        return {"success": True, "progress": record}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ===== Items =====

@router.get("/{content_id}")
async def get_content(content_id: str, current_user: dict = Depends(get_current_user)):
    success, content, error = await content_service.get_content(content_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "content": content}


@router.put("/{content_id}")
async def update_content(content_id: str, request: ContentUpdateRequest, current_user: dict = Depends(require_admin)):
    success, error = await content_service.update_content(content_id, request.model_dump(exclude_unset=True))
    if not success:
        status_code = 404 if error == "Content not found" else 400
        raise HTTPException(status_code=status_code, detail=error)
    return {"success": True, "message": "Content updated successfully"}


@router.delete("/{content_id}")
async def delete_content(content_id: str, current_user: dict = Depends(require_admin)):
    success, error = await content_service.delete_content(content_id)
    if not success:
        status_code = 404 if error == "Content not found" else 400
        raise HTTPException(status_code=status_code, detail=error)
    return {"success": True, "message": "Content removed"}
