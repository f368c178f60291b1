from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin, require_role
from ..services.message_service import message_service

logger = logging.getLogger("training_portal.routers.messages")

router = APIRouter(prefix="/api/messages", tags=["messages"])


class SendMessageRequest(BaseModel):
    to_id: str = Field(..., description="Recipient uid")
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    priority: str = Field("normal", description="low, normal, high or urgent")


class BroadcastRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    sponsor_id: Optional[str] = Field(None, description="Only this sponsor's trainees")
    priority: str = Field("normal", description="low, normal, high or urgent")


def _sender(current_user: dict) -> dict:
    return {
        "uid": current_user.get("uid"),
        "name": current_user.get("name") or current_user.get("email"),
        "email": current_user.get("email"),
        "role": current_user.get("role"),
        "tag_number": current_user.get("tag_number"),
    }


@router.post("/")
async def send_message(
    request: SendMessageRequest,
    current_user: dict = Depends(require_role(["trainee", "resource_person"]))
):
    """Trainees write to resource persons and resource persons to trainees."""
    message_type = "trainee_to_rp" if current_user.get("role") == "trainee" else "rp_to_trainee"
    try:
        success, message, error = await message_service.send_message(
            _sender(current_user),
            to_id=request.to_id,
            subject=request.subject,
            message=request.message,
            message_type=message_type,
            priority=request.priority,
        )
        if not success:
            status_code = 404 if error == "Recipient not found" else 400
            raise HTTPException(status_code=status_code, detail=error)
        return {"success": True, "message_id": message["id"], "message": "Message sent"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending message from {current_user.get('uid')}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/broadcast")
async def broadcast_message(request: BroadcastRequest, current_user: dict = Depends(require_admin)):
    try:
        success, sent, error = await message_service.broadcast_message(
            _sender(current_user),
            subject=request.subject,
            message=request.message,
            sponsor_id=request.sponsor_id,
            priority=request.priority,
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "sent_count": sent}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/inbox")
async def get_inbox(current_user: dict = Depends(get_current_user)):
    messages = await message_service.get_inbox(current_user["uid"])
    return {"success": True, "messages": messages, "count": len(messages)}


@router.get("/sent")
async def get_sent(current_user: dict = Depends(get_current_user)):
    messages = await message_service.get_sent(current_user["uid"])
    return {"success": True, "messages": messages, "count": len(messages)}


@router.get("/unread-count")
async def get_unread_count(current_user: dict = Depends(get_current_user)):
    return {"unread_count": await message_service.get_unread_count(current_user["uid"])}


@router.patch("/{message_id}/read")
async def mark_as_read(message_id: str, current_user: dict = Depends(get_current_user)):
    success, error = await message_service.mark_as_read(message_id, current_user["uid"])
    if not success:
        status_code = 404 if error == "Message not found" else 403
        raise HTTPException(status_code=status_code, detail=error)
    return {"success": True}
