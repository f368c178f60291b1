from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from fastapi.responses import Response, StreamingResponse
from typing import Optional
import logging

from ..auth.dependencies import get_current_user, require_admin
from ..models.file_models import MediaListResponse, MediaUploadResponse
from ..services.media_service import content_disposition, media_service

logger = logging.getLogger("training_portal.routers.files")

router = APIRouter(prefix="/api/files", tags=["files"])


async def _get_file(file_id: str) -> dict:
    record = await media_service.get_media("file", file_id)
    if not record:
        raise HTTPException(status_code=404, detail="File not found")
    return record


@router.post("/upload", response_model=MediaUploadResponse)
async def upload_file(
    file: UploadFile = File(..., description="File to upload"),
    description: Optional[str] = Form(None, description="Optional file description"),
    current_user: dict = Depends(require_admin)
):
    """
    Upload a course document.

    **Accepted types:** PDF, Word, Excel, PowerPoint, zip, images and plain text.
    """
    try:
        record = await media_service.upload("file", file, uploaded_by=current_user.get("uid"), description=description)
        return MediaUploadResponse(
            success=True,
            message="File uploaded successfully",
            id=record["id"],
            original_name=record["original_name"],
            size=record["size"],
            mime_type=record["mime_type"],
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ File upload error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/", response_model=MediaListResponse)
async def list_files(current_user: dict = Depends(get_current_user)):
    items = await media_service.list_media("file")
    return MediaListResponse(success=True, items=items, total_count=len(items))


@router.get("/{file_id}/download")
async def download_file(file_id: str, current_user: dict = Depends(get_current_user)):
    record = await _get_file(file_id)
    size = int(record.get("size") or 0)
    return StreamingResponse(
        media_service.iter_bytes(record, 0, size - 1),
        media_type=record.get("mime_type") or "application/octet-stream",
        headers={
            "Content-Disposition": content_disposition("attachment", record.get("original_name") or record["file_name"]),
            "Content-Length": str(size),
        }
    )


@router.get("/{file_id}/view")
async def view_file(file_id: str, current_user: dict = Depends(get_current_user)):
    """Inline view: text files come back as text, everything else with its own type."""
    record = await _get_file(file_id)
    mime_type = record.get("mime_type") or "application/octet-stream"
    try:
        content = media_service.read_all(record)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Could not read file {file_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if mime_type.startswith("text/"):
        return Response(content=content.decode("utf-8", errors="replace"), media_type=f"{mime_type}; charset=utf-8")
    return Response(
        content=content,
        media_type=mime_type,
        headers={"Content-Disposition": content_disposition("inline", record.get("original_name") or record["file_name"])}
    )


@router.delete("/{file_id}")
async def delete_file(file_id: str, current_user: dict = Depends(require_admin)):
    await _get_file(file_id)
    if not await media_service.delete_media("file", file_id):
        raise HTTPException(status_code=500, detail="Failed to delete file")
    return {"success": True, "message": "File deleted successfully"}
