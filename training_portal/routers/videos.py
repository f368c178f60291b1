from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Header
from fastapi.responses import StreamingResponse
from typing import Optional
import logging

from ..auth.dependencies import get_current_user, require_admin
from ..models.file_models import MediaListResponse, MediaUploadResponse
from ..services.media_service import RangeNotSatisfiable, content_disposition, media_service, parse_range_header

logger = logging.getLogger("training_portal.routers.videos")

router = APIRouter(prefix="/api/videos", tags=["videos"])


async def _get_video(video_id: str) -> dict:
    record = await media_service.get_media("video", video_id)
    if not record:
        raise HTTPException(status_code=404, detail="Video not found")
    return record


@router.post("/upload", response_model=MediaUploadResponse)
async def upload_video(
    file: UploadFile = File(..., description="Video file"),
    description: Optional[str] = Form(None, description="Optional video description"),
    duration: Optional[float] = Form(None, description="Length in seconds"),
    current_user: dict = Depends(require_admin)
):
    try:
        record = await media_service.upload(
            "video", file, uploaded_by=current_user.get("uid"), description=description, duration=duration
        )
        return MediaUploadResponse(
            success=True,
            message="Video uploaded successfully",
            id=record["id"],
            original_name=record["original_name"],
            size=record["size"],
            mime_type=record["mime_type"],
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Video upload error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/", response_model=MediaListResponse)
async def list_videos(current_user: dict = Depends(get_current_user)):
    items = await media_service.list_media("video")
    return MediaListResponse(success=True, items=items, total_count=len(items))


@router.get("/{video_id}")
async def get_video(video_id: str, current_user: dict = Depends(get_current_user)):
    return {"success": True, "video": await _get_video(video_id)}


@router.get("/{video_id}/stream")
async def stream_video(
    video_id: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    current_user: dict = Depends(get_current_user)
):
    """
    Stream a video. Honours a single ``Range: bytes=start-end`` header
    with a 206 partial response so players can seek.
    """
    record = await _get_video(video_id)
    size = int(record.get("size") or 0)

    try:
        byte_range = parse_range_header(range_header, size)
    except RangeNotSatisfiable:
        raise HTTPException(
            status_code=416,
            detail="Requested range not satisfiable",
            headers={"Content-Range": f"bytes */{size}"}
        )

    headers = {"Accept-Ranges": "bytes"}
    if byte_range is None:
        start, end, status_code = 0, size - 1, 200
    else:
        start, end = byte_range
        status_code = 206
        headers["Content-Range"] = f"bytes {start}-{end}/{size}"
    headers["Content-Length"] = str(end - start + 1 if size else 0)

    return StreamingResponse(
        media_service.iter_bytes(record, start, end),
        status_code=status_code,
        media_type=record.get("mime_type") or "video/mp4",
        headers=headers
    )


@router.get("/{video_id}/download")
async def download_video(video_id: str, current_user: dict = Depends(get_current_user)):
    record = await _get_video(video_id)
    size = int(record.get("size") or 0)
    return StreamingResponse(
        media_service.iter_bytes(record, 0, size - 1),
        media_type=record.get("mime_type") or "application/octet-stream",
        headers={
            "Content-Disposition": content_disposition("attachment", record.get("original_name") or record["file_name"]),
            "Content-Length": str(size),
        }
    )


@router.delete("/{video_id}")
async def delete_video(video_id: str, current_user: dict = Depends(require_admin)):
    await _get_video(video_id)
    if not await media_service.delete_media("video", video_id):
        raise HTTPException(status_code=500, detail="Failed to delete video")
    return {"success": True, "message": "Video deleted successfully"}
