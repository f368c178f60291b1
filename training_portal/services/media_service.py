import uuid
from typing import Any, Dict, Iterator, List, Optional, Tuple
from datetime import datetime, timezone
import mimetypes
from pathlib import Path
import logging
import re
from urllib.parse import quote

from fastapi import HTTPException, UploadFile

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..core.config import settings
from .firebase_storage_init import get_storage_bucket

logger = logging.getLogger(__name__)

MEDIA_KINDS = {
    # kind -> (collection key, bucket folder)
    "video": ("videos", "videos"),
    "file": ("files", "files"),
}

STREAM_CHUNK_SIZE = 1024 * 1024  # 1MB

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


class RangeNotSatisfiable(Exception):
    pass


def parse_range_header(range_header: Optional[str], size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single HTTP byte range into inclusive (start, end).

    Returns None when there is no usable Range header (serve the whole object).
    Raises RangeNotSatisfiable when the range lies outside the object.
    """
    if not range_header:
        return None
    match = _RANGE_RE.match(range_header.strip())
    if not match:
        return None

    start_raw, end_raw = match.groups()
    if not start_raw and not end_raw:
        return None

    if not start_raw:
        # suffix range: last N bytes
        length = int(end_raw)
        if length == 0:
            raise RangeNotSatisfiable()
        return max(size - length, 0), size - 1

    start = int(start_raw)
    end = int(end_raw) if end_raw else size - 1
    if start >= size or end < start:
        raise RangeNotSatisfiable()
    return start, min(end, size - 1)


def content_disposition(disposition: str, filename: str) -> str:
    """Content-Disposition value with an ASCII fallback name and an RFC 5987 filename*."""
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", filename) or "download"
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class MediaService:
    """
    Videos and downloadable files kept in Firebase Storage,
    with their metadata in Firestore.
    """

    def __init__(self):
        self.db = database_service
        self._bucket = None

        self.allowed_file_types = {
            'application/pdf', 'application/msword',
            'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
            'application/vnd.ms-excel',
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            'application/vnd.ms-powerpoint',
            'application/vnd.openxmlformats-officedocument.presentationml.presentation',
            'application/zip',
            'image/jpeg', 'image/png', 'image/gif', 'image/webp',
        }
        self.max_video_size = settings.MAX_VIDEO_SIZE_MB * 1024 * 1024
        self.max_file_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = get_storage_bucket()
        return self._bucket

    def _require_bucket(self):
        if not self.bucket:
            raise HTTPException(status_code=503, detail="File storage not available")
        return self.bucket

    @staticmethod
    def _kind(kind: str) -> Tuple[str, str]:
        if kind not in MEDIA_KINDS:
            raise ValueError(f"Unknown media kind: {kind}")
        return MEDIA_KINDS[kind]

    def _validate_upload(self, kind: str, file: UploadFile) -> Tuple[str, int]:
        """Validate type and size; returns (content_type, size)."""
        content_type = file.content_type
        if not content_type or content_type in ("application/octet-stream", "binary/octet-stream"):
            content_type = mimetypes.guess_type(file.filename or "")[0]
            if not content_type:
                raise HTTPException(status_code=400, detail="Unable to determine file type")
        content_type = content_type.lower()

        file.file.seek(0, 2)
        size = file.file.tell()
        file.file.seek(0)

        if kind == "video":
            if not content_type.startswith("video/"):
                raise HTTPException(status_code=400, detail="Only video files are allowed")
            limit = self.max_video_size
        else:
            if not (content_type.startswith("text/") or content_type in self.allowed_file_types):
                raise HTTPException(status_code=400, detail="Invalid file type")
            limit = self.max_file_size

        if size == 0:
            raise HTTPException(status_code=400, detail="File is empty")
        if size > limit:
            raise HTTPException(
                status_code=400,
                detail=f"File too large. Maximum size: {limit / (1024 * 1024):.0f}MB"
            )
        return content_type, size

    async def upload(
        self,
        kind: str,
        file: UploadFile,
        uploaded_by: str,
        description: Optional[str] = None,
        duration: Optional[float] = None
    ) -> Dict[str, Any]:
        collection_key, folder = self._kind(kind)
        bucket = self._require_bucket()
        content_type, size = self._validate_upload(kind, file)

        media_id = str(uuid.uuid4())
        extension = Path(file.filename or "").suffix.lower()
        stored_name = f"{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{media_id}{extension}"
        path = f"{folder}/{stored_name}"

        try:
            blob = bucket.blob(path)
            blob.metadata = {
                'uploaded_by': uploaded_by,
                'original_name': file.filename,
            }
            content = await file.read()
            blob.upload_from_string(content, content_type=content_type)
        except Exception as e:
            logger.error(f"❌ Upload of {file.filename} failed: {e}")
            raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

        now = datetime.now(timezone.utc)
        record = {
            "id": media_id,
            "original_name": file.filename,
            "file_name": stored_name,
            "mime_type": content_type,
            "size": size,
            "path": path,
            "description": description,
            "uploaded_by": uploaded_by,
            "uploaded_at": now,
        }
        if kind == "video":
            record["duration"] = duration

        success, _, error = await self.db.create_document(COLLECTIONS[collection_key], record, document_id=media_id)
        if not success:
            # keep storage and metadata consistent
            try:
                blob.delete()
            except Exception:
                logger.warning(f"Could not remove orphaned blob {path}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to save metadata: {error}")

        logger.info(f"✅ {kind.title()} uploaded: {path} ({size} bytes)")
        return record

    async def list_media(self, kind: str) -> List[Dict[str, Any]]:
        collection_key, _ = self._kind(kind)
        success, items, error = await self.db.query_documents(
            COLLECTIONS[collection_key], order_by="uploaded_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list {collection_key}: {error}")
            return []
        return items

    async def get_media(self, kind: str, media_id: str) -> Optional[Dict[str, Any]]:
        collection_key, _ = self._kind(kind)
        success, record, _ = await self.db.get_document(COLLECTIONS[collection_key], media_id)
        return record if success else None

    def iter_bytes(self, record: Dict[str, Any], start: int, end: int, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the inclusive byte range [start, end] of a stored object in chunks."""
        blob = self._require_bucket().blob(record["path"])
        position = start
        while position <= end:
            chunk_end = min(position + chunk_size - 1, end)
            yield blob.download_as_bytes(start=position, end=chunk_end)
            position = chunk_end + 1

    def read_all(self, record: Dict[str, Any]) -> bytes:
        return self._require_bucket().blob(record["path"]).download_as_bytes()

    async def delete_media(self, kind: str, media_id: str) -> bool:
        collection_key, _ = self._kind(kind)
        record = await self.get_media(kind, media_id)
        if not record:
            return False

        try:
            self._require_bucket().blob(record["path"]).delete()
        except HTTPException:
            raise
        except Exception as e:
            # Object already gone; still drop the metadata
            logger.warning(f"Could not delete blob {record['path']}: {e}")

        success, error = await self.db.delete_document(COLLECTIONS[collection_key], media_id)
        if not success:
            logger.error(f"Failed to delete {kind} metadata {media_id}: {error}")
        return success


media_service = MediaService()
