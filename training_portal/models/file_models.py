from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class MediaRecord(BaseModel):
    """Metadata for an uploaded video or file"""
    id: Optional[str] = None
    original_name: str
    file_name: str      # stored object name
    mime_type: str
    size: int
    path: str           # object path inside the bucket
    duration: Optional[float] = None  # seconds, videos only
    description: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None

class MediaUploadResponse(BaseModel):
    """Response model for video/file upload"""
    success: bool
    message: str
    id: str
    original_name: str
    size: int
    mime_type: str

class MediaListResponse(BaseModel):
    """Response model for video/file listing"""
    success: bool
    items: List[MediaRecord] = Field(default_factory=list)
    total_count: int
