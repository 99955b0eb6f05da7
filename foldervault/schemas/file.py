"""File schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class FileResponse(BaseModel):
    """Schema for a file index row."""
    id: str
    file_name: str
    size: int
    type: str
    parent_folder_id: str
    owner_id: str
    shared: bool = False
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FileUrlResponse(BaseModel):
    """Presigned retrieval URL for a file the caller owns."""
    id: str
    file_name: str
    url: str
    expires_at: datetime
