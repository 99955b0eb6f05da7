"""Share link schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Any


class ShareRequest(BaseModel):
    """Share duration in hours.

    Left untyped so the sharing service rejects every bad value the same
    way, as INVALID_EXPIRATION.
    """
    hours: Any = None


class ShareResponse(BaseModel):
    """A share link and the instant it stops working."""
    url: str
    expires_at: datetime


class SharedFileResponse(BaseModel):
    """File reached through a folder share token."""
    url: str
    file_name: str
    expires_at: datetime
