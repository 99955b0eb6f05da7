"""Pydantic schemas for API validation."""

from .file import (
    FileResponse,
    FileUrlResponse,
)
from .folder import (
    FolderCreate,
    FolderResponse,
    FolderDetail,
    FolderTree,
    Breadcrumb,
    RootFolderResponse,
    DeleteReport,
)
from .share import (
    ShareRequest,
    ShareResponse,
    SharedFileResponse,
)

__all__ = [
    "FileResponse",
    "FileUrlResponse",
    "FolderCreate",
    "FolderResponse",
    "FolderDetail",
    "FolderTree",
    "Breadcrumb",
    "RootFolderResponse",
    "DeleteReport",
    "ShareRequest",
    "ShareResponse",
    "SharedFileResponse",
]
