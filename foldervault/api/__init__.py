"""API routes."""

from .folders import router as folders_router
from .files import router as files_router
from .shared import router as shared_router
from .user import router as user_router

__all__ = [
    "folders_router",
    "files_router",
    "shared_router",
    "user_router",
]
