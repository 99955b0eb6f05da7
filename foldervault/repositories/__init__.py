"""Data access repositories."""

from .base import BaseRepository
from .folder_repository import FolderRepository
from .file_repository import FileRepository
from .user_repository import UserProfileRepository

__all__ = [
    "BaseRepository",
    "FolderRepository",
    "FileRepository",
    "UserProfileRepository",
]
