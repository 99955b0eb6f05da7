"""Database models."""

from .folder import Folder
from .file import StoredFile
from .user import UserProfile

__all__ = ["Folder", "StoredFile", "UserProfile"]
