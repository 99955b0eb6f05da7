"""Folder and tree schemas."""

from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Optional, List

from .file import FileResponse


class FolderCreate(BaseModel):
    """Schema for creating a subfolder."""
    folder_name: str

    @field_validator('folder_name')
    @classmethod
    def validate_folder_name(cls, v: str) -> str:
        """Trim surrounding whitespace; emptiness is rejected by the service."""
        return v.strip()


class FolderResponse(BaseModel):
    """Schema for a folder row. Share tokens are never serialized here."""
    id: str
    folder_name: str
    display_name: Optional[str] = None
    parent_folder_id: Optional[str] = None
    owner_id: str
    is_root: bool = False
    shared: bool = False
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderDetail(FolderResponse):
    """A folder with its direct subfolders and files."""
    subfolders: List[FolderResponse] = []
    files: List[FileResponse] = []


class FolderTree(FolderResponse):
    """A folder with its complete descendant tree."""
    subfolders: List['FolderTree'] = []
    files: List[FileResponse] = []


class Breadcrumb(BaseModel):
    """One step of an ancestor chain, root first."""
    id: str
    name: str
    is_root: bool = False


class RootFolderResponse(BaseModel):
    """The caller's root folder, provisioned on demand."""
    root_folder_id: str
    folder: FolderResponse


class DeleteReport(BaseModel):
    """Outcome of a recursive delete.

    Index rows for the whole subtree are always gone when this is returned.
    ``failed_keys`` lists object-store keys whose cleanup failed and may
    still hold data.
    """
    folder_id: str
    deleted_folders: int
    deleted_files: int
    failed_keys: List[str] = []


FolderTree.model_rebuild()
