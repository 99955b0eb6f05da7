"""Public share-link API. No authentication: the token is the credential.

An unknown token is 404, a known but expired token is 403, so a visitor
can tell a mistyped link from a stale one.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query

from ..schemas.folder import FolderDetail, FolderTree
from ..schemas.share import SharedFileResponse
from ..services.hierarchy_service import HierarchyService
from ..services.sharing_service import SharingService
from .deps import get_hierarchy_service, get_sharing_service
from .folders import RECURSIVE_ALL

router = APIRouter(prefix="/api/shared", tags=["shared"])


@router.get("/folder/{token}", response_model=Union[FolderTree, FolderDetail])
def get_shared_folder(
    token: str,
    recursive: Optional[str] = Query(None, description="'all' returns the full tree"),
    hierarchy: HierarchyService = Depends(get_hierarchy_service),
    sharing: SharingService = Depends(get_sharing_service),
):
    folder = sharing.ensure_share_active(sharing.get_folder_by_share_token(token))
    if recursive == RECURSIVE_ALL:
        return hierarchy.get_folder_recursively(folder.id)
    return hierarchy.get_folder_detail(folder.id)


@router.get("/file/{file_id}/{token}", response_model=SharedFileResponse)
def get_shared_file(
    file_id: str,
    token: str,
    sharing: SharingService = Depends(get_sharing_service),
):
    """Presigned URL for a file inside a shared folder's subtree."""
    return sharing.get_shared_file(token, file_id)
