"""Folder API: subfolders, recursive listing and delete, breadcrumbs, sharing, upload.

Every route resolves the caller's root first so that a brand-new user gets
a working tree on the first request. Ownership is checked here; the
services assume an already-authorized caller.
"""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Query, UploadFile

from ..core.auth import AuthContext, require_auth, verify_owner
from ..schemas.file import FileResponse
from ..schemas.folder import (
    Breadcrumb,
    DeleteReport,
    FolderCreate,
    FolderDetail,
    FolderResponse,
    FolderTree,
)
from ..schemas.share import ShareRequest, ShareResponse
from ..services.hierarchy_service import HierarchyService
from ..services.sharing_service import SharingService
from ..services.transfer_service import TransferService
from .deps import get_hierarchy_service, get_sharing_service, get_transfer_service, origin_base_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["folders"])

RECURSIVE_ALL = "all"


def _read_folder(
    service: HierarchyService, folder_id: str, recursive: Optional[str]
) -> Union[FolderTree, FolderDetail]:
    if recursive == RECURSIVE_ALL:
        return service.get_folder_recursively(folder_id)
    return service.get_folder_detail(folder_id)


# -- Caller's root --------------------------------------------------------

@router.get("", response_model=Union[FolderTree, FolderDetail])
def get_root_contents(
    recursive: Optional[str] = Query(None, description="'all' returns the full tree"),
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    """The caller's root folder with its children (or whole tree)."""
    root = service.create_root_folder(auth.user_id)
    return _read_folder(service, root.id, recursive)


@router.post("", response_model=FolderResponse, status_code=201)
def create_folder_in_root(
    data: FolderCreate,
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    root = service.create_root_folder(auth.user_id)
    return service.create_subfolder(root, data.folder_name, root, auth.user_id)


# -- Any folder -----------------------------------------------------------

@router.get("/{folder_id}", response_model=Union[FolderTree, FolderDetail])
def get_folder(
    folder_id: str,
    recursive: Optional[str] = Query(None, description="'all' returns the full tree"),
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    verify_owner(service.get_folder(folder_id), auth)
    return _read_folder(service, folder_id, recursive)


@router.post("/{folder_id}", response_model=FolderResponse, status_code=201)
def create_subfolder(
    folder_id: str,
    data: FolderCreate,
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    """Create a subfolder under *folder_id*."""
    parent = service.get_folder(folder_id)
    verify_owner(parent, auth)
    root = service.create_root_folder(auth.user_id)
    return service.create_subfolder(parent, data.folder_name, root, auth.user_id)


@router.delete("/{folder_id}", response_model=DeleteReport)
def delete_folder(
    folder_id: str,
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    """Delete a folder and everything beneath it. Irreversible."""
    verify_owner(service.get_folder(folder_id), auth)
    report = service.delete_folder_recursively(folder_id)
    if report.failed_keys:
        logger.warning(
            "Recursive delete left storage garbage",
            extra={"folder_id": folder_id, "failed_keys": report.failed_keys},
        )
    return report


@router.get("/{folder_id}/ancestors", response_model=List[Breadcrumb])
def get_ancestors(
    folder_id: str,
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    """Breadcrumbs from the caller's root down to *folder_id*."""
    return service.get_ancestors(folder_id, auth.user_id)


@router.post("/{folder_id}/share", response_model=ShareResponse)
def share_folder(
    folder_id: str,
    data: ShareRequest,
    origin: str = Depends(origin_base_url),
    hierarchy: HierarchyService = Depends(get_hierarchy_service),
    sharing: SharingService = Depends(get_sharing_service),
    auth: AuthContext = Depends(require_auth),
):
    """Share the folder subtree for ``hours``. Re-sharing issues a new link."""
    verify_owner(hierarchy.get_folder(folder_id), auth)
    return sharing.share_folder(folder_id, data.hours, origin)


@router.post("/{folder_id}/files", response_model=FileResponse, status_code=201)
def upload_file(
    folder_id: str,
    file: UploadFile = File(...),
    hierarchy: HierarchyService = Depends(get_hierarchy_service),
    transfer: TransferService = Depends(get_transfer_service),
    auth: AuthContext = Depends(require_auth),
):
    """Upload one file into *folder_id*."""
    current = hierarchy.get_folder(folder_id)
    verify_owner(current, auth)
    root = hierarchy.create_root_folder(auth.user_id)
    data = file.file.read()
    return transfer.upload_file_to_folder(
        root, current, file.filename, file.content_type, data, auth.user_id
    )
