"""Per-user endpoints: root folder provisioning and root breadcrumbs."""

from typing import List

from fastapi import APIRouter, Depends

from ..core.auth import AuthContext, require_auth
from ..schemas.folder import Breadcrumb, FolderResponse, RootFolderResponse
from ..services.hierarchy_service import HierarchyService
from .deps import get_hierarchy_service

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/root-folder", response_model=RootFolderResponse)
def get_root_folder(
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    """The caller's root folder, created on first call."""
    root = service.create_root_folder(auth.user_id)
    return RootFolderResponse(root_folder_id=root.id, folder=FolderResponse.model_validate(root))


@router.get("/root-folder/ancestors", response_model=List[Breadcrumb])
def get_root_breadcrumbs(
    service: HierarchyService = Depends(get_hierarchy_service),
    auth: AuthContext = Depends(require_auth),
):
    return service.get_ancestors(None, auth.user_id)
