"""File API: retrieval URL, direct delete and per-file sharing."""

from fastapi import APIRouter, Depends, Response

from ..core.auth import AuthContext, require_auth, verify_owner
from ..schemas.file import FileUrlResponse
from ..schemas.share import ShareRequest, ShareResponse
from ..services.sharing_service import SharingService
from ..services.transfer_service import TransferService
from .deps import get_sharing_service, get_transfer_service

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/{file_id}", response_model=FileUrlResponse)
def get_file_url(
    file_id: str,
    service: TransferService = Depends(get_transfer_service),
    auth: AuthContext = Depends(require_auth),
):
    """Short-lived presigned download URL."""
    verify_owner(service.get_file(file_id), auth)
    return service.get_file_url(file_id)


@router.delete("/{file_id}", status_code=204)
def delete_file(
    file_id: str,
    service: TransferService = Depends(get_transfer_service),
    auth: AuthContext = Depends(require_auth),
):
    verify_owner(service.get_file(file_id), auth)
    service.delete_file(file_id)
    return Response(status_code=204)


@router.post("/{file_id}/share", response_model=ShareResponse)
def share_file(
    file_id: str,
    data: ShareRequest,
    transfer: TransferService = Depends(get_transfer_service),
    sharing: SharingService = Depends(get_sharing_service),
    auth: AuthContext = Depends(require_auth),
):
    """Share one file for ``hours``; returns a presigned URL."""
    verify_owner(transfer.get_file(file_id), auth)
    return sharing.share_file(file_id, data.hours)
