"""Service factories shared by the routers."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import get_db
from ..services.hierarchy_service import HierarchyService
from ..services.identity_service import ProfileIdentityAdapter
from ..services.sharing_service import SharingService
from ..services.transfer_service import TransferService
from ..storage import ObjectStore, get_object_store


def get_hierarchy_service(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> HierarchyService:
    return HierarchyService(db, store, ProfileIdentityAdapter(db))


def get_sharing_service(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    hierarchy: HierarchyService = Depends(get_hierarchy_service),
) -> SharingService:
    return SharingService(db, store, hierarchy)


def get_transfer_service(
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> TransferService:
    return TransferService(db, store)


def origin_base_url(request: Request) -> str:
    """Base URL for share links: the caller's Origin, else the configured public URL."""
    return request.headers.get("origin") or settings.public_base_url
