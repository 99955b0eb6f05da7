"""Business logic services."""

from .identity_service import IdentityAdapter, Profile, ProfileIdentityAdapter, ROOT_FOLDER_ATTRIBUTE
from .hierarchy_service import HierarchyService
from .sharing_service import SharingService
from .transfer_service import TransferService

__all__ = [
    "IdentityAdapter",
    "Profile",
    "ProfileIdentityAdapter",
    "ROOT_FOLDER_ATTRIBUTE",
    "HierarchyService",
    "SharingService",
    "TransferService",
]
