"""Sharing engine: share tokens, expiry extension and subtree access checks.

A folder share grants access to its whole subtree through one token on one
row. Access to a descendant file is decided at request time by walking the
file's parent chain up to the shared folder, so expiring that one row
revokes the subtree at once and sharing costs nothing per descendant.
"""

import logging
import math
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import Clock, as_utc, utcnow
from ..core.config import settings
from ..exceptions import (
    BrokenHierarchyError,
    DatabaseError,
    InvalidExpirationError,
    NotAccessibleError,
    ShareExpiredError,
    ShareTokenNotFoundError,
)
from ..models.folder import Folder
from ..models.file import StoredFile
from ..repositories.folder_repository import FolderRepository
from ..repositories.file_repository import FileRepository
from ..schemas.share import ShareResponse, SharedFileResponse
from ..storage.object_store import ObjectStore
from .hierarchy_service import HierarchyService

logger = logging.getLogger(__name__)

SHARED_FOLDER_PATH = "/shared/folder/"
_TOKEN_ATTEMPTS = 5


def validate_hours(hours: Any) -> float:
    """Accept a finite positive number of hours, else InvalidExpirationError."""
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise InvalidExpirationError(hours)
    if math.isnan(hours) or math.isinf(hours) or hours <= 0:
        raise InvalidExpirationError(hours)
    return float(hours)


def extend_expiry(existing: Optional[datetime], now: datetime, hours: float) -> datetime:
    """Expiry after re-sharing: ``max(existing, now + hours)``.

    A shorter re-share never shortens a longer-lived link.
    """
    try:
        candidate = now + timedelta(hours=hours)
    except OverflowError:
        raise InvalidExpirationError(hours)
    existing = as_utc(existing)
    if existing is not None and existing > candidate:
        return existing
    return candidate


def clamp_ttl(seconds: float, maximum: int) -> int:
    """Presign TTL in whole seconds within ``[1, maximum]``."""
    return max(1, min(int(seconds), maximum))


class SharingService:
    """Share link issuance and validation.

    Public methods:
        share_folder               -- new token, extension-only expiry, share URL
        get_folder_by_share_token  -- lookup; expired tokens still resolve
        ensure_share_active        -- ShareExpiredError once expires_at has passed
        share_file                 -- per-file share, presigned URL
        get_file_from_share_token  -- URL iff file lies in the shared subtree
        get_shared_file            -- token + file id to URL, raising on failure
    """

    def __init__(
        self,
        db: Session,
        store: ObjectStore,
        hierarchy: HierarchyService,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.store = store
        self.hierarchy = hierarchy
        self.clock = clock
        self.folder_repo = FolderRepository(db)
        self.file_repo = FileRepository(db)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def share_folder(self, folder_id: str, hours: Any, origin_base_url: str) -> ShareResponse:
        """Issue a fresh token for *folder_id*; the previous link stops resolving."""
        hours = validate_hours(hours)
        folder = self.folder_repo.get_by_id(folder_id)
        expires_at = extend_expiry(folder.expires_at, self.clock(), hours)

        for _ in range(_TOKEN_ATTEMPTS):
            token = self._new_token()
            if self.folder_repo.share_token_exists(token):
                continue
            folder.share_token = token
            folder.expires_at = expires_at
            folder.shared = True
            try:
                self.db.commit()
            except IntegrityError:
                # Lost a race for the same token; the unique index decided.
                self.db.rollback()
                folder = self.folder_repo.get_by_id(folder_id)
                continue
            break
        else:
            raise DatabaseError("Could not allocate a unique share token")

        logger.info(
            "Folder shared",
            extra={"folder_id": folder_id, "hours": hours, "expires_at": expires_at.isoformat()},
        )
        return ShareResponse(
            url=f"{origin_base_url.rstrip('/')}{SHARED_FOLDER_PATH}{token}",
            expires_at=expires_at,
        )

    def get_folder_by_share_token(self, token: str) -> Folder:
        """Folder carrying *token*. Expiry is the caller's check."""
        folder = self.folder_repo.get_by_share_token(token) if token else None
        if folder is None:
            raise ShareTokenNotFoundError()
        return folder

    def is_expired(self, entity) -> bool:
        expires_at = as_utc(entity.expires_at)
        return expires_at is None or expires_at < self.clock()

    def ensure_share_active(self, folder: Folder) -> Folder:
        if not folder.shared or self.is_expired(folder):
            raise ShareExpiredError()
        return folder

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def share_file(self, file_id: str, hours: Any) -> ShareResponse:
        """Share one file.

        ``expires_at`` records the logical share lifetime. The returned URL's
        own lifetime is capped at the object store's maximum presign TTL.
        """
        hours = validate_hours(hours)
        stored = self.file_repo.get_by_id(file_id)
        expires_at = extend_expiry(stored.expires_at, self.clock(), hours)

        stored.expires_at = expires_at
        stored.shared = True
        if not stored.share_token:
            stored.share_token = self._new_file_token()
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DatabaseError("Failed to record file share", e) from e

        ttl = clamp_ttl(hours * 3600, settings.presign_max_ttl_seconds)
        presigned = self.store.presign(stored.s3_key, ttl)
        logger.info("File shared", extra={"file_id": file_id, "hours": hours, "presign_ttl": ttl})
        return ShareResponse(url=presigned.url, expires_at=expires_at)

    def get_file_from_share_token(
        self, shared_root: Folder, stored: StoredFile
    ) -> Optional[SharedFileResponse]:
        """Presigned URL for *stored* if it lies under *shared_root*, else None.

        The URL never outlives the folder share: its TTL is the share's
        remaining lifetime, capped at the presign maximum.
        """
        try:
            inside = self.hierarchy.is_within(stored.parent_folder_id, shared_root.id)
        except BrokenHierarchyError as e:
            logger.warning(
                "Broken chain during shared access check",
                extra={"file_id": stored.id, "reason": e.details.get("reason")},
            )
            return None
        if not inside:
            return None

        expires_at = as_utc(shared_root.expires_at)
        if expires_at is None:
            ttl = settings.presign_default_ttl_seconds
            expires_at = self.clock() + timedelta(seconds=ttl)
        else:
            ttl = clamp_ttl((expires_at - self.clock()).total_seconds(), settings.presign_max_ttl_seconds)

        presigned = self.store.presign(stored.s3_key, ttl)
        return SharedFileResponse(url=presigned.url, file_name=stored.file_name, expires_at=expires_at)

    def get_shared_file(self, token: str, file_id: str) -> SharedFileResponse:
        """Resolve a file through a folder share link.

        404 for an unknown token or file, 403 for an expired link or a file
        outside the shared subtree.
        """
        folder = self.ensure_share_active(self.get_folder_by_share_token(token))
        stored = self.file_repo.get_by_id(file_id)
        result = self.get_file_from_share_token(folder, stored)
        if result is None:
            raise NotAccessibleError(file_id)
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _new_token() -> str:
        return secrets.token_urlsafe(settings.share_token_bytes)

    def _new_file_token(self) -> str:
        for _ in range(_TOKEN_ATTEMPTS):
            token = self._new_token()
            if not self.file_repo.share_token_exists(token):
                return token
        raise DatabaseError("Could not allocate a unique share token")
