"""Hierarchy engine: the folder tree across the tree index and the object store.

Structure lives in folder rows linked by ``parent_folder_id``; each folder
also owns a zero-byte placeholder object at its ``s3_key`` so that empty
folders are visible in the bucket. Every mutation here touches both
backends in a fixed order:

* create: placeholder object first, then the row (a failed insert leaves
  harmless placeholder garbage, never a row without storage).
* delete: objects first, then rows, deepest level first (a failed object
  delete is recorded and skipped, the index is always cleaned).

Traversals use explicit worklists, never recursion, so tree depth does not
grow the call stack.
"""

import logging
import re
import uuid
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import (
    BrokenHierarchyError,
    DatabaseError,
    DuplicateNameError,
    ForbiddenError,
    StorageUnavailableError,
    ValidationError,
)
from ..models.folder import Folder
from ..models.file import StoredFile
from ..repositories.folder_repository import FolderRepository
from ..repositories.file_repository import FileRepository
from ..schemas.file import FileResponse
from ..schemas.folder import Breadcrumb, DeleteReport, FolderDetail, FolderResponse, FolderTree
from ..storage.object_store import ObjectStore, PLACEHOLDER_CONTENT_TYPE
from .identity_service import IdentityAdapter, ROOT_FOLDER_ATTRIBUTE

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255
# S3 key limit, also the width of the s3_key columns.
MAX_KEY_BYTES = 1024
_UNSAFE_ROOT_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def validate_item_name(name: Optional[str], field: str = "folder_name") -> str:
    """Validate a folder or file name. Names become object-key segments."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be empty", field=field)
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name cannot exceed {MAX_NAME_LENGTH} characters", field=field)
    if "/" in name or "\\" in name:
        raise ValidationError("Name cannot contain path separators", field=field)
    if name in (".", ".."):
        raise ValidationError("Name cannot be '.' or '..'", field=field)
    return name


def validate_object_key(s3_key: str, field: str = "folder_name") -> str:
    """Reject keys longer than S3 accepts, before anything is written."""
    if len(s3_key.encode("utf-8")) > MAX_KEY_BYTES:
        raise ValidationError(
            f"Path too long: object keys are limited to {MAX_KEY_BYTES} bytes", field=field
        )
    return s3_key


def sanitize_root_name(text: str) -> str:
    """Reduce a display name to a safe object-key segment."""
    cleaned = _UNSAFE_ROOT_CHARS.sub("_", text.strip())
    return cleaned.strip("._")[:100]


class HierarchyService:
    """Folder tree operations behind a narrow interface.

    Public methods:
        create_root_folder        -- idempotent per owner
        create_subfolder          -- unique sibling names, placeholder then row
        get_folder                -- point lookup
        get_folder_detail         -- folder plus direct children
        get_folder_recursively    -- folder plus complete descendant tree
        delete_folder_recursively -- subtree removal, returns a DeleteReport
        get_ancestors             -- breadcrumb chain, root first
        is_within                 -- subtree membership by walking parents
    """

    def __init__(
        self,
        db: Session,
        store: ObjectStore,
        identity: IdentityAdapter,
        max_depth: Optional[int] = None,
    ):
        self.db = db
        self.store = store
        self.identity = identity
        self.folder_repo = FolderRepository(db)
        self.file_repo = FileRepository(db)
        self.max_depth = max_depth or settings.max_tree_depth

    # ------------------------------------------------------------------
    # Root provisioning
    # ------------------------------------------------------------------

    def create_root_folder(self, user_id: str) -> Folder:
        """Return the user's root folder, creating it on first call.

        The cached identity attribute is only a hint. It is re-resolved
        against the tree index, and the index's one-root-per-owner
        constraint settles concurrent provisioning.
        """
        cached_id = self.identity.get_attribute(user_id, ROOT_FOLDER_ATTRIBUTE)
        cached = self.folder_repo.get_by_id_optional(cached_id)
        if cached is not None and cached.is_root and cached.owner_id == user_id:
            return cached

        existing = self.folder_repo.get_root_for_owner(user_id)
        if existing is not None:
            if cached_id != existing.id:
                self.identity.set_attribute(user_id, ROOT_FOLDER_ATTRIBUTE, existing.id)
                self.db.commit()
            return existing

        profile = self.identity.get_profile(user_id)
        folder_name = self._unique_root_name(user_id, profile.full_name)
        s3_key = f"{folder_name}/"

        self.store.put(s3_key, b"", PLACEHOLDER_CONTENT_TYPE)

        folder = Folder(
            id=self._new_folder_id(),
            folder_name=folder_name,
            display_name=profile.full_name or None,
            parent_folder_id=None,
            owner_id=user_id,
            s3_key=s3_key,
            is_root=True,
            shared=False,
        )
        try:
            self.folder_repo.add(folder)
            self.identity.set_attribute(user_id, ROOT_FOLDER_ATTRIBUTE, folder.id)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            winner = self.folder_repo.get_root_for_owner(user_id)
            if winner is not None:
                logger.info(
                    "Concurrent root provisioning resolved",
                    extra={"user_id": user_id, "folder_id": winner.id},
                )
                return winner
            logger.error("Root folder insert failed", extra={"user_id": user_id, "s3_key": s3_key})
            raise DatabaseError("Failed to create root folder", e) from e

        logger.info(
            "Root folder created",
            extra={"user_id": user_id, "folder_id": folder.id, "s3_key": s3_key},
        )
        return folder

    # ------------------------------------------------------------------
    # Subfolders
    # ------------------------------------------------------------------

    def create_subfolder(
        self,
        parent_folder: Folder,
        name: str,
        root_folder: Folder,
        owner_id: str,
    ) -> Folder:
        """Create *name* under *parent_folder*.

        Raises ValidationError or DuplicateNameError before any side effect.
        A folder is never created deeper than ``max_depth`` below its root,
        so every folder that exists can be walked back to it.
        StorageUnavailableError from the placeholder write propagates.
        """
        name = validate_item_name(name)
        if root_folder.owner_id != owner_id or parent_folder.owner_id != owner_id:
            raise ForbiddenError("Folder belongs to another user")

        if self.folder_depth(parent_folder) + 1 > self.max_depth:
            raise ValidationError(
                f"Folders cannot be nested more than {self.max_depth} levels deep",
                field="parent_folder_id",
            )
        s3_key = validate_object_key(f"{parent_folder.s3_key}{name}/")

        if self.folder_repo.get_child_by_name(parent_folder.id, name) is not None:
            raise DuplicateNameError(name, parent_folder.id)

        self.store.put(s3_key, b"", PLACEHOLDER_CONTENT_TYPE)

        folder = Folder(
            id=self._new_folder_id(),
            folder_name=name,
            display_name=name,
            parent_folder_id=parent_folder.id,
            owner_id=owner_id,
            s3_key=s3_key,
            is_root=False,
            shared=False,
        )
        try:
            self.folder_repo.add(folder)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # The unique constraint decides concurrent creates. The winner
            # owns the placeholder we just rewrote, so it must stay.
            if self.folder_repo.get_child_by_name(parent_folder.id, name) is not None:
                raise DuplicateNameError(name, parent_folder.id) from e
            logger.warning(
                "Folder insert failed, placeholder left orphaned",
                extra={"s3_key": s3_key, "parent_folder_id": parent_folder.id},
            )
            raise DatabaseError("Failed to create folder", e) from e

        logger.info(
            "Folder created",
            extra={"folder_id": folder.id, "parent_folder_id": parent_folder.id, "owner_id": owner_id},
        )
        return folder

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_folder(self, folder_id: str) -> Folder:
        return self.folder_repo.get_by_id(folder_id)

    def get_folder_detail(self, folder_id: str) -> FolderDetail:
        folder = self.get_folder(folder_id)
        detail = FolderDetail.model_validate(folder)
        detail.subfolders = [
            FolderResponse.model_validate(child)
            for child in self.folder_repo.get_children(folder.id)
        ]
        detail.files = [FileResponse.model_validate(f) for f in self.file_repo.get_by_folder(folder.id)]
        return detail

    def get_folder_recursively(self, folder_id: str) -> FolderTree:
        """Folder with every nested subfolder and file, built without recursion."""
        folder = self.get_folder(folder_id)
        levels, files = self._collect_subtree(folder)

        nodes: Dict[str, FolderTree] = {}
        for level in levels:
            for item in level:
                nodes[item.id] = FolderTree.model_validate(item)
        for level in levels[1:]:
            for item in level:
                nodes[item.parent_folder_id].subfolders.append(nodes[item.id])
        for f in files:
            nodes[f.parent_folder_id].files.append(FileResponse.model_validate(f))
        return nodes[folder.id]

    # ------------------------------------------------------------------
    # Recursive delete
    # ------------------------------------------------------------------

    def delete_folder_recursively(self, folder_id: str) -> DeleteReport:
        """Remove *folder_id* and its whole subtree.

        Storage cleanup is best effort: failed object deletes are logged and
        listed in the report. Index cleanup is all-or-nothing in one
        transaction.
        """
        folder = self.get_folder(folder_id)
        levels, files = self._collect_subtree(folder)
        failed_keys: List[str] = []
        folder_count = 0

        try:
            for f in files:
                self._delete_object_best_effort(f.s3_key, failed_keys)
                self.file_repo.delete(f)

            for level in reversed(levels):
                for item in level:
                    self._delete_object_best_effort(item.s3_key, failed_keys)
                    self.folder_repo.delete(item)
                    folder_count += 1

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Recursive delete failed in the index", extra={"folder_id": folder_id})
            raise DatabaseError("Failed to delete folder", e) from e

        logger.info(
            "Folder deleted recursively",
            extra={
                "folder_id": folder_id,
                "deleted_folders": folder_count,
                "deleted_files": len(files),
                "failed_keys": len(failed_keys),
            },
        )
        return DeleteReport(
            folder_id=folder_id,
            deleted_folders=folder_count,
            deleted_files=len(files),
            failed_keys=failed_keys,
        )

    # ------------------------------------------------------------------
    # Ancestor chains
    # ------------------------------------------------------------------

    def get_ancestors(self, folder_id: Optional[str], user_id: str) -> List[Breadcrumb]:
        """Breadcrumbs from the user's root down to *folder_id*, inclusive.

        A broken chain raises BrokenHierarchyError. Partial chains are never
        returned.
        """
        if not folder_id:
            root = self.create_root_folder(user_id)
            return [Breadcrumb(id=root.id, name=self.root_label(root), is_root=True)]

        folder = self.get_folder(folder_id)
        chain = list(self._iter_chain(folder))
        top = chain[-1]
        if not top.is_root:
            raise BrokenHierarchyError(folder.id, "chain does not reach a root folder")
        if top.owner_id != folder.owner_id:
            raise BrokenHierarchyError(folder.id, "chain ends at another owner's root")
        if top.owner_id != user_id:
            raise ForbiddenError("Folder belongs to another user")

        chain.reverse()
        return [
            Breadcrumb(
                id=item.id,
                name=self.root_label(item) if item.is_root else item.label,
                is_root=item.is_root,
            )
            for item in chain
        ]

    def is_within(self, folder_id: str, ancestor_id: str) -> bool:
        """True if *folder_id* is *ancestor_id* or lies beneath it.

        Costs one lookup per level of depth. Raises BrokenHierarchyError on a
        corrupt chain.
        """
        folder = self.folder_repo.get_by_id_optional(folder_id)
        if folder is None:
            raise BrokenHierarchyError(folder_id, "folder does not exist")
        for item in self._iter_chain(folder):
            if item.id == ancestor_id:
                return True
        return False

    def folder_depth(self, folder: Folder) -> int:
        """Levels below the root; a root is 0."""
        return sum(1 for _ in self._iter_chain(folder)) - 1

    def root_label(self, root: Folder) -> str:
        """Display label for a root: stored display name, then profile names."""
        if root.display_name:
            return root.display_name
        profile = self.identity.get_profile(root.owner_id)
        return profile.full_name or root.folder_name

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _iter_chain(self, folder: Folder) -> Iterator[Folder]:
        """Yield *folder* then each parent up to the root, with a hop bound."""
        seen = {folder.id}
        current = folder
        yield current
        hops = 0
        while not current.is_root:
            if current.parent_folder_id is None:
                raise BrokenHierarchyError(current.id, "non-root folder has no parent")
            hops += 1
            if hops > self.max_depth:
                raise BrokenHierarchyError(folder.id, f"chain exceeds {self.max_depth} levels")
            parent = self.folder_repo.get_by_id_optional(current.parent_folder_id)
            if parent is None:
                raise BrokenHierarchyError(
                    current.id, f"parent {current.parent_folder_id} does not exist"
                )
            if parent.id in seen:
                raise BrokenHierarchyError(current.id, "cycle in parent chain")
            seen.add(parent.id)
            current = parent
            yield current

    def _collect_subtree(self, folder: Folder) -> Tuple[List[List[Folder]], List[StoredFile]]:
        """Breadth-first snapshot: folders grouped by depth, plus all their files.

        One query per tree level for folders and one for files.
        """
        levels: List[List[Folder]] = [[folder]]
        seen = {folder.id}
        frontier = [folder]
        while frontier:
            children = [
                child
                for child in self.folder_repo.get_children_of_many([f.id for f in frontier])
                if child.id not in seen
            ]
            seen.update(child.id for child in children)
            if children:
                levels.append(children)
            frontier = children

        files = self.file_repo.get_by_folders(list(seen))
        return levels, files

    def _delete_object_best_effort(self, key: str, failed_keys: List[str]) -> None:
        try:
            self.store.delete(key)
        except StorageUnavailableError as e:
            logger.warning(
                "Object cleanup failed, continuing",
                extra={"key": key, "error": e.message},
            )
            failed_keys.append(key)

    def _unique_root_name(self, user_id: str, full_name: str) -> str:
        """Pick a root folder name whose key is free in the bucket namespace."""
        safe_user = sanitize_root_name(user_id) or uuid.uuid4().hex[:12]
        base = sanitize_root_name(full_name) or f"user_{safe_user}"
        candidates = [base, f"{base}_{safe_user}", f"{base}_{safe_user}_{uuid.uuid4().hex[:8]}"]
        for candidate in candidates:
            if self.folder_repo.get_by_s3_key(f"{candidate}/") is None:
                return candidate
        return candidates[-1]

    @staticmethod
    def _new_folder_id() -> str:
        return f"fld-{uuid.uuid4().hex}"
