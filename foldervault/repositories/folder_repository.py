"""Repository for folder rows: the structural half of the tree index."""

from typing import List, Optional

from ..models.folder import Folder
from ..exceptions import FolderNotFoundError
from .base import BaseRepository


class FolderRepository(BaseRepository[Folder]):
    """Data access layer for folders."""

    model_class = Folder
    not_found_error = FolderNotFoundError

    def get_children(self, parent_folder_id: str) -> List[Folder]:
        """Direct subfolders of *parent_folder_id*."""
        return (
            self.db.query(Folder)
            .filter(Folder.parent_folder_id == parent_folder_id)
            .order_by(Folder.folder_name)
            .all()
        )

    def get_children_of_many(self, parent_ids: List[str]) -> List[Folder]:
        """Subfolders of every folder in *parent_ids* (one query per tree level)."""
        if not parent_ids:
            return []
        return (
            self.db.query(Folder)
            .filter(Folder.parent_folder_id.in_(parent_ids))
            .order_by(Folder.folder_name)
            .all()
        )

    def get_child_by_name(self, parent_folder_id: str, folder_name: str) -> Optional[Folder]:
        return (
            self.db.query(Folder)
            .filter(
                Folder.parent_folder_id == parent_folder_id,
                Folder.folder_name == folder_name,
            )
            .first()
        )

    def get_root_for_owner(self, owner_id: str) -> Optional[Folder]:
        return (
            self.db.query(Folder)
            .filter(Folder.owner_id == owner_id, Folder.is_root.is_(True))
            .first()
        )

    def get_by_s3_key(self, s3_key: str) -> Optional[Folder]:
        return self.db.query(Folder).filter(Folder.s3_key == s3_key).first()

    def get_by_share_token(self, share_token: str) -> Optional[Folder]:
        return self.db.query(Folder).filter(Folder.share_token == share_token).first()

    def share_token_exists(self, share_token: str) -> bool:
        return self.get_by_share_token(share_token) is not None
