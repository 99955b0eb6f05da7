"""Repository for stored file rows."""

from typing import List, Optional

from ..models.file import StoredFile
from ..exceptions import FileRecordNotFoundError
from .base import BaseRepository


class FileRepository(BaseRepository[StoredFile]):
    """Data access layer for files."""

    model_class = StoredFile
    not_found_error = FileRecordNotFoundError

    def get_by_folder(self, folder_id: str) -> List[StoredFile]:
        return (
            self.db.query(StoredFile)
            .filter(StoredFile.parent_folder_id == folder_id)
            .order_by(StoredFile.file_name)
            .all()
        )

    def get_by_folders(self, folder_ids: List[str]) -> List[StoredFile]:
        if not folder_ids:
            return []
        return (
            self.db.query(StoredFile)
            .filter(StoredFile.parent_folder_id.in_(folder_ids))
            .order_by(StoredFile.file_name)
            .all()
        )

    def get_by_name(self, folder_id: str, file_name: str) -> Optional[StoredFile]:
        return (
            self.db.query(StoredFile)
            .filter(
                StoredFile.parent_folder_id == folder_id,
                StoredFile.file_name == file_name,
            )
            .first()
        )

    def share_token_exists(self, share_token: str) -> bool:
        return (
            self.db.query(StoredFile.id)
            .filter(StoredFile.share_token == share_token)
            .first()
            is not None
        )
