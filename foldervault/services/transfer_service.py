"""File transfer operations: upload, retrieval URL and direct delete."""

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import DatabaseError, DuplicateNameError, ForbiddenError, UploadError
from ..models.folder import Folder
from ..models.file import StoredFile
from ..repositories.file_repository import FileRepository
from ..schemas.file import FileUrlResponse
from ..storage.object_store import ObjectStore
from .hierarchy_service import validate_item_name, validate_object_key

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class TransferService:
    """Moves file bytes in and out of the object store.

    Public methods:
        upload_file_to_folder -- object then row; UploadError if the row fails
        get_file_url          -- presigned URL with the default TTL
        delete_file           -- object then row; a missing object is fine
    """

    def __init__(self, db: Session, store: ObjectStore):
        self.db = db
        self.store = store
        self.file_repo = FileRepository(db)

    def upload_file_to_folder(
        self,
        root_folder: Folder,
        current_folder: Folder,
        file_name: str,
        content_type: str,
        data: bytes,
        owner_id: str,
    ) -> StoredFile:
        """Store *data* under *current_folder* and index it.

        The object is written first, so a failure there leaves nothing
        behind. If the row insert fails afterwards the object is orphaned
        and UploadError names its key.
        """
        file_name = validate_item_name(file_name, field="file_name")
        if root_folder.owner_id != owner_id or current_folder.owner_id != owner_id:
            raise ForbiddenError("Folder belongs to another user")
        if self.file_repo.get_by_name(current_folder.id, file_name) is not None:
            raise DuplicateNameError(file_name, current_folder.id)

        s3_key = validate_object_key(f"{current_folder.s3_key}{file_name}", field="file_name")
        content_type = content_type or DEFAULT_CONTENT_TYPE
        self.store.put(s3_key, data, content_type)

        stored = StoredFile(
            id=f"fil-{uuid.uuid4().hex}",
            file_name=file_name,
            size=len(data),
            type=content_type,
            parent_folder_id=current_folder.id,
            owner_id=owner_id,
            s3_key=s3_key,
            shared=False,
        )
        try:
            self.file_repo.add(stored)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            # A concurrent upload of the same name won the unique constraint
            # and now owns the key.
            if self.file_repo.get_by_name(current_folder.id, file_name) is not None:
                raise DuplicateNameError(file_name, current_folder.id) from e
            logger.error(
                "File row insert failed, object orphaned",
                extra={"s3_key": s3_key, "folder_id": current_folder.id},
            )
            raise UploadError(s3_key, e) from e

        logger.info(
            "File uploaded",
            extra={"file_id": stored.id, "folder_id": current_folder.id, "size": stored.size},
        )
        return stored

    def get_file(self, file_id: str) -> StoredFile:
        return self.file_repo.get_by_id(file_id)

    def get_file_url(self, file_id: str) -> FileUrlResponse:
        stored = self.file_repo.get_by_id(file_id)
        presigned = self.store.presign(stored.s3_key, settings.presign_default_ttl_seconds)
        return FileUrlResponse(
            id=stored.id,
            file_name=stored.file_name,
            url=presigned.url,
            expires_at=presigned.expires_at,
        )

    def delete_file(self, file_id: str) -> None:
        """Delete the object, then the row.

        StorageUnavailableError propagates before the row is touched, so a
        retry finds the file still indexed.
        """
        stored = self.file_repo.get_by_id(file_id)
        self.store.delete(stored.s3_key)
        try:
            self.file_repo.delete(stored)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DatabaseError("Failed to delete file", e) from e
        logger.info("File deleted", extra={"file_id": file_id})
