"""Stored file model."""

from sqlalchemy import Column, Index, String, Boolean, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from ..database import Base


class StoredFile(Base):
    """Index row for an uploaded object.

    The object key is always the parent folder's s3_key followed by file_name,
    so two rows in one folder may never share a name.
    """

    __tablename__ = "files"
    __table_args__ = (
        UniqueConstraint("parent_folder_id", "file_name", name="uq_files_parent_name"),
        Index("ix_files_parent_folder_id", "parent_folder_id"),
        Index("ix_files_owner_id", "owner_id"),
    )

    id = Column(String(50), primary_key=True)  # fil-{uuid hex}
    file_name = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    type = Column(String(255), nullable=False, default="application/octet-stream")

    parent_folder_id = Column(String(50), ForeignKey("folders.id"), nullable=False)
    owner_id = Column(String(255), nullable=False)
    s3_key = Column(String(1024), nullable=False)

    # Per-file sharing, independent of any folder share.
    shared = Column(Boolean, nullable=False, default=False)
    share_token = Column(String(128), nullable=True, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
