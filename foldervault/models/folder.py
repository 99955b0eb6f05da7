"""Folder model: one node of the per-user folder tree."""

from sqlalchemy import Column, Index, String, Boolean, DateTime, ForeignKey, UniqueConstraint, text
from sqlalchemy.sql import func
from ..database import Base


class Folder(Base):
    """A folder row. Structure lives in parent_folder_id; bytes live in the object store."""

    __tablename__ = "folders"
    __table_args__ = (
        # Sibling names are unique; roots (NULL parent) are exempt because NULLs never collide.
        UniqueConstraint("parent_folder_id", "folder_name", name="uq_folders_parent_name"),
        # Exactly one root per owner, enforced by the database rather than a check-then-insert.
        Index(
            "uq_folders_root_owner",
            "owner_id",
            unique=True,
            sqlite_where=text("is_root = 1"),
            postgresql_where=text("is_root = true"),
        ),
        Index("ix_folders_parent_folder_id", "parent_folder_id"),
        Index("ix_folders_owner_id", "owner_id"),
    )

    id = Column(String(50), primary_key=True)  # fld-{uuid hex}
    folder_name = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)

    # NULL only for roots. Set once at creation; there is no move operation.
    parent_folder_id = Column(String(50), ForeignKey("folders.id"), nullable=True)
    owner_id = Column(String(255), nullable=False)

    # Object-store prefix: parent's s3_key + folder_name + "/". Immutable.
    s3_key = Column(String(1024), nullable=False, unique=True)
    is_root = Column(Boolean, nullable=False, default=False)

    # Sharing. expires_at stays set after expiry; NULL means never shared.
    shared = Column(Boolean, nullable=False, default=False)
    share_token = Column(String(128), nullable=True, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def label(self) -> str:
        """Name shown in breadcrumbs and listings."""
        return self.display_name or self.folder_name
