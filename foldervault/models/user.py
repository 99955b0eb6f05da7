"""User profile model backing the identity adapter.

Holds what the identity provider knows about a user (names) and a small
public metadata map. The only key the engines rely on is ``root_folder_id``.
"""

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from ..database import Base


class UserProfile(Base):
    """Per-user profile and attribute store."""

    __tablename__ = "user_profiles"

    user_id = Column(String(255), primary_key=True)
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    public_metadata = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
