"""Identity adapter: user profile names and the per-user attribute map.

The hierarchy engine talks to identity only through ``IdentityAdapter``.
Cached attributes are hints; callers re-resolve ids against the tree index
instead of trusting a stored value.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..repositories.user_repository import UserProfileRepository

logger = logging.getLogger(__name__)

ROOT_FOLDER_ATTRIBUTE = "root_folder_id"


@dataclass(frozen=True)
class Profile:
    """Names the identity provider knows for a user."""
    user_id: str
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class IdentityAdapter(Protocol):
    def get_attribute(self, user_id: str, key: str) -> Optional[str]:
        ...

    def set_attribute(self, user_id: str, key: str, value: str) -> None:
        ...

    def get_profile(self, user_id: str) -> Profile:
        ...


class ProfileIdentityAdapter:
    """IdentityAdapter backed by the user_profiles table.

    Writes are flushed, not committed: they join the caller's transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserProfileRepository(db)

    def ensure_profile(self, user_id: str, first_name: str = "", last_name: str = "") -> Profile:
        """Create the profile on first sight; refresh names when the token carries new ones."""
        profile = self.repo.get_or_create(user_id, first_name, last_name)
        changed = False
        if first_name and profile.first_name != first_name:
            profile.first_name = first_name
            changed = True
        if last_name and profile.last_name != last_name:
            profile.last_name = last_name
            changed = True
        if changed:
            self.db.flush()
        return Profile(user_id=user_id, first_name=profile.first_name, last_name=profile.last_name)

    def get_attribute(self, user_id: str, key: str) -> Optional[str]:
        profile = self.repo.get(user_id)
        if profile is None:
            return None
        return (profile.public_metadata or {}).get(key)

    def set_attribute(self, user_id: str, key: str, value: str) -> None:
        profile = self.repo.get_or_create(user_id)
        # JSON columns only detect reassignment, not in-place mutation.
        metadata = dict(profile.public_metadata or {})
        metadata[key] = value
        profile.public_metadata = metadata
        self.db.flush()
        logger.debug("Identity attribute set", extra={"user_id": user_id, "key": key})

    def get_profile(self, user_id: str) -> Profile:
        profile = self.repo.get(user_id)
        if profile is None:
            return Profile(user_id=user_id)
        return Profile(user_id=user_id, first_name=profile.first_name or "", last_name=profile.last_name or "")
