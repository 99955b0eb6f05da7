"""Repository for user profiles."""

from typing import Optional

from ..models.user import UserProfile


class UserProfileRepository:
    """CRUD for user_profiles."""

    def __init__(self, db):
        self.db = db

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self.db.query(UserProfile).filter(UserProfile.user_id == user_id).first()

    def get_or_create(self, user_id: str, first_name: str = "", last_name: str = "") -> UserProfile:
        profile = self.get(user_id)
        if profile:
            return profile
        profile = UserProfile(
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            public_metadata={},
        )
        self.db.add(profile)
        self.db.flush()
        return profile
