"""Authentication module exposing FastAPI dependencies.

Public interface:
    ``require_auth``   returns AuthContext or raises 401.
    ``verify_owner``   raises 403 unless the caller owns a folder or file row.

When ``settings.auth_enabled`` is False ``require_auth`` returns a fixed
development identity so the local workflow needs no tokens. Either way the
caller's profile row is created on first sight, since root folder naming
reads first and last name from it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import decode_token
from ..database import get_db
from ..exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Resolved caller identity available to every endpoint."""

    user_id: str
    first_name: str = ""
    last_name: str = ""


def _dev_context() -> AuthContext:
    return AuthContext(user_id=settings.dev_user_id, first_name="Dev", last_name="User")


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Require a valid bearer token and return the caller's AuthContext."""
    if not settings.auth_enabled:
        auth = _dev_context()
    else:
        if credentials is None:
            raise AuthenticationError("Missing authentication token")

        payload = decode_token(
            credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
        )
        if payload is None:
            raise AuthenticationError("Invalid or expired token")

        auth = AuthContext(
            user_id=payload.sub,
            first_name=payload.given_name,
            last_name=payload.family_name,
        )

    _ensure_profile(auth, db)
    return auth


def verify_owner(entity, auth: AuthContext) -> None:
    """Raise ForbiddenError unless *auth* owns *entity* (a Folder or StoredFile)."""
    if entity.owner_id != auth.user_id:
        logger.warning(
            "Ownership check failed",
            extra={"user_id": auth.user_id, "entity_id": entity.id},
        )
        raise ForbiddenError("You do not own this item")


def _ensure_profile(auth: AuthContext, db: Session) -> None:
    from ..services.identity_service import ProfileIdentityAdapter

    ProfileIdentityAdapter(db).ensure_profile(auth.user_id, auth.first_name, auth.last_name)
    db.commit()
