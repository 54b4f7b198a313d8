# backend/app/dependencies/auth.py
"""
Resolve the calling Actor from the auth provider's access token.

The token is an HS256 JWT whose ``sub`` is the user id. Role and school
are read from the users table, never trusted from the token.
"""

import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..database import get_db
from ..principal import Actor
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry; the audience is checked when configured."""
    options: Dict[str, Any] = {}
    kwargs: Dict[str, Any] = {}
    if settings.auth_jwt_audience:
        kwargs["audience"] = settings.auth_jwt_audience
    else:
        options["verify_aud"] = False
    payload = jwt.decode(
        token,
        settings.auth_jwt_secret.get_secret_value(),
        algorithms=[settings.auth_jwt_algorithm],
        options=options,
        **kwargs,
    )
    return cast(Dict[str, Any], payload)


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Actor:
    if credentials is None or not credentials.credentials:
        raise _credentials_exception("Not authenticated")

    try:
        payload = decode_access_token(credentials.credentials)
    except PyJWTError as e:
        logger.warning("JWT validation error: %s", e)
        raise _credentials_exception()

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise _credentials_exception()

    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id)
    if user is None:
        logger.warning("Token subject %s has no user row", user_id)
        raise _credentials_exception()

    try:
        role = RoleName(user.role)
    except ValueError:
        logger.error("User %s has unknown role %r", user.id, user.role)
        raise _credentials_exception()

    return Actor(user_id=user.id, role=role, school_id=user.school_id)
