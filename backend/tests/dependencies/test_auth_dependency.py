# backend/tests/dependencies/test_auth_dependency.py
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
import jwt
import pytest

from app.core.config import settings
from app.core.enums import RoleName
from app.dependencies.auth import get_current_actor


def _token(sub: str, *, audience: str = "authenticated", expires_in: int = 3600, secret=None) -> str:
    payload = {
        "sub": sub,
        "aud": audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    key = secret or settings.auth_jwt_secret.get_secret_value()
    return jwt.encode(payload, key, algorithm="HS256")


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_actor_comes_from_users_table(db, instructor):
    actor = get_current_actor(credentials=_bearer(_token(instructor.id)), db=db)

    assert actor.user_id == instructor.id
    assert actor.role == RoleName.INSTRUCTOR
    assert actor.school_id == instructor.school_id


@pytest.mark.parametrize(
    "make_token",
    [
        lambda uid: _token(uid, expires_in=-10),
        lambda uid: _token(uid, audience="someone-else"),
        lambda uid: _token(uid, secret="not-the-secret"),
        lambda uid: _token("unknown-user"),
        lambda uid: "not-a-jwt",
    ],
)
def test_bad_tokens_are_401(db, student, make_token):
    with pytest.raises(HTTPException) as exc_info:
        get_current_actor(credentials=_bearer(make_token(student.id)), db=db)
    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_missing_credentials_are_401(db):
    with pytest.raises(HTTPException) as exc_info:
        get_current_actor(credentials=None, db=db)
    assert exc_info.value.status_code == 401
