"""
Tests for campus/api/auth.py - Bearer token verification.
"""
import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from campus.api.auth import get_current_user

SECRET = "test-jwt-secret"


def _credentials(claims: dict, secret: str = SECRET) -> HTTPAuthorizationCredentials:
    token = jwt.encode(claims, secret, algorithm="HS256")
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentUser:
    async def test_valid_token(self, db, user):
        result = await get_current_user(_credentials({"sub": str(user.id)}), db)
        assert result.id == user.id

    async def test_wrong_secret(self, db, user):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials({"sub": str(user.id)}, secret="nope"), db)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token"

    async def test_expired(self, db, user):
        claims = {"sub": str(user.id), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)}
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(claims), db)
        assert exc_info.value.detail == "Token expired"

    async def test_missing_sub(self, db):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials({"role": "member"}), db)
        assert exc_info.value.detail == "Invalid token payload"

    async def test_unknown_user(self, db):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials({"sub": str(uuid.uuid4())}), db)
        assert exc_info.value.detail == "User not found"

    async def test_inactive_user(self, db, make_user):
        inactive = await make_user(is_active=False)
        with pytest.raises(HTTPException):
            await get_current_user(_credentials({"sub": str(inactive.id)}), db)
