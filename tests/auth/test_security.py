"""Tests for access token validation and the auth dependencies."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from certflow.auth.dependencies import get_current_actor, get_current_user
from certflow.auth.permissions import UserRole
from certflow.auth.security import create_access_token, decode_access_token
from certflow.config import get_settings


class TestAccessToken:
    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        user_id = uuid4()
        token = create_access_token(
            {"sub": str(user_id), "role": UserRole.STUDENT.value}
        )
        payload = decode_access_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["role"] == "student"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        token = create_access_token(
            {"sub": str(uuid4())}, expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "type": "refresh",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )
        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_without_subject(self) -> None:
        token = create_access_token({"role": "student"})
        with pytest.raises(JWTError, match="sub"):
            decode_access_token(token)


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self) -> None:
        from fastapi import HTTPException

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_uuid_subject_is_401(self) -> None:
        from fastapi import HTTPException

        token = create_access_token({"sub": "not-a-uuid"})
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_role_falls_back_to_user(self) -> None:
        token = create_access_token({"sub": str(uuid4()), "role": "superadmin"})
        user = await get_current_user(token)
        assert user.role == UserRole.USER

    @pytest.mark.asyncio
    async def test_actor_from_user(self) -> None:
        user_id = uuid4()
        token = create_access_token({"sub": str(user_id), "role": "admin"})
        actor = await get_current_actor(await get_current_user(token))
        assert actor.user_id == user_id
        assert actor.is_admin is True
