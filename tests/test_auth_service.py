"""
Tests for credential checks and access tokens.
"""

import time

import jwt
import pytest

from taskboard.core.config import get_settings
from taskboard.core.exceptions import Unauthenticated
from taskboard.core.security import create_access_token, decode_access_token
from taskboard.models import Role, UserCreate
from taskboard.services.auth_service import AuthService


@pytest.fixture
def auth(user_service):
    return AuthService(user_service)


@pytest.fixture
async def alice(db, auth):
    response = await auth.register(
        UserCreate(username="alice", email="alice@example.com", password="secret123"), db
    )
    return response.user


class TestLogin:
    async def test_register_then_login(self, db, auth, alice):
        token = await auth.login("alice", "secret123", db)

        claims = decode_access_token(token.access_token)
        assert claims.id == alice.id
        assert claims.username == "alice"
        assert claims.role == Role.USER
        assert claims.exp - claims.iat == 86400
        assert token.expires_in == 86400
        assert token.token_type == "bearer"

    async def test_login_by_email(self, db, auth, alice):
        token = await auth.login("alice@example.com", "secret123", db)
        assert decode_access_token(token.access_token).id == alice.id

    async def test_login_by_email_ignores_case(self, db, auth, alice):
        token = await auth.login("ALICE@Example.com", "secret123", db)
        assert decode_access_token(token.access_token).id == alice.id

    async def test_username_match_is_exact(self, db, auth, alice):
        with pytest.raises(Unauthenticated, match="Invalid credentials"):
            await auth.login("ALICE", "secret123", db)

    async def test_wrong_password_and_unknown_user_look_the_same(self, db, auth, alice):
        with pytest.raises(Unauthenticated) as wrong_password:
            await auth.login("alice", "not-the-password", db)
        with pytest.raises(Unauthenticated) as unknown_user:
            await auth.login("mallory", "secret123", db)

        assert wrong_password.value.message == "Invalid credentials"
        assert unknown_user.value.message == wrong_password.value.message


class TestTokens:
    def test_roundtrip(self):
        token, expires_in = create_access_token(7, "bob", "admin")
        claims = decode_access_token(token)
        assert claims.id == 7
        assert claims.role == Role.ADMIN
        assert expires_in == 86400

    def test_expired(self):
        settings = get_settings()
        now = int(time.time())
        token = jwt.encode(
            {"sub": "1", "username": "bob", "role": "user", "iat": now - 100, "exp": now - 10},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(Unauthenticated, match="Token has expired"):
            decode_access_token(token)

    def test_wrong_signature(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "1", "username": "bob", "role": "admin", "iat": now, "exp": now + 60},
            "some-other-secret-that-is-long-enough-too",
            algorithm="HS256",
        )
        with pytest.raises(Unauthenticated, match="Invalid token"):
            decode_access_token(token)

    def test_garbage(self):
        with pytest.raises(Unauthenticated, match="Invalid token"):
            decode_access_token("not.a.token")

    def test_missing_claims(self):
        settings = get_settings()
        now = int(time.time())
        token = jwt.encode(
            {"sub": "1", "iat": now, "exp": now + 60},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(Unauthenticated, match="Invalid token"):
            decode_access_token(token)
