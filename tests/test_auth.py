"""
Tests for token handling, password hashing and the role gate.
"""

from typing import Annotated

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

import AuthAndUser as auth
import errors
from config import Settings, get_settings
from domain.user import User
from repositories.users import get_user_repository
from conftest import TEST_JWT_SECRET


class TestTokens:

    def test_round_trip(self, settings):
        token = auth.create_access_token("user-123", settings)
        assert auth.decode_access_token(token, settings).id == "user-123"
        payload = jwt.decode(token, TEST_JWT_SECRET, algorithms=["HS256"])
        assert payload["exp"] - payload["iat"] == settings.jwt_expires_minutes * 60

    def test_wrong_secret_is_rejected(self, settings):
        token = auth.create_access_token("user-123", settings)
        other = Settings(jwt_secret="another-secret")
        with pytest.raises(errors.AuthError):
            auth.decode_access_token(token, other)

    def test_token_without_id_is_rejected(self, settings):
        token = jwt.encode({"sub": "user-123"}, TEST_JWT_SECRET, algorithm="HS256")
        with pytest.raises(errors.AuthError):
            auth.decode_access_token(token, settings)


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = auth.get_password_hash("hunter2hunter2")
        assert isinstance(hashed, str)
        assert hashed != "hunter2hunter2"
        assert auth.verify_password("hunter2hunter2", hashed)
        assert not auth.verify_password("hunter3hunter3", hashed)

    def test_reset_token_hash_is_stable(self, settings):
        token, token_hash, expires = auth.generate_password_reset_token(settings)
        assert token != token_hash
        assert auth.hash_reset_token(token) == token_hash
        assert len(token_hash) == 64

    def test_verify_keys_are_unique(self):
        assert auth.generate_email_verify_key() != auth.generate_email_verify_key()


class TestRestrictTo:

    @pytest.fixture
    def gated_app(self, settings, user_repo):
        calls = []
        app = FastAPI()
        app.add_exception_handler(errors.AppError, errors.app_error_handler)
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_user_repository] = lambda: user_repo

        @app.get("/admin-only")
        async def admin_only(user: Annotated[User, Depends(auth.restrict_to("admin"))]):
            calls.append(user.id)
            return {"ok": True}

        @app.get("/readers")
        async def readers(user: Annotated[User, Depends(auth.restrict_to("reader", "admin"))]):
            calls.append(user.id)
            return {"ok": True}

        return TestClient(app), calls

    def test_reader_is_rejected_by_admin_gate(self, gated_app, make_user, auth_headers):
        client, calls = gated_app
        reader = make_user(role="reader")
        response = client.get("/admin-only", headers=auth_headers(reader))
        assert response.status_code == 403
        assert calls == []

    def test_reader_passes_reader_gate(self, gated_app, make_user, auth_headers):
        client, calls = gated_app
        reader = make_user(role="reader")
        response = client.get("/readers", headers=auth_headers(reader))
        assert response.status_code == 200
        assert calls == [reader.id]

    def test_admin_passes_admin_gate(self, gated_app, make_user, auth_headers):
        client, calls = gated_app
        admin = make_user(role="admin")
        assert client.get("/admin-only", headers=auth_headers(admin)).status_code == 200
        assert calls == [admin.id]

    def test_unauthenticated_caller_never_reaches_handler(self, gated_app):
        client, calls = gated_app
        assert client.get("/readers").status_code == 401
        assert calls == []

    def test_token_for_deleted_user_is_rejected(self, gated_app, settings):
        client, calls = gated_app
        headers = {"Authorization": f"Bearer {auth.create_access_token('user-gone', settings)}"}
        assert client.get("/readers", headers=headers).status_code == 401
        assert calls == []
