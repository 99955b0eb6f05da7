"""Tests for the auth module: token creation, validation, and dev mode bypass."""

from dataclasses import fields
from unittest.mock import patch

from foldervault.core.auth import AuthContext
from foldervault.core.config import settings
from foldervault.core.token_factory import create_token, decode_token
from foldervault.models import UserProfile


class TestTokenFactory:

    def test_create_and_decode(self):
        token = create_token("user-1", "test-secret", given_name="Ada", family_name="Lovelace")
        payload = decode_token(token, "test-secret")
        assert payload is not None
        assert payload.sub == "user-1"
        assert payload.role == "user"
        assert payload.given_name == "Ada"
        assert payload.family_name == "Lovelace"

    def test_wrong_secret_returns_none(self):
        token = create_token("user-1", "correct-secret")
        assert decode_token(token, "wrong-secret") is None

    def test_expired_token_returns_none(self):
        token = create_token("user-1", "secret", expires_hours=-1)
        assert decode_token(token, "secret") is None

    def test_malformed_token_returns_none(self):
        assert decode_token("not.a.token", "secret") is None
        assert decode_token("", "secret") is None

    def test_empty_subject_returns_none(self):
        token = create_token("", "secret")
        assert decode_token(token, "secret") is None


class TestRequireAuth:

    def test_missing_token_is_401(self, client):
        resp = client.get("/api/user/root-folder")
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHORIZED"

    def test_bad_token_is_401(self, client):
        resp = client.get("/api/user/root-folder", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_profile_created_from_token_names(self, client, auth_headers, db):
        resp = client.get("/api/user/root-folder", headers=auth_headers)
        assert resp.status_code == 200
        profile = db.query(UserProfile).filter(UserProfile.user_id == "test-user").one()
        assert profile.first_name == "Test"
        assert profile.last_name == "User"

    def test_profile_names_refreshed(self, client, db):
        token = create_token("renamed", settings.jwt_secret_key, given_name="Old", family_name="Name")
        client.get("/api/user/root-folder", headers={"Authorization": f"Bearer {token}"})
        token = create_token("renamed", settings.jwt_secret_key, given_name="New", family_name="Name")
        client.get("/api/user/root-folder", headers={"Authorization": f"Bearer {token}"})
        db.expire_all()
        profile = db.query(UserProfile).filter(UserProfile.user_id == "renamed").one()
        assert profile.first_name == "New"

    def test_role_claim_grants_nothing(self, client, auth_headers):
        """Ownership is the only access rule; an admin role does not bypass it."""
        owner_root = client.get("/api/user/root-folder", headers=auth_headers).json()["root_folder_id"]
        token = create_token("someone-else", settings.jwt_secret_key, role="admin")
        resp = client.get(f"/api/folders/{owner_root}", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    def test_context_carries_identity_only(self):
        assert [f.name for f in fields(AuthContext)] == ["user_id", "first_name", "last_name"]


class TestAuthDisabledMode:
    """With AUTH_ENABLED=false every request acts as the dev user."""

    def test_requests_without_token_succeed(self, client):
        with patch.object(settings, "auth_enabled", False):
            resp = client.get("/api/user/root-folder")
        assert resp.status_code == 200
        assert resp.json()["folder"]["owner_id"] == settings.dev_user_id
