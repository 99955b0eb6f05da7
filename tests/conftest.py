"""Shared test fixtures for the FolderVault test suite.

Tests run against a throwaway SQLite file. Every table is emptied before
each test. Object storage is replaced by ``FakeObjectStore``, an in-memory
implementation of the ObjectStore protocol that can be told to fail.

The app's migrator creates the tables on import, so no explicit
create_all is needed here.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

# Test database, auth on, and a bucket name before any app imports.
_TEST_DB = os.path.join(tempfile.gettempdir(), f"foldervault_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ["AUTH_ENABLED"] = "true"
os.environ["LOG_FORMAT"] = "text"
os.environ["S3_BUCKET_NAME"] = "test-bucket"

import pytest
from sqlalchemy import text
from fastapi.testclient import TestClient

from foldervault.database import get_db, SessionLocal
from foldervault.main import app
from foldervault.core.clock import utcnow
from foldervault.core.config import settings
from foldervault.core.token_factory import create_token
from foldervault.exceptions import StorageUnavailableError
from foldervault.middleware.request_context import _rate_buckets
from foldervault.services.hierarchy_service import HierarchyService
from foldervault.services.identity_service import ProfileIdentityAdapter
from foldervault.services.sharing_service import SharingService
from foldervault.services.transfer_service import TransferService
from foldervault.storage import PresignedUrl, get_object_store

# Children before parents.
_CLEAN_TABLES = ["files", "folders", "user_profiles"]

USER_ID = "test-user"
OTHER_USER_ID = "other-user"


class FakeObjectStore:
    """In-memory ObjectStore with failure injection."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_puts = False
        self.fail_deletes: set[str] = set()
        self.presigned: list[tuple[str, int]] = []

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        if self.fail_puts:
            raise StorageUnavailableError("put", key)
        self.objects[key] = (data, content_type)

    def delete(self, key: str) -> None:
        if key in self.fail_deletes:
            raise StorageUnavailableError("delete", key)
        self.objects.pop(key, None)

    def presign(self, key: str, ttl_seconds: int) -> PresignedUrl:
        self.presigned.append((key, ttl_seconds))
        return PresignedUrl(
            url=f"https://fake-s3.local/test-bucket/{key}?X-Amz-Expires={ttl_seconds}",
            expires_at=utcnow() + timedelta(seconds=ttl_seconds),
        )


class FakeClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _clean_tables():
    """Empty all data tables before each test.

    Runs before the test (not after) so failures leave data available for
    debugging.
    """
    db = SessionLocal()
    try:
        for table in _CLEAN_TABLES:
            db.execute(text(f"DELETE FROM {table}"))
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def identity(db) -> ProfileIdentityAdapter:
    adapter = ProfileIdentityAdapter(db)
    adapter.ensure_profile(USER_ID, "Test", "User")
    db.commit()
    return adapter


@pytest.fixture()
def hierarchy(db, store, identity) -> HierarchyService:
    return HierarchyService(db, store, identity)


@pytest.fixture()
def sharing(db, store, hierarchy, clock) -> SharingService:
    return SharingService(db, store, hierarchy, clock=clock)


@pytest.fixture()
def transfer(db, store) -> TransferService:
    return TransferService(db, store)


@pytest.fixture()
def root(hierarchy):
    return hierarchy.create_root_folder(USER_ID)


@pytest.fixture()
def client(db, store):
    """TestClient with the DB session and object store overridden."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_object_store] = lambda: store
    _rate_buckets.clear()  # Reset rate limiter so tests don't hit 429
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _headers_for(user_id: str, given_name: str, family_name: str) -> dict:
    token = create_token(
        subject=user_id,
        secret=settings.jwt_secret_key,
        given_name=given_name,
        family_name=family_name,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers() -> dict:
    """Bearer token for the primary test user."""
    return _headers_for(USER_ID, "Test", "User")


@pytest.fixture()
def other_headers() -> dict:
    """Bearer token for a second user who owns nothing of the first's."""
    return _headers_for(OTHER_USER_ID, "Other", "Person")
