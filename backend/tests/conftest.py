"""
Pytest configuration and fixtures for API testing.

The app runs in-process against a throwaway SQLite file; image storage is a
real PostStorageService wired to an in-memory container client.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SESSION_SECRET_KEY"] = "test-session-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ADMIN_EMAILS"] = "admin@blogmail.com"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"

import pytest
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from blogsite.database.session import get_db, init_db
from blogsite.main import app
from blogsite.services.storage_service import PostStorageService, get_storage_service

CONTAINER_URL = "https://blogstore.blob.core.windows.net/blogs"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeContainerClient:
    """In-memory stand-in for azure.storage.blob.ContainerClient."""

    def __init__(self, url: str = CONTAINER_URL):
        self.url = url
        self.blobs = {}
        self.deleted = []
        self.fail_uploads = False
        self.fail_deletes = False

    def upload_blob(self, name, data, overwrite=False, content_settings=None, timeout=None):
        if self.fail_uploads:
            raise ResourceExistsError("upload rejected")
        if name in self.blobs and not overwrite:
            raise ResourceExistsError(f"blob {name} exists")
        self.blobs[name] = (data, content_settings.content_type if content_settings else None)

    def delete_blob(self, name, delete_snapshots=None, timeout=None):
        if self.fail_deletes:
            raise RuntimeError("storage unreachable")
        if name not in self.blobs:
            raise ResourceNotFoundError(f"blob {name} not found")
        del self.blobs[name]
        self.deleted.append(name)


@pytest.fixture
def container():
    return FakeContainerClient()


@pytest.fixture
def storage(container):
    return PostStorageService(container_client=container)


@pytest.fixture
def engine(tmp_path):
    return create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'blogsite.db'}")


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def client(engine, session_factory, storage):
    """TestClient with the database and storage dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: storage

    with TestClient(app) as c:
        c.portal.call(init_db, engine)
        yield c
        c.portal.call(engine.dispose)

    app.dependency_overrides.clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api(client):
    """Helper methods for common API calls."""

    class APIClient:
        def __init__(self, c: TestClient):
            self.client = c

        def signup(self, name: str, email: str, password: str = "secret123") -> dict:
            r = self.client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})
            assert r.status_code == 201, f"Signup failed: {r.text}"
            return r.json()

        def headers_for(self, name: str, email: str) -> dict:
            return bearer(self.signup(name, email)["token"])

        def create_post(self, headers: dict, image: bytes = None, content_type: str = "image/png", **fields) -> dict:
            data = {
                "title": "A title",
                "description": "A description",
                "content": "Some content",
                "category": "Tech",
            }
            data.update(fields)
            files = {"image": ("photo.png", image, content_type)} if image is not None else None
            r = self.client.post("/api/blogs", data=data, files=files, headers=headers)
            assert r.status_code == 201, f"Create post failed: {r.text}"
            return r.json()["post"]

    return APIClient(client)
