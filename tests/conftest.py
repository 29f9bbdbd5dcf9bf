# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["STORAGE_BACKEND"] = "memory"

from grove.core.settings import settings
from grove.main import app as fastapi_app
from grove.models.post import Post
from grove.repositories.post_store import PostStore, _PostStoreSingleton
from grove.services.backend import BackendError, MemoryBackend
from grove.services.publishing import ensure_root

ROOT_ID = settings.root_post_id


class FlakyBackend(MemoryBackend):
    """Memory backend whose calls fail for chosen path prefixes."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[tuple[str, ...]] = set()

    def _check(self, path: Any) -> None:
        parts = tuple(path)
        for prefix in self.failing:
            if parts[: len(prefix)] == prefix:
                raise BackendError(f"injected failure for {'/'.join(parts)}")

    async def get(self, path):
        self._check(path)
        return await super().get(path)

    async def set(self, path, value):
        self._check(path)
        await super().set(path, value)

    async def update(self, path, value):
        self._check(path)
        await super().update(path, value)


@pytest.fixture()
def backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture()
def store(backend: FlakyBackend) -> PostStore:
    return PostStore(backend, timeout_seconds=2.0)


@pytest_asyncio.fixture()
async def root(store: PostStore) -> Post:
    """Create the public root post."""
    return await ensure_root(store, ROOT_ID, "Root\n\nEveryone may reply here.")


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, store: PostStore) -> Iterator[TestClient]:
    _PostStoreSingleton.set_instance(store)
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        _PostStoreSingleton.set_instance(None)


def register(client: TestClient, secret: str, content: str = "Someone\n\nAbout me.") -> dict[str, Any]:
    """Register an account through the API and return the token response."""
    response = client.post("/api/v1/auth/register", json={"secret": secret, "content": content})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def test_account(client: TestClient) -> dict[str, Any]:
    """Register the primary test account."""
    return register(client, "alice:correct horse", "Alice\n\nFirst account.")


@pytest.fixture()
def other_account(client: TestClient) -> dict[str, Any]:
    """Register a second account."""
    return register(client, "bob:battery staple", "Bob\n\nSecond account.")


@pytest.fixture()
def auth_token(test_account: dict[str, Any]) -> dict[str, str]:
    """Return authorization headers for the primary test account."""
    return {"Authorization": f"Bearer {test_account['access_token']}"}


@pytest.fixture()
def other_auth_token(other_account: dict[str, Any]) -> dict[str, str]:
    """Return authorization headers for the second test account."""
    return {"Authorization": f"Bearer {other_account['access_token']}"}
