# mypy: ignore-errors
"""Tests for the Firebase REST backend using a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest

from grove.repositories.post_store import PostStore
from grove.services.backend import BackendError, BackendUnavailableError
from grove.services.firebase import CircuitBreaker, CircuitState, FirebaseBackend, FirebaseConfig


def _config(**overrides) -> FirebaseConfig:
    values = {
        "base_url": "https://db.example.com",
        "auth": "db-secret",
        "namespace": "ns",
        "timeout_seconds": 1.0,
    }
    values.update(overrides)
    return FirebaseConfig(**values)


class RecordingHandler:
    """Mock transport handler that records requests and replies from a table."""

    def __init__(self, responses=None) -> None:
        self.requests: list[httpx.Request] = []
        self.responses = responses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        status, body = self.responses.get(key, (200, None))
        return httpx.Response(status, content=json.dumps(body).encode(), headers={"content-type": "application/json"})


@pytest.mark.asyncio
async def test_get_builds_url_with_namespace_and_auth() -> None:
    handler = RecordingHandler({("GET", "/ns/posts/abc.json"): (200, {"id": "abc"})})
    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(handler))
    try:
        assert await backend.get(["posts", "abc"]) == {"id": "abc"}
    finally:
        await backend.close()
    request = handler.requests[0]
    assert request.url.params["auth"] == "db-secret"


@pytest.mark.asyncio
async def test_get_absent_is_none() -> None:
    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(RecordingHandler()))
    assert await backend.get(["posts", "nope"]) is None
    await backend.close()


@pytest.mark.asyncio
async def test_set_update_push_methods() -> None:
    handler = RecordingHandler({("POST", "/ns/children/p.json"): (200, {"name": "-Nkey"})})
    backend = FirebaseBackend(_config(auth=None), transport=httpx.MockTransport(handler))
    await backend.set(["posts", "a"], {"id": "a"})
    await backend.update(["access_hash", "h"], {"first_post_id": "a"})
    key = await backend.push(["children", "p"], {"post_id": "a"})
    await backend.close()

    assert key == "-Nkey"
    methods = [(request.method, request.url.path) for request in handler.requests]
    assert methods == [
        ("PUT", "/ns/posts/a.json"),
        ("PATCH", "/ns/access_hash/h.json"),
        ("POST", "/ns/children/p.json"),
    ]
    assert json.loads(handler.requests[1].content) == {"first_post_id": "a"}
    assert "auth" not in handler.requests[0].url.params


@pytest.mark.asyncio
async def test_empty_segments_and_no_namespace() -> None:
    handler = RecordingHandler()
    backend = FirebaseBackend(_config(namespace=""), transport=httpx.MockTransport(handler))
    await backend.get(["posts", ""])
    await backend.close()
    assert handler.requests[0].url.path == "/posts/_.json"


@pytest.mark.asyncio
async def test_error_status_raises_backend_error() -> None:
    handler = RecordingHandler({("PUT", "/ns/posts/a.json"): (401, {"error": "Permission denied"})})
    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(handler))
    with pytest.raises(BackendError):
        await backend.set(["posts", "a"], {"id": "a"})
    metrics = backend.get_metrics()
    await backend.close()
    assert metrics["error_count"] == 1
    assert metrics["error_counts_by_type"] == {"http_401": 1}
    # A rule rejection does not count against the circuit.
    assert metrics["circuit_state"] == "closed"


@pytest.mark.asyncio
async def test_push_without_name_raises() -> None:
    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(RecordingHandler()))
    with pytest.raises(BackendError):
        await backend.push(["children", "p"], {"post_id": "a"})
    await backend.close()


@pytest.mark.asyncio
async def test_network_errors_open_the_circuit() -> None:
    def failing(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(failing))
    for _ in range(CircuitBreaker().failure_threshold):
        with pytest.raises(BackendError):
            await backend.get(["posts", "a"])
    with pytest.raises(BackendUnavailableError):
        await backend.get(["posts", "a"])
    await backend.close()


def test_circuit_breaker_half_open_recovery(mocker) -> None:
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10.0, success_threshold=1)
    clock = mocker.patch("grove.services.firebase.time.time", return_value=1000.0)
    breaker.record_failure()
    assert breaker.is_open()

    clock.return_value = 1011.0
    assert not breaker.is_open()
    assert breaker.get_state() is CircuitState.HALF_OPEN
    breaker.record_success()
    assert breaker.get_state() is CircuitState.CLOSED


def _html_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"<html>oops</html>", headers={"content-type": "text/html"})


@pytest.mark.asyncio
async def test_body_that_is_not_json_raises_backend_error() -> None:
    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(_html_page))
    with pytest.raises(BackendError):
        await backend.get(["posts", "a"])
    metrics = backend.get_metrics()
    await backend.close()
    assert metrics["error_counts_by_type"] == {"invalid_json": 1}


@pytest.mark.asyncio
async def test_store_reads_undecodable_bodies_as_absent() -> None:
    backend = FirebaseBackend(_config(), transport=httpx.MockTransport(_html_page))
    store = PostStore(backend, timeout_seconds=1.0)
    assert await store.read(["a", "b"]) == [None, None]
    assert await store.lookup_url("2020_anything") is None
    assert await store.children_newest_first("a", 0, 10) == []
    await store.close()
