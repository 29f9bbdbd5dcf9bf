"""Key-value backend primitives used by the post store.

The store only ever talks to its backend through four calls: ``get``, ``set``,
``update`` (shallow merge) and ``push`` (append under a fresh, chronologically
sortable key). None of them is transactional across keys.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import secrets
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from grove.core.settings import Settings

logger = logging.getLogger(__name__)

BackendPath = Sequence[str]

# Characters a path segment may not contain (Firebase key rules, plus our separator).
_FORBIDDEN_SEGMENT_CHARS = frozenset("/.#$[]")


class BackendError(RuntimeError):
    """Base exception raised for backend failures.

    Network errors, timeouts, rejected requests and driver errors all surface
    as this type so the store can treat them uniformly.
    """


class BackendUnavailableError(BackendError):
    """Raised when a backend refuses requests (for example an open circuit)."""


class KeyValueBackend(Protocol):
    """The primitive operations the store is built from."""

    async def get(self, path: BackendPath) -> Any | None: ...

    async def set(self, path: BackendPath, value: Any) -> None: ...

    async def update(self, path: BackendPath, value: Mapping[str, Any]) -> None: ...

    async def push(self, path: BackendPath, value: Any) -> str: ...

    async def close(self) -> None: ...


def is_valid_segment(segment: str) -> bool:
    """Return True if ``segment`` can be used as one path part."""
    return not _FORBIDDEN_SEGMENT_CHARS.intersection(segment)


def normalize_path(path: BackendPath) -> list[str]:
    """Return path segments ready for a backend.

    Empty segments become ``"_"``: backends drop empty path parts, which would
    otherwise collapse the tree.

    Raises:
        ValueError: If a segment contains a reserved character.
    """
    segments: list[str] = []
    for segment in path:
        if not segment:
            segments.append("_")
            continue
        if not is_valid_segment(segment):
            raise ValueError(f"Invalid path segment: {segment!r}")
        segments.append(segment)
    return segments


def join_path(path: BackendPath, separator: str = "/") -> str:
    """Join normalized path segments.

    >>> join_path(["a", "", "c"])
    'a/_/c'
    """
    return separator.join(normalize_path(path))


def new_push_key() -> str:
    """Return a fresh key that sorts after every key generated before it."""
    return f"{time.time_ns():020x}{secrets.token_hex(4)}"


class MemoryBackend:
    """In-process backend holding a JSON-like tree, for development and tests."""

    def __init__(self) -> None:
        self._tree: dict[str, Any] = {}

    def _parent(self, segments: list[str], *, create: bool) -> dict[str, Any] | None:
        node: Any = self._tree
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if not create:
                    return None
                child = {}
                node[segment] = child
            node = child
        return node

    async def get(self, path: BackendPath) -> Any | None:
        segments = normalize_path(path)
        # Yield so concurrent callers interleave like real network calls.
        await asyncio.sleep(0)
        parent = self._parent(segments, create=False)
        if parent is None:
            return None
        value = parent.get(segments[-1])
        return copy.deepcopy(value)

    async def set(self, path: BackendPath, value: Any) -> None:
        segments = normalize_path(path)
        await asyncio.sleep(0)
        parent = self._parent(segments, create=True)
        assert parent is not None
        parent[segments[-1]] = copy.deepcopy(value)

    async def update(self, path: BackendPath, value: Mapping[str, Any]) -> None:
        segments = normalize_path(path)
        await asyncio.sleep(0)
        parent = self._parent(segments, create=True)
        assert parent is not None
        node = parent.get(segments[-1])
        if not isinstance(node, dict):
            node = {}
            parent[segments[-1]] = node
        node.update(copy.deepcopy(dict(value)))

    async def push(self, path: BackendPath, value: Any) -> str:
        key = new_push_key()
        await self.update(path, {key: value})
        return key

    async def close(self) -> None:
        return None

    def dump(self) -> dict[str, Any]:
        """Return a copy of the whole tree (debugging aid)."""
        return copy.deepcopy(self._tree)


def build_backend(config: Settings) -> KeyValueBackend:
    """Create the backend selected by ``config.storage_backend``."""
    if config.storage_backend == "firebase":
        from grove.services.firebase import FirebaseBackend, load_firebase_config

        return FirebaseBackend(load_firebase_config(config))
    if config.storage_backend == "redis":
        from grove.services.redis_backend import RedisBackend

        return RedisBackend(config.redis_url, namespace=config.storage_namespace)
    logger.info("Using the in-memory backend; posts will not survive a restart")
    return MemoryBackend()
