"""Redis implementation of the key-value primitives.

A path maps to one Redis key. Whole documents (``set``) are JSON strings;
``update`` and ``push`` write fields of a Redis hash, so concurrent writers of
different fields never clobber each other. ``get`` returns either shape.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from grove.services.backend import BackendError, BackendPath, join_path, new_push_key

logger = logging.getLogger(__name__)


class RedisBackend:
    """Backend storing the post tree in Redis."""

    def __init__(
        self,
        url: str | None = None,
        *,
        namespace: str = "",
        client: redis.Redis | None = None,
    ) -> None:
        if client is None:
            if url is None:
                raise BackendError("RedisBackend requires a URL or a client")
            client = redis.from_url(url, decode_responses=True)
        self._redis = client
        self._namespace = namespace

    def _key(self, path: BackendPath) -> str:
        segments = [self._namespace, *path] if self._namespace else list(path)
        return join_path(segments, separator=":")

    async def get(self, path: BackendPath) -> Any | None:
        key = self._key(path)
        try:
            kind = await self._redis.type(key)
            if isinstance(kind, bytes):
                kind = kind.decode()
            if kind == "string":
                raw = await self._redis.get(key)
                return None if raw is None else json.loads(raw)
            if kind == "hash":
                fields = await self._redis.hgetall(key)
                return {name: json.loads(value) for name, value in fields.items()}
            return None
        except RedisError as exc:
            raise BackendError(f"Redis GET {key} failed: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"Redis value at {key} is not JSON: {exc}") from exc

    async def set(self, path: BackendPath, value: Any) -> None:
        key = self._key(path)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.set(key, json.dumps(value))
                await pipe.execute()
        except RedisError as exc:
            raise BackendError(f"Redis SET {key} failed: {exc}") from exc

    async def update(self, path: BackendPath, value: Mapping[str, Any]) -> None:
        key = self._key(path)
        if not value:
            return
        try:
            await self._redis.hset(key, mapping={name: json.dumps(item) for name, item in value.items()})
        except RedisError as exc:
            raise BackendError(f"Redis HSET {key} failed: {exc}") from exc

    async def push(self, path: BackendPath, value: Any) -> str:
        name = new_push_key()
        await self.update(path, {name: value})
        return name

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except RedisError as exc:  # pragma: no cover - shutdown path
            logger.warning("Closing the Redis connection failed: %s", exc)
