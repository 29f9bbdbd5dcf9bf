"""Persistence for posts on top of a non-transactional key-value backend.

Layout (paths relative to the backend root)::

    posts/<id>                         the Post record
    access_hash/<hash>                 {"first_post_id": <account root id>}
    human_readable_url/<slug>          {"post_id": <id>}
    children/<parent id>/<push key>    {"post_id": <child id>}
    created/<hash>/<push key>          {"post_id": <id>}

Every batch fans out one backend call per key concurrently and waits for all of
them. ``update`` is read-all, transform, write-all: each record write is atomic
on its own, the batch is not, and nothing is rolled back.
"""
from __future__ import annotations

import asyncio
import datetime
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from pydantic import ValidationError

from grove.core.settings import settings
from grove.models.post import Post
from grove.services.backend import BackendError, KeyValueBackend, build_backend, is_valid_segment
from grove.utils.hash import access_token_hash

__all__ = ["LookupKind", "PostStore", "UpdateResult", "get_store", "to_url_part"]

logger = logging.getLogger(__name__)

T = TypeVar("T")
Transform = Callable[[list[Post | None]], Sequence[Post | None]]

_SLUG_RE = re.compile(r"^[a-z0-9_]+$")
_SLUG_MAX_TITLE = 80


class LookupKind(str, Enum):
    """Secondary indices and the field each entry stores."""

    ACCESS_HASH = "access_hash"
    URL = "human_readable_url"

    @property
    def field(self) -> str:
        return "first_post_id" if self is LookupKind.ACCESS_HASH else "post_id"


@dataclass
class UpdateResult:
    """Per-key outcome of an ``update`` batch.

    ``written`` holds the values as stored (with their slug, when assigned);
    ``failed`` maps a post id to the reason its write did not fully land.
    """

    written: dict[str, Post] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def get(self, post_id: str) -> Post | None:
        return self.written.get(post_id)


def to_url_part(content: str, year: int | None = None) -> str:
    """Derive a slug from the first line of ``content``.

    Slugs start with the year, so they never collide with raw post ids or with
    statically served files.

    >>> to_url_part("Hello, World!\\nbody", year=2020)
    '2020_hello_world'
    """
    if year is None:
        year = datetime.datetime.now(datetime.UTC).year
    first_line = content.split("\n", 1)[0]
    simpler = "".join(c if c.isascii() and c.isalnum() else "_" for c in first_line)
    simpler = "_".join(part for part in simpler.split("_") if part).lower()
    return f"{year}_{simpler[:_SLUG_MAX_TITLE]}"


class PostStore:
    """Batched, best-effort-atomic access to posts and their indices."""

    def __init__(self, backend: KeyValueBackend, timeout_seconds: float | None = None) -> None:
        """Initialize the store with a backend and a per-call timeout."""
        self.backend = backend
        self.timeout_seconds = timeout_seconds

    async def _call(self, label: str, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise BackendError(f"{label} timed out after {self.timeout_seconds}s") from exc

    # Reads ------------------------------------------------------------------

    async def _read_one(self, post_id: str) -> Post | None:
        if not post_id or not is_valid_segment(post_id):
            return None
        try:
            raw = await self._call(f"read {post_id}", self.backend.get(("posts", post_id)))
        except BackendError as exc:
            logger.warning("Reading post %s failed, treating it as absent: %s", post_id, exc)
            return None
        if raw is None:
            return None
        try:
            return Post.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Post %s is undecodable, treating it as absent: %s", post_id, exc)
            return None

    async def read(self, ids: Sequence[str]) -> list[Post | None]:
        """Fetch many posts concurrently, in input order; missing ones are ``None``."""
        return list(await asyncio.gather(*(self._read_one(post_id) for post_id in ids)))

    # Writes -----------------------------------------------------------------

    async def update(self, ids: Sequence[str], transform: Transform) -> UpdateResult:
        """Read ``ids``, apply ``transform`` and write back every non-``None`` result.

        ``transform`` must be pure: it receives the posts in the order of
        ``ids`` and returns the values to store, possibly including new posts.
        A returned post whose id was not read (present) in this batch is new
        and gets appended to its parent's and creator's listings.

        Returns:
            The per-key result set. A partial failure leaves some records
            written and others not.
        """
        before = await self.read(ids)
        after = transform(list(before))
        existing = {post.id for post in before if post is not None}

        # One write per id; a later output for the same id replaces an earlier one.
        pending: dict[str, Post] = {}
        for post in after:
            if post is not None:
                pending[post.id] = post

        outcomes = await asyncio.gather(
            *(self._write(post, is_new=post.id not in existing) for post in pending.values())
        )

        result = UpdateResult()
        for post, error in outcomes:
            if error is None:
                result.written[post.id] = post
            else:
                result.failed[post.id] = error
        if result.failed:
            logger.warning(
                "Update applied partially: %d of %d posts not written (%s)",
                len(result.failed),
                len(pending),
                ", ".join(f"{post_id}: {reason}" for post_id, reason in result.failed.items()),
            )
        return result

    async def _write(self, post: Post, *, is_new: bool) -> tuple[Post, str | None]:
        try:
            post = await self._assign_url(post)
        except BackendError as exc:
            # Left unassigned; the next write of this post tries again.
            logger.warning("Assigning a URL to post %s failed, writing it without one: %s", post.id, exc)

        writes: list[Awaitable[Any]] = [
            self._call(f"write {post.id}", self.backend.set(("posts", post.id), post.to_record())),
        ]
        if post.human_readable_url:
            writes.append(
                self._call(
                    f"index url {post.human_readable_url}",
                    self.backend.update(
                        (LookupKind.URL.value, post.human_readable_url),
                        {LookupKind.URL.field: post.id},
                    ),
                )
            )
        if post.is_owned:
            writes.append(self._claim_account_root(post))
        if is_new and not post.is_root:
            writes.append(
                self._call(
                    f"index child {post.id}",
                    self.backend.push(("children", post.parent_id), {"post_id": post.id}),
                )
            )
            if post.is_owned:
                writes.append(
                    self._call(
                        f"index created {post.id}",
                        self.backend.push(("created", post.access_hash), {"post_id": post.id}),
                    )
                )

        results = await asyncio.gather(*writes, return_exceptions=True)
        errors: list[str] = []
        for outcome in results:
            if isinstance(outcome, BackendError):
                errors.append(str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
        return post, "; ".join(errors) if errors else None

    async def _assign_url(self, post: Post) -> Post:
        if post.human_readable_url:
            return post
        slug = to_url_part(post.content)
        owner = await self._lookup(slug, LookupKind.URL)
        if owner is not None and owner != post.id:
            slug = f"{slug}_{post.id[:8]}"
        return post.model_copy(update={"human_readable_url": slug})

    async def _claim_account_root(self, post: Post) -> None:
        # Insert-if-absent: the first post written under a hash owns the account.
        path = (LookupKind.ACCESS_HASH.value, post.access_hash)
        if await self._lookup(post.access_hash, LookupKind.ACCESS_HASH) is not None:
            return
        await self._call(
            f"index account {post.id}",
            self.backend.update(path, {LookupKind.ACCESS_HASH.field: post.id}),
        )

    # Lookups ----------------------------------------------------------------

    async def _lookup(self, key: str, kind: LookupKind) -> str | None:
        raw = await self._call(f"lookup {kind.value}", self.backend.get((kind.value, key)))
        if isinstance(raw, dict):
            value = raw.get(kind.field)
            if isinstance(value, str) and value:
                return value
        return None

    async def lookup(self, key: str, kind: LookupKind) -> str | None:
        """Resolve a secondary key (access hash or slug) to a post id."""
        if not key:
            return None
        if kind is LookupKind.URL and not _SLUG_RE.match(key):
            return None
        if not is_valid_segment(key):
            return None
        try:
            return await self._lookup(key, kind)
        except BackendError as exc:
            logger.warning("Lookup of %s %r failed: %s", kind.value, key, exc)
            return None

    async def lookup_url(self, url: str) -> str | None:
        """Convert a human-readable URL to the post id, if assigned."""
        return await self.lookup(url, LookupKind.URL)

    async def get_account_root(self, access_hash: str) -> Post | None:
        """Return the first post made under ``access_hash``, the user's account."""
        account_id = await self.lookup(access_hash, LookupKind.ACCESS_HASH)
        if account_id is None:
            return None
        return (await self.read([account_id]))[0]

    async def login(self, secret: str) -> str | None:
        """Return the account-root id for an access secret, if registered."""
        return await self.lookup(access_token_hash(secret), LookupKind.ACCESS_HASH)

    # Listings ---------------------------------------------------------------

    async def _listing(self, path: tuple[str, str]) -> list[str]:
        """Return the ids of an append-only listing, oldest first."""
        if not is_valid_segment(path[1]):
            return []
        try:
            raw = await self._call(f"list {path[0]}", self.backend.get(path))
        except BackendError as exc:
            logger.warning("Listing %s/%s failed: %s", path[0], path[1], exc)
            return []
        if not isinstance(raw, dict):
            return []
        ids: list[str] = []
        for key in sorted(raw):
            entry = raw[key]
            if isinstance(entry, dict) and isinstance(entry.get("post_id"), str):
                ids.append(entry["post_id"])
        return ids

    @staticmethod
    def _page(items: list[str], start: int, count: int) -> list[str]:
        if start < 0 or count < 0:
            raise ValueError("start and count must be non-negative")
        return items[start:start + count]

    async def children_by_rank(self, parent_id: str, start: int, count: int) -> list[str]:
        """Return up to ``count`` child ids by descending reward, from offset ``start``.

        Ranking is computed here over the whole child set; newer posts win ties.
        """
        ids = (await self._listing(("children", parent_id)))[::-1]
        children = [post for post in await self.read(ids) if post is not None]
        # Stable sort: equal keys keep the newest-first listing order.
        children.sort(key=lambda post: (post.reverse_reward, post.reverse_date_created))
        return self._page([post.id for post in children], start, count)

    async def children_newest_first(self, parent_id: str, start: int, count: int) -> list[str]:
        """Return up to ``count`` child ids, most recent first."""
        ids = await self._listing(("children", parent_id))
        return self._page(ids[::-1], start, count)

    async def count_children(self, parent_id: str) -> int:
        """Return how many children were ever created under ``parent_id``."""
        return len(await self._listing(("children", parent_id)))

    async def created_by(self, access_hash: str, start: int, count: int) -> list[str]:
        """Return ids of posts created under ``access_hash``, most recent first."""
        if not access_hash:
            return []
        ids = await self._listing(("created", access_hash))
        return self._page(ids[::-1], start, count)

    async def close(self) -> None:
        """Release backend resources."""
        await self.backend.close()


class _PostStoreSingleton:
    """Singleton wrapper for PostStore."""

    _instance: PostStore | None = None

    @classmethod
    def get_instance(cls) -> PostStore:
        """Get or create the singleton PostStore instance."""
        if cls._instance is None:
            cls._instance = PostStore(
                build_backend(settings),
                timeout_seconds=settings.backend_timeout_seconds,
            )
        return cls._instance

    @classmethod
    def set_instance(cls, store: PostStore | None) -> None:
        """Replace the shared store (tests and alternative wiring)."""
        cls._instance = store


def get_store() -> PostStore:
    """Return the process-wide post store."""
    return _PostStoreSingleton.get_instance()
