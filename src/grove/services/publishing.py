"""Request-level flows: registering, posting, editing and voting.

Each flow validates its input before touching the store, then runs one
``PostStore.update`` whose transform is built from the pure operations in
``post_service``. Outcomes the pure operations report as ``None`` are turned
into the exceptions below for the API layer to map.
"""
from __future__ import annotations

import logging

from grove.models.post import ChildrenRights, Post
from grove.repositories.post_store import LookupKind, PostStore, UpdateResult
from grove.services import post_service
from grove.utils.hash import access_token_hash

logger = logging.getLogger(__name__)


class PublishingError(Exception):
    """Base exception for rejected requests."""


class InvalidInput(PublishingError):
    """Raised for malformed or oversized input; nothing was read or written."""


class NotPermitted(PublishingError):
    """Raised when the caller does not own or may not extend the post."""


class QuotaExceeded(PublishingError):
    """Raised when a vote would push the voter's balance out of bounds."""


class NotFound(PublishingError):
    """Raised when a post the request needs does not exist."""


class StorageUnavailable(PublishingError):
    """Raised when some writes of an accepted change did not land."""

    def __init__(self, failed: dict[str, str]) -> None:
        super().__init__(f"Storage unavailable for: {', '.join(sorted(failed))}")
        self.failed = failed


def _validate_content(content: str) -> None:
    if not content:
        raise InvalidInput("Content must not be empty")
    if not post_service.content_fits(content):
        raise InvalidInput("Content is too long")


def _require_written(result: UpdateResult) -> None:
    if not result.ok:
        raise StorageUnavailable(result.failed)


async def ensure_root(store: PostStore, root_id: str, content: str) -> Post:
    """Create the public root post with id ``root_id`` if it does not exist."""
    existing = (await store.read([root_id]))[0]
    if existing is not None:
        return existing

    def transform(posts: list[Post | None]) -> list[Post | None]:
        return [posts[0] or post_service.new_public(content, post_id=root_id)]

    result = await store.update([root_id], transform)
    _require_written(result)
    logger.info("Created the public root post %s", root_id)
    root = result.get(root_id)
    assert root is not None
    return root


async def create_post(
    store: PostStore,
    access_hash: str,
    parent_id: str,
    content: str,
    children_rights: ChildrenRights,
) -> Post:
    """Create a child of ``parent_id`` owned by ``access_hash``.

    Raises:
        InvalidInput: If the content is empty or too long.
        NotFound: If the parent does not exist.
        NotPermitted: If the parent's children rights exclude this creator.
        StorageUnavailable: If the new post was not fully written.
    """
    _validate_content(content)
    created: list[Post] = []
    missing: list[str] = []

    def transform(posts: list[Post | None]) -> list[Post | None]:
        parent = posts[0]
        if parent is None:
            missing.append(parent_id)
            return []
        parent, child = post_service.new(parent, access_hash, content, children_rights)
        if child is None:
            return []
        created.append(child)
        return [child]

    result = await store.update([parent_id], transform)
    if missing:
        raise NotFound(f"Post {parent_id} not found")
    if not created:
        raise NotPermitted("This post does not accept children from you")
    _require_written(result)
    child = result.get(created[0].id)
    assert child is not None
    return child


async def register_account(store: PostStore, secret: str, content: str, root_id: str) -> Post:
    """Create the account root for ``secret`` as a child of the public root.

    Raises:
        NotPermitted: If an account already exists for this secret.
    """
    if not secret:
        raise InvalidInput("Secret must not be empty")
    access_hash = access_token_hash(secret)
    if await store.lookup(access_hash, LookupKind.ACCESS_HASH) is not None:
        raise NotPermitted("An account already exists for this secret")
    account = await create_post(store, access_hash, root_id, content, ChildrenRights.ALL)
    logger.info("Registered account %s", account.id)
    return account


async def login(store: PostStore, secret: str) -> Post:
    """Return the account root for ``secret``.

    Raises:
        NotPermitted: If no account is registered for it.
    """
    account = await store.get_account_root(access_token_hash(secret))
    if account is None:
        raise NotPermitted("Unknown access secret")
    return account


async def edit_post(
    store: PostStore,
    post_id: str,
    secret: str,
    content: str,
    children_rights: ChildrenRights,
) -> Post:
    """Replace a post's content and children rights; the secret must own it."""
    _validate_content(content)
    edited: list[Post] = []
    missing: list[str] = []

    def transform(posts: list[Post | None]) -> list[Post | None]:
        post = posts[0]
        if post is None:
            missing.append(post_id)
            return []
        updated = post_service.edit(post, secret, content, children_rights)
        if updated is None:
            return []
        edited.append(updated)
        return [updated]

    result = await store.update([post_id], transform)
    if missing:
        raise NotFound(f"Post {post_id} not found")
    if not edited:
        raise NotPermitted("Only the owner can edit this post")
    _require_written(result)
    post = result.get(post_id)
    assert post is not None
    return post


async def reward_post(store: PostStore, account_id: str, target_id: str, amount: int) -> tuple[Post, Post]:
    """Cast the vote ``amount`` of the account ``account_id`` on ``target_id``.

    Returns:
        ``(account, target)`` as written; the same value twice when an account
        votes on its own root.

    Raises:
        InvalidInput: If ``amount`` is not -100, -1, 0 or 1.
        NotFound: If the target or the account does not exist.
        NotPermitted: If a self-removal targets a post the account does not own.
        QuotaExceeded: If the vote, or the vote a self-removal releases, would
            push the balance beyond +/-10.
    """
    if amount not in post_service.VALID_REWARD_AMOUNTS:
        raise InvalidInput(f"Invalid reward amount: {amount}")
    outcome: list[tuple[Post, Post]] = []
    missing: list[str] = []
    not_owner: list[str] = []

    def transform(posts: list[Post | None]) -> list[Post | None]:
        target, account = posts
        if target is None or account is None:
            missing.append(target_id if target is None else account_id)
            return []
        if amount == post_service.SELF_REMOVAL and not post_service.can_remove(target, account):
            not_owner.append(target_id)
            return []
        account, rewarded = post_service.reward(target, account, amount)
        if rewarded is None:
            return []
        outcome.append((account, rewarded))
        return [account, rewarded]

    result = await store.update([target_id, account_id], transform)
    if missing:
        raise NotFound(f"Post {missing[0]} not found")
    if not_owner:
        raise NotPermitted("Only the owner can remove this post")
    if not outcome:
        raise QuotaExceeded("Vote balance limit reached; withdraw another vote first")
    _require_written(result)
    account = result.get(account_id)
    target = result.get(target_id)
    assert account is not None and target is not None
    return account, target
