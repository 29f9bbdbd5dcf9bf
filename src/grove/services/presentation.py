"""Read-only helpers answering what a page needs to show.

Nothing here writes; rendering Markdown is left to the client.
"""
from __future__ import annotations

import asyncio
from typing import Literal

from grove.models.post import Post
from grove.repositories.post_store import PostStore
from grove.schemas.post import PostPage
from grove.services.post_service import to_view

__all__ = ["get_post_page", "is_editable", "resolve_post_id"]

PageOrder = Literal["rank", "new"]


def is_editable(post: Post, access_hash: str | None) -> bool:
    """Return True if the holder of ``access_hash`` owns ``post``."""
    return bool(access_hash) and post.is_owned and post.access_hash == access_hash


async def resolve_post_id(store: PostStore, ref: str) -> str:
    """Map a human-readable URL to its post id; anything else is taken as an id."""
    return await store.lookup_url(ref) or ref


async def get_post_page(
    store: PostStore,
    ref: str,
    viewer_id: str | None = None,
    start: int = 0,
    count: int = 20,
    order: PageOrder = "rank",
) -> PostPage | None:
    """Return the post ``ref`` (id or slug) with one page of its children.

    Views carry ``viewer_id``'s votes when given. Returns ``None`` if the
    post does not exist.
    """
    post_id = await resolve_post_id(store, ref)
    post, viewer = await store.read([post_id, viewer_id or ""])
    if post is None:
        return None

    if order == "new":
        child_ids_call = store.children_newest_first(post.id, start, count)
    else:
        child_ids_call = store.children_by_rank(post.id, start, count)
    child_ids, children_count = await asyncio.gather(child_ids_call, store.count_children(post.id))
    children = [child for child in await store.read(child_ids) if child is not None]

    return PostPage(
        post=to_view(post, viewer),
        editable=is_editable(post, viewer.access_hash if viewer else None),
        children=[to_view(child, viewer) for child in children],
        children_count=children_count,
        start=start,
        count=count,
        order=order,
    )
