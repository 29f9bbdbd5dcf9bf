# src/grove/api/v1/endpoints/posts.py
"""Post-related endpoints for the Grove API."""

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status

from grove.api.v1.dependencies import (
    CurrentAccountDep,
    OptionalAccountDep,
    StoreDep,
    raise_for_publishing_error,
)
from grove.schemas.post import (
    ChildCreate,
    PostEdit,
    PostPage,
    PostView,
    RewardCreate,
    RewardResponse,
)
from grove.services import publishing
from grove.services.post_service import to_view, vote_of
from grove.services.presentation import get_post_page
from grove.services.publishing import PublishingError

router = APIRouter(prefix="/posts", tags=["posts"])

MAX_PAGE_SIZE = 100


@router.get("/{post_ref}", response_model=PostPage)
async def read_post(
    post_ref: str,
    store: StoreDep,
    viewer: OptionalAccountDep,
    start: int = Query(0, ge=0),
    count: int = Query(20, ge=0, le=MAX_PAGE_SIZE),
    order: Literal["rank", "new"] = Query("rank"),
) -> PostPage:
    """Get a post by id or human-readable URL, with a page of its children."""
    page = await get_post_page(
        store,
        post_ref,
        viewer_id=viewer.account_id if viewer else None,
        start=start,
        count=count,
        order=order,
    )
    if page is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return page


@router.post("/{parent_id}/children", status_code=status.HTTP_201_CREATED, response_model=PostView)
async def create_child(
    parent_id: str,
    payload: ChildCreate,
    store: StoreDep,
    account: CurrentAccountDep,
) -> PostView:
    """Create a post under ``parent_id`` as the signed-in account."""
    try:
        child = await publishing.create_post(
            store,
            account.access_hash,
            parent_id,
            payload.content,
            payload.children_rights,
        )
    except PublishingError as exc:
        raise_for_publishing_error(exc)
    return to_view(child)


@router.put("/{post_id}", response_model=PostView)
async def edit_post(post_id: str, payload: PostEdit, store: StoreDep) -> PostView:
    """Edit a post's content and children rights; the secret must own it."""
    try:
        post = await publishing.edit_post(
            store,
            post_id,
            payload.secret,
            payload.content,
            payload.children_rights,
        )
    except PublishingError as exc:
        raise_for_publishing_error(exc)
    return to_view(post)


@router.post("/{post_id}/reward", response_model=RewardResponse)
async def reward_post(
    post_id: str,
    payload: RewardCreate,
    store: StoreDep,
    account: CurrentAccountDep,
) -> RewardResponse:
    """Vote on a post (1, -1), withdraw a vote (0) or remove one's own post (-100)."""
    try:
        voter, target = await publishing.reward_post(store, account.account_id, post_id, payload.amount)
    except PublishingError as exc:
        raise_for_publishing_error(exc)
    return RewardResponse(
        post_id=target.id,
        post_reward=target.reward,
        viewer_vote=vote_of(voter, target.id),
        gave_reward=voter.gave_reward,
    )
