# src/grove/schemas/post.py
"""Post-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from grove.models.post import ChildrenRights

MAX_CONTENT_LENGTH = 50_000


class PostView(BaseModel):
    """Read-only projection of a post for one viewer."""

    id: str
    title: str
    content: str
    reward: int
    viewer_vote: int = Field(0, description="The viewer's outstanding vote on this post")
    parent_id: str
    children_rights: ChildrenRights
    owner_hash: str
    url: str


class PostPage(BaseModel):
    """A post together with one page of its children."""

    post: PostView
    editable: bool = False
    children: list[PostView]
    children_count: int
    start: int
    count: int
    order: Literal["rank", "new"]


class ChildCreate(BaseModel):
    """Schema for creating a child post."""

    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH, description="Markdown content")
    children_rights: ChildrenRights = Field(
        ChildrenRights.ALL,
        description="Who may reply: none, itself (the author only) or all",
    )


class PostEdit(BaseModel):
    """Schema for editing a post; ownership is proven with the access secret."""

    secret: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    children_rights: ChildrenRights


class RewardCreate(BaseModel):
    """Schema for voting on a post."""

    amount: Literal[-100, -1, 0, 1] = Field(
        ...,
        description="1 or -1 to vote, 0 to withdraw, -100 to remove one's own post",
    )


class RewardResponse(BaseModel):
    """Outcome of an accepted vote."""

    post_id: str
    post_reward: int
    viewer_vote: int
    gave_reward: int
