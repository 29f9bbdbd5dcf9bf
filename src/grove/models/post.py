# src/grove/models/post.py
"""The Post record: the single persisted entity.

Public posts, comments and user accounts are all posts. A user account is
simply the first post created under a given access hash (its "account root").
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ChildrenRights(str, Enum):
    """Who may create children of a post."""

    NONE = "none"
    ITSELF = "itself"
    ALL = "all"


class Post(BaseModel):
    """Immutable tree node.

    Values are never mutated in place; operations build new values with
    ``model_copy`` and the store replaces records wholesale.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    # Empty means ownerless (the public root). Never changes after creation.
    access_hash: str = ""
    # Assigned once by the store on first write.
    human_readable_url: str = ""
    # Markdown; the first line is the title.
    content: str = ""
    reward: int = 0
    # A root post is its own parent.
    parent_id: str
    children_rights: ChildrenRights = ChildrenRights.NONE
    # Only meaningful on account roots: sum of outstanding -1/+1 votes, kept in [-10, 10].
    gave_reward: int = 0
    # Only meaningful on account roots: voted post id -> cast amount.
    rewarded_posts: dict[str, int] = Field(default_factory=dict)
    # Milliseconds since the epoch.
    date_created: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent_id == self.id

    @property
    def is_owned(self) -> bool:
        return bool(self.access_hash)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def reverse_date_created(self) -> int:
        """Sort key for newest-first ordering in the backend."""
        return -self.date_created

    @computed_field  # type: ignore[prop-decorator]
    @property
    def reverse_reward(self) -> int:
        """Sort key for highest-reward-first ordering in the backend."""
        return -self.reward

    def to_record(self) -> dict[str, object]:
        """Return the JSON-compatible document stored in the backend."""
        return self.model_dump(mode="json")
