"""Pure operations on posts.

Nothing here talks to the backend or raises for a domain outcome: every
function takes post values and returns new post values, with ``None`` standing
for "rejected, nothing changes".
"""
from __future__ import annotations

import time
import uuid

from grove.models.post import ChildrenRights, Post
from grove.schemas.post import MAX_CONTENT_LENGTH, PostView
from grove.utils.hash import hashes_match

# An owner's vote that removes their own post from view.
SELF_REMOVAL = -100
VALID_REWARD_AMOUNTS = frozenset({SELF_REMOVAL, -1, 0, 1})
REWARD_BALANCE_LIMIT = 10


def new_post_id() -> str:
    """Return an identifier that practically never collides with another."""
    return str(uuid.uuid4())


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def content_fits(content: str) -> bool:
    """Return True if ``content`` is within the storable length."""
    return len(content) <= MAX_CONTENT_LENGTH


def new_public(content: str, post_id: str | None = None) -> Post:
    """Create an ownerless root post open to children from anyone.

    The tree has to be rooted in something; nobody can edit this post.
    """
    post_id = post_id or new_post_id()
    return Post(
        id=post_id,
        access_hash="",
        content=content,
        parent_id=post_id,
        children_rights=ChildrenRights.ALL,
        date_created=_now_ms(),
    )


def can_create_child(parent: Post, access_hash: str) -> bool:
    """Return True if the holder of ``access_hash`` may add children to ``parent``."""
    if parent.children_rights is ChildrenRights.ALL:
        return True
    if parent.children_rights is ChildrenRights.ITSELF:
        return access_hash == parent.access_hash
    return False


def new(
    parent: Post,
    access_hash: str,
    content: str,
    children_rights: ChildrenRights,
) -> tuple[Post, Post | None]:
    """Create a child of ``parent`` owned by ``access_hash``.

    Returns:
        ``(parent, child)``; ``child`` is ``None`` when the parent does not allow
        this creator or the content is too long. The parent is returned unchanged.
    """
    if not content_fits(content) or not can_create_child(parent, access_hash):
        return parent, None
    child = Post(
        id=new_post_id(),
        access_hash=access_hash,
        content=content,
        parent_id=parent.id,
        children_rights=children_rights,
        date_created=_now_ms(),
    )
    return parent, child


def edit(
    post: Post,
    secret: str,
    content: str,
    children_rights: ChildrenRights,
) -> Post | None:
    """Change a post's content and children rights if ``secret`` owns it.

    Ownerless posts can never be edited this way. Identity, ownership, parent
    and reward are carried over untouched.
    """
    if not post.is_owned or not hashes_match(secret, post.access_hash):
        return None
    if not content_fits(content):
        return None
    return post.model_copy(update={"content": content, "children_rights": children_rights})


def _balance_weight(amount: int) -> int:
    # Self-removal never counts toward the voting balance.
    return 0 if amount == SELF_REMOVAL else amount


def can_remove(target: Post, voter: Post) -> bool:
    """Return True if ``voter`` owns ``target`` and may cast a self-removal on it."""
    return target.is_owned and target.access_hash == voter.access_hash


def reward(target: Post, voter: Post, amount: int) -> tuple[Post, Post | None]:
    """Cast ``voter``'s vote of ``amount`` on ``target``.

    ``voter`` must be the voter's account root. A voter holds at most one vote
    per post: a new amount replaces the previous one, so the post's reward moves
    by the difference and 0 withdraws the vote. The voter's balance of -1/+1
    votes must stay within [-10, 10]. ``-100`` is reserved for owners on their
    own posts and does not count toward the balance; it is still rejected when
    releasing the vote it replaces would leave the balance out of bounds.

    Returns:
        ``(voter, target)`` with the updated values, or ``(voter, None)``
        unchanged on rejection. When the account root votes on itself both
        elements are the same updated value.
    """
    if amount not in VALID_REWARD_AMOUNTS:
        return voter, None
    same_post = target.id == voter.id
    if same_post:
        target = voter
    if amount == SELF_REMOVAL and not can_remove(target, voter):
        return voter, None

    previous = voter.rewarded_posts.get(target.id, 0)
    balance = voter.gave_reward + _balance_weight(amount) - _balance_weight(previous)
    # A self-removal is exempt only while it leaves the balance where it was.
    if (amount != SELF_REMOVAL or balance != voter.gave_reward) and not (
        -REWARD_BALANCE_LIMIT <= balance <= REWARD_BALANCE_LIMIT
    ):
        return voter, None

    votes = dict(voter.rewarded_posts)
    if amount:
        votes[target.id] = amount
    else:
        votes.pop(target.id, None)
    updated_voter = voter.model_copy(update={"gave_reward": balance, "rewarded_posts": votes})

    new_reward = target.reward + amount - previous
    if same_post:
        merged = updated_voter.model_copy(update={"reward": new_reward})
        return merged, merged
    return updated_voter, target.model_copy(update={"reward": new_reward})


def vote_of(viewer: Post | None, post_id: str) -> int:
    """Return the viewer's outstanding vote on ``post_id`` (0 if none)."""
    if viewer is None:
        return 0
    return viewer.rewarded_posts.get(post_id, 0)


def rewarded_posts(account: Post) -> list[tuple[str, int]]:
    """Return ``(post_id, amount)`` pairs for an account's outstanding votes."""
    return sorted(account.rewarded_posts.items())


def title(post: Post) -> str:
    """Return the first line of a post's content."""
    return post.content.split("\n", 1)[0].strip()


def to_view(post: Post, viewer: Post | None = None) -> PostView:
    """Project a post for rendering, with ``viewer``'s vote if signed in."""
    return PostView(
        id=post.id,
        title=title(post),
        content=post.content,
        reward=post.reward,
        viewer_vote=vote_of(viewer, post.id),
        parent_id=post.parent_id,
        children_rights=post.children_rights,
        owner_hash=post.access_hash,
        url=post.human_readable_url,
    )
