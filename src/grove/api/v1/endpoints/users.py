# src/grove/api/v1/endpoints/users.py
"""Endpoints about the signed-in account."""

from fastapi import APIRouter, HTTPException, Query, status

from grove.api.v1.dependencies import CurrentAccountDep, StoreDep
from grove.schemas.user import AccountResponse
from grove.services.post_service import rewarded_posts, to_view

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=AccountResponse)
async def read_me(
    account: CurrentAccountDep,
    store: StoreDep,
    start: int = Query(0, ge=0),
    count: int = Query(20, ge=0, le=100),
) -> AccountResponse:
    """Return the account root, its votes and its most recent posts."""
    root = (await store.read([account.account_id]))[0]
    if root is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    created = await store.created_by(account.access_hash, start, count)
    return AccountResponse(
        account=to_view(root, root),
        gave_reward=root.gave_reward,
        votes=rewarded_posts(root),
        created_post_ids=created,
    )
