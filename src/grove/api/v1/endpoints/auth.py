# src/grove/api/v1/endpoints/auth.py
"""Account registration and login endpoints."""

from fastapi import APIRouter, status

from grove.api.v1.dependencies import StoreDep, create_access_token, raise_for_publishing_error
from grove.core.settings import settings
from grove.schemas.user import LoginRequest, RegisterRequest, TokenResponse
from grove.services import publishing
from grove.services.publishing import PublishingError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=TokenResponse)
async def register(payload: RegisterRequest, store: StoreDep) -> TokenResponse:
    """Create an account root under the public root and start a session."""
    try:
        account = await publishing.register_account(
            store,
            payload.secret,
            payload.content,
            settings.root_post_id,
        )
    except PublishingError as exc:
        raise_for_publishing_error(exc)
    return TokenResponse(
        access_token=create_access_token(account.id, account.access_hash),
        account_id=account.id,
    )


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, store: StoreDep) -> TokenResponse:
    """Exchange an access secret for a session token."""
    try:
        account = await publishing.login(store, payload.secret)
    except PublishingError as exc:
        raise_for_publishing_error(exc)
    return TokenResponse(
        access_token=create_access_token(account.id, account.access_hash),
        account_id=account.id,
    )
