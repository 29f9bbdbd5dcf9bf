# src/grove/schemas/user.py
"""Account-related Pydantic schemas."""

from pydantic import BaseModel, Field

from grove.schemas.post import MAX_CONTENT_LENGTH, PostView


class RegisterRequest(BaseModel):
    """Create an account: the first post under a new access secret."""

    secret: str = Field(..., min_length=1, description="Username and password, concatenated")
    content: str = Field(
        ...,
        min_length=1,
        max_length=MAX_CONTENT_LENGTH,
        description="Profile text; the first line is the display name",
    )


class LoginRequest(BaseModel):
    """Exchange an access secret for a session token."""

    secret: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Session token returned after login or registration."""

    access_token: str
    token_type: str = "bearer"
    account_id: str


class AccountResponse(BaseModel):
    """The signed-in account: its root post, vote balance and recent posts."""

    account: PostView
    gave_reward: int
    votes: list[tuple[str, int]] = Field(default_factory=list, description="Outstanding (post id, amount) votes")
    created_post_ids: list[str]
