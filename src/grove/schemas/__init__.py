"""Pydantic schemas for the Grove API."""

from .post import (
    MAX_CONTENT_LENGTH,
    ChildCreate,
    PostEdit,
    PostPage,
    PostView,
    RewardCreate,
    RewardResponse,
)
from .user import AccountResponse, LoginRequest, RegisterRequest, TokenResponse

__all__ = [
    "MAX_CONTENT_LENGTH",
    "ChildCreate",
    "PostEdit",
    "PostPage",
    "PostView",
    "RewardCreate",
    "RewardResponse",
    "AccountResponse",
    "LoginRequest",
    "RegisterRequest",
    "TokenResponse",
]
