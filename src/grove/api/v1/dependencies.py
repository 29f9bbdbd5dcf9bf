"""Shared API dependencies for authentication and error mapping."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from grove.core.settings import settings
from grove.repositories.post_store import PostStore, get_store
from grove.services.publishing import (
    InvalidInput,
    NotFound,
    NotPermitted,
    PublishingError,
    QuotaExceeded,
    StorageUnavailable,
)

# HTTP Bearer scheme for session tokens
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionAccount:
    """The signed-in account, as carried by its session token."""

    account_id: str
    access_hash: str


def get_store_dep() -> PostStore:
    """Return the shared post store."""
    return get_store()


# Type alias for store dependency
StoreDep = Annotated[PostStore, Depends(get_store_dep)]


def create_access_token(account_id: str, access_hash: str) -> str:
    """Create a session token for an account root."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode: dict[str, object] = {"sub": account_id, "hash": access_hash, "exp": expire}
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def _decode_session(token: str) -> SessionAccount:
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err
    subject = payload.get("sub")
    access_hash = payload.get("hash")
    if not isinstance(subject, str) or not isinstance(access_hash, str) or not access_hash:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return SessionAccount(account_id=subject, access_hash=access_hash)


def get_current_account(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> SessionAccount:
    """Return the account named by the bearer session token.

    Raises:
        HTTPException: If the token is missing, expired or malformed
    """
    return _decode_session(credentials.credentials)


def get_optional_account(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)],
) -> SessionAccount | None:
    """Return the signed-in account, or None for anonymous readers."""
    if credentials is None:
        return None
    return _decode_session(credentials.credentials)


# Type aliases for account dependencies
CurrentAccountDep = Annotated[SessionAccount, Depends(get_current_account)]
OptionalAccountDep = Annotated[SessionAccount | None, Depends(get_optional_account)]


def raise_for_publishing_error(exc: PublishingError) -> NoReturn:
    """Translate a rejected request into the matching HTTP error."""
    if isinstance(exc, InvalidInput):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, NotPermitted):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, NotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, QuotaExceeded):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, StorageUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Temporarily unavailable; some changes may not have been saved",
        ) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
