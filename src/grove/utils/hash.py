# src/grove/utils/hash.py
"""Hashing helpers for access tokens."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable

# Fixed salts baked into the service; changing them orphans every existing account.
_PRE_SALT = b"saltghdcexg"
_POST_SALT = b"nhlfjeryhbbugvtj6vtt6i67vtiv998"


def sha256_hexdigest(parts: Iterable[bytes]) -> str:
    """Return the SHA-256 hex digest of the concatenation of ``parts``."""
    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(part)
    return hasher.hexdigest()


def access_token_hash(secret: str) -> str:
    """Hash an access token (username and password concatenated).

    The digest is salted and one-way, so the secret itself is never stored and
    the hash can double as the owner identifier of every post created with it.
    Any string is accepted, including the empty one.
    """
    return sha256_hexdigest((_PRE_SALT, secret.encode("utf-8"), _POST_SALT))


def hashes_match(secret: str, access_hash: str) -> bool:
    """Return True if ``secret`` hashes to ``access_hash`` (constant-time compare)."""
    return hmac.compare_digest(access_token_hash(secret), access_hash)
