# src/grove/services/__init__.py
"""Business logic services for the Grove application."""

from .backend import BackendError, BackendUnavailableError, KeyValueBackend, MemoryBackend

__all__ = [
    "BackendError",
    "BackendUnavailableError",
    "KeyValueBackend",
    "MemoryBackend",
]
