# src/grove/models/__init__.py
"""Persisted records for the Grove application."""

from .post import ChildrenRights, Post

__all__ = ["ChildrenRights", "Post"]
