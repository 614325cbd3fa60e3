"""Persistence backends."""

from .base import StorageBackend
from .sqlite import ATLAS_KEY, IDENTITY_KEY, SQLiteStorage

__all__ = ["ATLAS_KEY", "IDENTITY_KEY", "SQLiteStorage", "StorageBackend"]
