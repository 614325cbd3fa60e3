"""Storage backend interfaces for atlas persistence."""

from __future__ import annotations

from typing import Protocol

from constellate.atlas import AtlasStore
from constellate.identity import ClusterIdentityCache


class StorageBackend(Protocol):
    def init_schema(self) -> None: ...

    def load_atlas(self, user_id: str) -> AtlasStore: ...

    def save_atlas(self, user_id: str, store: AtlasStore) -> None: ...

    def load_identity_cache(self, user_id: str) -> ClusterIdentityCache: ...

    def save_identity_cache(self, user_id: str, cache: ClusterIdentityCache) -> None: ...

    def list_users(self) -> list[str]: ...

    def delete_user(self, user_id: str) -> bool: ...
