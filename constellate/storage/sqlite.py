"""SQLite storage backend holding one JSON document per user and collection."""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from constellate.atlas import AtlasStore
from constellate.identity import ClusterIdentityCache

logger = logging.getLogger(__name__)

ATLAS_KEY = "global_atlas_data"
IDENTITY_KEY = "constellation_registry"


class SQLiteStorage:
    """Key-value persistence; the engine only relies on the JSON document shape."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS documents (
                  user_id TEXT NOT NULL,
                  doc_key TEXT NOT NULL,
                  payload_json TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  PRIMARY KEY (user_id, doc_key)
                );

                CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);
                """
            )

    def _read(self, user_id: str, doc_key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload_json FROM documents WHERE user_id = ? AND doc_key = ?",
                (user_id, doc_key),
            ).fetchone()
        return None if row is None else row["payload_json"]

    def _write(self, user_id: str, doc_key: str, payload_json: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO documents (user_id, doc_key, payload_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, doc_key) DO UPDATE SET
                  payload_json = excluded.payload_json,
                  updated_at = excluded.updated_at
                """,
                (user_id, doc_key, payload_json, datetime.now(UTC).isoformat()),
            )

    def load_atlas(self, user_id: str) -> AtlasStore:
        store = AtlasStore.from_json(self._read(user_id, ATLAS_KEY))
        logger.debug("Loaded atlas for %s: stars=%s clusters=%s", user_id, len(store.stars), len(store.clusters))
        return store

    def save_atlas(self, user_id: str, store: AtlasStore) -> None:
        self._write(user_id, ATLAS_KEY, store.to_json())

    def load_identity_cache(self, user_id: str) -> ClusterIdentityCache:
        return ClusterIdentityCache.from_json(self._read(user_id, IDENTITY_KEY))

    def save_identity_cache(self, user_id: str, cache: ClusterIdentityCache) -> None:
        self._write(user_id, IDENTITY_KEY, cache.to_json())

    def write_raw(self, user_id: str, doc_key: str, payload_json: str) -> None:
        """Store an arbitrary document; used for imports of externally produced payloads."""
        self._write(user_id, doc_key, payload_json)

    def list_users(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT DISTINCT user_id FROM documents ORDER BY user_id").fetchall()
        return [row["user_id"] for row in rows]

    def delete_user(self, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0
