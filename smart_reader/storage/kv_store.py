"""
Key-Value Store - Durable string storage behind the SessionStore

The persistence collaborator has no schema of its own: string keys map to
string values (JSON blobs written by SessionStore).

Storage layout:
    data/smart_reader.db   - SQLite table kv(key TEXT PRIMARY KEY, value TEXT)

Design decisions:
    - Synchronous operations (small rows, local file)
    - Parameterized queries only (SQL injection prevention)
    - WAL mode for SQLite (concurrent read safety)
    - Context managers for all DB connections (prevent resource leaks)
    - Errors propagate as sqlite3.Error; SessionStore decides what is fatal
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from ..core.config import settings
from ..observability.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """Persistence collaborator contract."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ──────────────────────────────────────────────────────────────
# SQL schema (parameterized, no string concatenation ever)
# ──────────────────────────────────────────────────────────────

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

_UPSERT_SQL = """
INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at;
"""

_SELECT_SQL = "SELECT value FROM kv WHERE key = ?;"
_DELETE_SQL = "DELETE FROM kv WHERE key = ?;"


class SqliteKeyValueStore:
    """
    SQLite-backed key-value store.

    Usage:
        store = SqliteKeyValueStore()
        store.set("smart_reader.settings", '{"font_size_percent": 120}')
        raw = store.get("smart_reader.settings")
    """

    def __init__(self, db_path: Optional[str | Path] = None) -> None:
        """
        Open (and create if needed) the database.

        Args:
            db_path: Database file. Defaults to settings.session_db_absolute.
        """
        self._db_path: Path = (
            Path(db_path).resolve() if db_path else settings.session_db_absolute
        )
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

        logger.info("kv_store.initialized", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        return self._db_path

    def get(self, key: str) -> Optional[str]:
        with sqlite3.connect(str(self._db_path)) as conn:
            row = conn.execute(_SELECT_SQL, (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with sqlite3.connect(str(self._db_path)) as conn:
            conn.execute(_UPSERT_SQL, (key, value, now))
            conn.commit()

    def delete(self, key: str) -> None:
        with sqlite3.connect(str(self._db_path)) as conn:
            conn.execute(_DELETE_SQL, (key,))
            conn.commit()

    def _init_database(self) -> None:
        with sqlite3.connect(str(self._db_path)) as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(_CREATE_TABLE_SQL)
            conn.commit()


class InMemoryKeyValueStore:
    """Process-local store for ephemeral sessions and tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
