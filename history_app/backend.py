from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
import sqlite3
import threading
from typing import Final, Protocol

from history_app.records import TranslationRecord, record_to_row

MEMORY_DB: Final[str] = ":memory:"

_COLUMNS: Final[tuple[str, ...]] = (
    "id",
    "original_text",
    "translated_text",
    "source_language_code",
    "target_language_code",
    "source_language_name",
    "target_language_name",
    "timestamp",
    "is_favorite",
    "provider",
    "quality_score",
    "usage_count",
    "last_access_time",
    "tags",
    "notes",
)

_SCHEMA: Final[tuple[str, ...]] = (
    """
    CREATE TABLE IF NOT EXISTS translation_history (
        id TEXT PRIMARY KEY,
        original_text TEXT NOT NULL,
        translated_text TEXT NOT NULL,
        source_language_code TEXT NOT NULL,
        target_language_code TEXT NOT NULL,
        source_language_name TEXT NOT NULL,
        target_language_name TEXT NOT NULL,
        timestamp INTEGER NOT NULL,
        is_favorite INTEGER NOT NULL DEFAULT 0,
        provider TEXT NOT NULL,
        quality_score REAL,
        usage_count INTEGER NOT NULL DEFAULT 0,
        last_access_time INTEGER,
        tags TEXT NOT NULL DEFAULT '[]',
        notes TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_history_timestamp ON translation_history(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_history_favorite ON translation_history(is_favorite)",
    """
    CREATE TABLE IF NOT EXISTS quarantined_history (
        id TEXT PRIMARY KEY,
        reason TEXT NOT NULL,
        payload TEXT NOT NULL
    )
    """,
)


class HistoryBackend(Protocol):
    def initialize(self) -> None: ...

    def load_rows(self) -> list[sqlite3.Row]: ...

    def upsert(self, record: TranslationRecord) -> None: ...

    def delete_ids(self, ids: Sequence[str]) -> int: ...

    def quarantine(self, record_id: str, reason: str, payload: str) -> None: ...

    def close(self) -> None: ...


@dataclass(slots=True)
class SqliteHistoryBackend:
    db_path: Path | str = MEMORY_DB
    _conn: sqlite3.Connection | None = None
    _lock: threading.Lock | None = None

    def initialize(self) -> None:
        conn = self._connect()
        with self._guard(), conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    def load_rows(self) -> list[sqlite3.Row]:
        conn = self._connect()
        with self._guard():
            cursor = conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM translation_history "
                "ORDER BY timestamp DESC"
            )
            return list(cursor.fetchall())

    def upsert(self, record: TranslationRecord) -> None:
        conn = self._connect()
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._guard(), conn:
            conn.execute(
                f"INSERT OR REPLACE INTO translation_history ({', '.join(_COLUMNS)}) "
                f"VALUES ({placeholders})",
                record_to_row(record),
            )

    def delete_ids(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        conn = self._connect()
        deleted = 0
        # One transaction for the whole batch; any failure rolls back every row.
        with self._guard(), conn:
            for record_id in ids:
                cursor = conn.execute(
                    "DELETE FROM translation_history WHERE id = ?", (record_id,)
                )
                deleted += cursor.rowcount
        return deleted

    def quarantine(self, record_id: str, reason: str, payload: str) -> None:
        conn = self._connect()
        with self._guard(), conn:
            conn.execute(
                "INSERT OR REPLACE INTO quarantined_history (id, reason, payload) "
                "VALUES (?, ?, ?)",
                (record_id, reason, payload),
            )
            conn.execute("DELETE FROM translation_history WHERE id = ?", (record_id,))

    def quarantined_ids(self) -> list[str]:
        conn = self._connect()
        with self._guard():
            rows = conn.execute("SELECT id FROM quarantined_history ORDER BY id").fetchall()
        return [str(row["id"]) for row in rows]

    def close(self) -> None:
        conn = self._conn
        if conn is None:
            return
        with self._guard():
            conn.close()
            self._conn = None

    def _connect(self) -> sqlite3.Connection:
        conn = self._conn
        if conn is not None:
            return conn
        if self._lock is None:
            self._lock = threading.Lock()
        path = str(self.db_path)
        if path != MEMORY_DB:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        self._conn = conn
        return conn

    def _guard(self) -> threading.Lock:
        if self._lock is None:
            self._lock = threading.Lock()
        return self._lock
