from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


@runtime_checkable
class ContentStore(Protocol):
    def get_blob(self, key: str) -> str | None: ...

    def set_blob(self, key: str, content: str) -> None: ...

    def get_item(self, key: str, default: Any = None) -> Any: ...

    def set_item(self, key: str, value: Any) -> None: ...

    def update_item(self, key: str, updater: Callable[[Any], Any], default: Any = None) -> Any: ...


class SqliteContentStore:
    """Key-value store with two key spaces: text blobs and JSON items."""

    def __init__(self, db_path: str):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._initialize_schema()

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def get_blob(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT content FROM blobs WHERE key = ? LIMIT 1", (key,)).fetchone()
        return None if row is None else str(row["content"])

    def set_blob(self, key: str, content: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO blobs (key, content, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET content = excluded.content, updated_at = excluded.updated_at
                """,
                (key, content, utc_now()),
            )

    def del_blob(self, key: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM blobs WHERE key = ?", (key,))

    def get_item(self, key: str, default: Any = None) -> Any:
        with self._lock:
            row = self._conn.execute("SELECT value_json FROM items WHERE key = ? LIMIT 1", (key,)).fetchone()
        if row is None:
            return default
        return json.loads(row["value_json"])

    def set_item(self, key: str, value: Any) -> None:
        with self.transaction() as conn:
            self._write_item(conn, key, value)

    def update_item(self, key: str, updater: Callable[[Any], Any], default: Any = None) -> Any:
        """Read, transform and write ``key`` inside one transaction."""
        with self.transaction() as conn:
            row = conn.execute("SELECT value_json FROM items WHERE key = ? LIMIT 1", (key,)).fetchone()
            current = default if row is None else json.loads(row["value_json"])
            updated = updater(current)
            self._write_item(conn, key, updated)
        return updated

    def remove_item(self, key: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM items WHERE key = ?", (key,))

    def _write_item(self, conn: sqlite3.Connection, key: str, value: Any) -> None:
        conn.execute(
            """
            INSERT INTO items (key, value_json, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value, ensure_ascii=True), utc_now()),
        )

    def _initialize_schema(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS items (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
