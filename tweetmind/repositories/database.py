from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from tweetmind.errors import StoreError

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    original_text TEXT NOT NULL,
    tweet_url TEXT NULL,
    category TEXT NOT NULL CHECK (category IN ('learning', 'news', 'inspiration')),
    created_at INTEGER NOT NULL,
    is_loading INTEGER NOT NULL,
    error TEXT NULL,
    data_json TEXT NULL
);

CREATE INDEX IF NOT EXISTS idx_items_category_created
ON items(category, created_at DESC);

CREATE TABLE IF NOT EXISTS library_state (
    state_key TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
"""


class Database:
    def __init__(self, path: Path, *, busy_timeout_seconds: float = 5.0) -> None:
        self._path = path
        self._busy_timeout_seconds = busy_timeout_seconds

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._path, timeout=self._busy_timeout_seconds)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open library database: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Library database error: {exc}") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA_SQL)
