from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from sqlite3 import Connection, Row
from typing import Any
from uuid import uuid4

from tweetmind.errors import CategoryMismatchError, ItemNotFoundError, StoreError
from tweetmind.models.generation_contracts import (
    CATEGORIES,
    Category,
    InspirationData,
    InspirationResult,
    LearningResult,
    LearningStep,
    NewsData,
    NewsResult,
    build_category_result,
    result_payload,
)
from tweetmind.repositories.common import utc_now_millis
from tweetmind.repositories.database import Database

LIBRARY_REVISION_KEY = "revision"

CategoryResultValue = LearningResult | NewsResult | InspirationResult


@dataclass(frozen=True)
class ItemRecord:
    item_id: str
    original_text: str
    tweet_url: str | None
    category: Category
    created_at: int
    is_loading: bool
    error: str | None
    result: CategoryResultValue | None

    @property
    def learning_data(self) -> list[LearningStep] | None:
        if isinstance(self.result, LearningResult):
            return list(self.result.data)
        return None

    @property
    def news_data(self) -> NewsData | None:
        if isinstance(self.result, NewsResult):
            return self.result.data
        return None

    @property
    def inspiration_data(self) -> InspirationData | None:
        if isinstance(self.result, InspirationResult):
            return self.result.data
        return None


@dataclass(frozen=True)
class FinalizeSuccess:
    result: CategoryResultValue


@dataclass(frozen=True)
class FinalizeFailure:
    error: str


FinalizePatch = FinalizeSuccess | FinalizeFailure


class ItemRepository:
    """Owns persisted items; every write also advances the library revision."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_draft(
        self,
        *,
        original_text: str,
        tweet_url: str | None,
        category: Category,
    ) -> str:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}")
        item_id = f"item_{uuid4().hex}"
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO items (
                    id,
                    original_text,
                    tweet_url,
                    category,
                    created_at,
                    is_loading,
                    error,
                    data_json
                )
                VALUES (?, ?, ?, ?, ?, 1, NULL, NULL)
                """,
                (
                    item_id,
                    original_text,
                    tweet_url,
                    category,
                    utc_now_millis(),
                ),
            )
            _bump_revision(conn)
        return item_id

    def finalize(self, item_id: str, patch: FinalizePatch) -> ItemRecord:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT category FROM items WHERE id = ? LIMIT 1",
                (item_id,),
            ).fetchone()
            if row is None:
                raise ItemNotFoundError(item_id)

            if isinstance(patch, FinalizeSuccess):
                item_category = str(row["category"])
                if patch.result.category != item_category:
                    raise CategoryMismatchError(
                        item_id=item_id,
                        item_category=item_category,
                        patch_category=patch.result.category,
                    )
                conn.execute(
                    """
                    UPDATE items
                    SET is_loading = 0, error = NULL, data_json = ?
                    WHERE id = ?
                    """,
                    (_dump_json(result_payload(patch.result)), item_id),
                )
            else:
                conn.execute(
                    """
                    UPDATE items
                    SET is_loading = 0, error = ?, data_json = NULL
                    WHERE id = ?
                    """,
                    (patch.error, item_id),
                )
            _bump_revision(conn)
            updated = _get_item_with_conn(conn, item_id)
        if updated is None:
            raise StoreError(f"Item was not found after finalize: {item_id}")
        return updated

    def get_item(self, item_id: str) -> ItemRecord | None:
        with self._db.connection() as conn:
            return _get_item_with_conn(conn, item_id)

    def list_by_category(self, category: Category) -> list[ItemRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM items
                WHERE category = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (category,),
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def counts(self) -> dict[Category, int]:
        with self._db.connection() as conn:
            rows = conn.execute(
                "SELECT category, COUNT(*) AS item_count FROM items GROUP BY category"
            ).fetchall()
        totals: dict[Category, int] = {category: 0 for category in CATEGORIES}
        for row in rows:
            totals[_to_category(row["category"])] = int(row["item_count"])
        return totals

    def delete(self, item_id: str) -> bool:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            if cursor.rowcount <= 0:
                return False
            _bump_revision(conn)
        return True

    def clear_matching_errors(self, matches: Callable[[str], bool]) -> list[str]:
        """Clear `error` on every item whose message satisfies `matches`.

        Scan and update share one transaction. Loading state and data fields are
        left untouched. Returns the ids that were cleared.
        """
        with self._db.connection() as conn:
            rows = conn.execute(
                "SELECT id, error FROM items WHERE error IS NOT NULL"
            ).fetchall()
            cleared = [str(row["id"]) for row in rows if matches(str(row["error"]))]
            if not cleared:
                return []
            conn.executemany(
                "UPDATE items SET error = NULL WHERE id = ?",
                [(item_id,) for item_id in cleared],
            )
            _bump_revision(conn)
        return cleared

    def revision(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT value FROM library_state WHERE state_key = ? LIMIT 1",
                (LIBRARY_REVISION_KEY,),
            ).fetchone()
        if row is None:
            return 0
        return int(row["value"])


def _bump_revision(conn: Connection) -> None:
    conn.execute(
        """
        INSERT INTO library_state (state_key, value)
        VALUES (?, 1)
        ON CONFLICT(state_key) DO UPDATE SET value = value + 1
        """,
        (LIBRARY_REVISION_KEY,),
    )


def _get_item_with_conn(conn: Connection, item_id: str) -> ItemRecord | None:
    row = conn.execute(
        "SELECT * FROM items WHERE id = ? LIMIT 1",
        (item_id,),
    ).fetchone()
    if row is None:
        return None
    return _row_to_item(row)


def _row_to_item(row: Row) -> ItemRecord:
    category = _to_category(row["category"])
    data_json = row["data_json"]
    result: CategoryResultValue | None = None
    if isinstance(data_json, str) and data_json:
        result = build_category_result(category, json.loads(data_json))
    return ItemRecord(
        item_id=str(row["id"]),
        original_text=str(row["original_text"]),
        tweet_url=_to_optional_text(row["tweet_url"]),
        category=category,
        created_at=int(row["created_at"]),
        is_loading=bool(row["is_loading"]),
        error=_to_optional_text(row["error"]),
        result=result,
    )


def _to_category(value: object) -> Category:
    for category in CATEGORIES:
        if category == value:
            return category
    raise StoreError(f"Stored item has unknown category: {value!r}")


def _to_optional_text(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def _dump_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))
