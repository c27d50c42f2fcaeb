"""SQLite-backed key/value persistence for the quote collection."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from .const import (
    ALL_CATEGORIES,
    STORAGE_KEY_LAST_VIEWED,
    STORAGE_KEY_OUTBOX,
    STORAGE_KEY_QUOTES,
    STORAGE_KEY_SELECTED_CATEGORY,
)
from .errors import FormatError
from .record import Record, decode_records, encode_records


class QuoteStorage:
    """Flat key/value store holding the collection and small UI state."""

    def __init__(self, path: str | Path) -> None:
        self._is_memory = str(path) == ":memory:"
        self.path = Path(path)
        if not self._is_memory:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._shared_conn: sqlite3.Connection | None = None
        self._ensure_schema()

    # ------------------------------------------------------------------
    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._is_memory:
            if self._shared_conn is None:
                self._shared_conn = sqlite3.connect(":memory:")
                self._shared_conn.row_factory = sqlite3.Row
            yield self._shared_conn
        else:
            conn = sqlite3.connect(self.path)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
            finally:
                conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_items (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    # ------------------------------------------------------------------
    def get_item(self, key: str) -> str | None:
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM kv_items WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        return row["value"]

    def set_item(self, key: str, value: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_items(key, value, updated_at) VALUES(?, ?, ?)",
                (key, value, datetime.now(tz=UTC).isoformat()),
            )
            conn.commit()

    def remove_item(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM kv_items WHERE key = ?", (key,))
            conn.commit()

    # ------------------------------------------------------------------
    def load(self) -> list[Record] | None:
        """Return the persisted collection, ``None`` when nothing was saved.

        Raises :class:`FormatError` when the stored payload is corrupt.
        """

        raw = self.get_item(STORAGE_KEY_QUOTES)
        if raw is None:
            return None
        records = decode_records(raw)
        if any(record.id is None for record in records):
            raise FormatError("persisted records must carry ids")
        return records

    def save(self, records: Iterable[Record]) -> None:
        self.set_item(STORAGE_KEY_QUOTES, encode_records(records, indent=None))

    # ------------------------------------------------------------------
    def load_outbox(self) -> dict[str, int | None]:
        raw = self.get_item(STORAGE_KEY_OUTBOX)
        if raw is None:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as err:
            raise FormatError(f"persisted outbox is not valid JSON: {err}") from err
        if not isinstance(data, Mapping):
            raise FormatError("persisted outbox must be an object")
        entries: dict[str, int | None] = {}
        for key, marker in data.items():
            if marker is not None and (isinstance(marker, bool) or not isinstance(marker, int)):
                raise FormatError(f"invalid outbox marker for {key!r}")
            entries[str(key)] = marker
        return entries

    def save_outbox(self, entries: Mapping[str, int | None]) -> None:
        self.set_item(STORAGE_KEY_OUTBOX, json.dumps(dict(entries), separators=(",", ":")))

    def load_selected_category(self) -> str:
        return self.get_item(STORAGE_KEY_SELECTED_CATEGORY) or ALL_CATEGORIES

    def save_selected_category(self, category: str) -> None:
        self.set_item(STORAGE_KEY_SELECTED_CATEGORY, category)

    def load_last_viewed(self) -> str | None:
        return self.get_item(STORAGE_KEY_LAST_VIEWED)

    def save_last_viewed(self, text: str) -> None:
        self.set_item(STORAGE_KEY_LAST_VIEWED, text)

    def close(self) -> None:
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None


__all__ = ["QuoteStorage"]
