"""Application-level operations on top of the local store."""

from __future__ import annotations

import logging
import random
from pathlib import Path

from .const import ALL_CATEGORIES
from .errors import FormatError
from .local_store import LocalStore
from .record import Record, decode_records, encode_records
from .storage import QuoteStorage

_LOGGER = logging.getLogger(__name__)

IMPORT_REPLACE = "replace"
IMPORT_MERGE = "merge"


class QuoteBook:
    """Category selection, filtering, random picks and JSON import/export."""

    def __init__(self, store: LocalStore, *, rng: random.Random | None = None) -> None:
        self.store = store
        self._rng = rng or random.Random()
        self._selected = ALL_CATEGORIES
        if store.storage is not None:
            self._selected = store.storage.load_selected_category()

    @classmethod
    def open(cls, path: str | Path, **kwargs) -> QuoteBook:
        return cls(LocalStore.from_storage(QuoteStorage(path)), **kwargs)

    # ------------------------------------------------------------------
    @property
    def selected_category(self) -> str:
        """Selected category, or ``"all"`` if it no longer exists."""

        if self._selected in self.store.categories():
            return self._selected
        return ALL_CATEGORIES

    def select_category(self, category: str) -> str:
        category = category.strip() or ALL_CATEGORIES
        self._selected = category
        if self.store.storage is not None:
            self.store.storage.save_selected_category(category)
        return self.selected_category

    def filtered(self) -> list[Record]:
        return self.store.by_category(self.selected_category)

    def random_quote(self) -> Record | None:
        candidates = self.filtered()
        if not candidates:
            return None
        quote = self._rng.choice(candidates)
        if self.store.storage is not None:
            self.store.storage.save_last_viewed(quote.text)
        return quote

    def last_viewed(self) -> str | None:
        if self.store.storage is None:
            return None
        return self.store.storage.load_last_viewed()

    # ------------------------------------------------------------------
    def add(self, text: str, category: str) -> Record:
        return self.store.add(text, category)

    def export_json(self) -> str:
        return encode_records(self.store.records())

    def export_to_file(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.export_json() + "\n", encoding="utf-8")
        return target

    def import_json(self, payload: str | bytes, *, mode: str = IMPORT_REPLACE) -> int:
        """Import a JSON array of quotes; malformed payloads change nothing."""

        records = decode_records(payload)
        if mode == IMPORT_REPLACE:
            self.store.replace_all(records, mark_pending=True)
        elif mode == IMPORT_MERGE:
            staged = self.store.normalise(records)
            for record in self.store.upsert_many(staged):
                self.store.outbox.mark(record)
            self.store.flush()
        else:
            raise ValueError(f"unknown import mode: {mode}")
        _LOGGER.info("Imported %d quotes (%s)", len(records), mode)
        return len(records)

    def import_from_file(self, path: str | Path, *, mode: str = IMPORT_REPLACE) -> int:
        try:
            payload = Path(path).read_bytes()
        except OSError as err:
            raise FormatError(f"cannot read import file {path}: {err}") from err
        return self.import_json(payload, mode=mode)


__all__ = ["IMPORT_MERGE", "IMPORT_REPLACE", "QuoteBook"]
