"""In-memory quote collection with a single point of mutation."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import replace
from typing import Any

from .const import ALL_CATEGORIES, LOCAL_ID_PREFIX, SEED_QUOTES
from .errors import FormatError, ValidationError
from .outbox import PendingOutbox
from .record import LogicalClock, Origin, Record, require_text
from .storage import QuoteStorage

_LOGGER = logging.getLogger(__name__)


def _new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def seed_records() -> list[Record]:
    """Return the built-in collection used when nothing usable is persisted."""

    return [Record(text=item["text"], category=item["category"]) for item in SEED_QUOTES]


class LocalStore:
    """Owns the ordered quote collection and its pending outbox.

    All mutation goes through :meth:`add`, :meth:`edit`, :meth:`replace_all`
    and :meth:`upsert_many`. None of them await, so on a single event loop they
    never interleave with each other or with an in-flight merge.
    """

    def __init__(
        self,
        records: Iterable[Record | Mapping[str, Any]] = (),
        *,
        storage: QuoteStorage | None = None,
        outbox: PendingOutbox | None = None,
        clock: LogicalClock | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.storage = storage
        self.outbox = outbox if outbox is not None else PendingOutbox()
        self.clock = clock or LogicalClock()
        self._id_factory = id_factory or _new_local_id
        self._records: list[Record] = []
        self._index: dict[str, int] = {}
        self._install(self.normalise(records))

    @classmethod
    def from_storage(cls, storage: QuoteStorage, **kwargs: Any) -> LocalStore:
        store = cls(storage=storage, **kwargs)
        store.load()
        return store

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records))

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._index

    def records(self) -> list[Record]:
        return list(self._records)

    def get(self, record_id: str) -> Record | None:
        idx = self._index.get(record_id)
        return None if idx is None else self._records[idx]

    def by_category(self, category: str) -> list[Record]:
        if category == ALL_CATEGORIES:
            return list(self._records)
        return [record for record in self._records if record.category == category]

    def categories(self) -> set[str]:
        """Distinct categories plus the implicit ``"all"`` pseudo-category."""

        return {ALL_CATEGORIES, *(record.category for record in self._records)}

    def category_options(self) -> list[str]:
        options = [ALL_CATEGORIES]
        for record in self._records:
            if record.category not in options:
                options.append(record.category)
        return options

    # ------------------------------------------------------------------
    def add(self, text: str, category: str) -> Record:
        text = require_text(text, "text")
        category = require_text(category, "category")
        record = Record(
            text=text,
            category=category,
            id=self._id_factory(),
            updated_at=self.clock.tick(),
            origin=Origin.LOCAL,
        )
        self._index[record.id] = len(self._records)
        self._records.append(record)
        self.outbox.mark(record)
        _LOGGER.debug("Added quote %s in category %s", record.id, category)
        self.flush()
        return record

    def edit(self, record_id: str, *, text: str | None = None, category: str | None = None) -> Record:
        idx = self._index.get(record_id)
        if idx is None:
            raise KeyError(record_id)
        current = self._records[idx]
        new_text = current.text if text is None else require_text(text, "text")
        new_category = current.category if category is None else require_text(category, "category")
        if (new_text, new_category) == current.content_key:
            return current
        record = replace(
            current,
            text=new_text,
            category=new_category,
            updated_at=self.clock.tick(),
            origin=Origin.LOCAL,
        )
        self._records[idx] = record
        self.outbox.mark(record)
        self.flush()
        return record

    def replace_all(self, records: Iterable[Record | Mapping[str, Any]], *, mark_pending: bool = False) -> None:
        """Swap in a whole new collection or, on any defect, change nothing."""

        normalised = self.normalise(records)
        self._install(normalised)
        if mark_pending:
            self.outbox.reset(record for record in normalised if record.origin is Origin.LOCAL)
        else:
            self.outbox.reset()
        _LOGGER.info("Replaced collection with %d quotes", len(normalised))
        self.flush()

    def upsert_many(self, records: Iterable[Record]) -> list[Record]:
        """Overwrite records by id in place, appending the ones not yet present."""

        incoming = list(records)
        for record in incoming:
            if record.id is None:
                raise FormatError("cannot upsert a record without an id")
            require_text(record.text, "text")
            require_text(record.category, "category")
        for record in incoming:
            idx = self._index.get(record.id)
            if idx is None:
                self._index[record.id] = len(self._records)
                self._records.append(record)
            else:
                self._records[idx] = record
            if record.origin is Origin.REMOTE and record.id in self.outbox:
                # the remote version superseded the pending local one
                self.outbox.discard(record.id)
            self.clock.observe(record.updated_at)
        if incoming:
            self.flush()
        return incoming

    # ------------------------------------------------------------------
    def load(self) -> None:
        """Load from storage, falling back to the seed collection when unusable."""

        if self.storage is None:
            return
        records: list[Record] | None
        try:
            records = self.storage.load()
        except FormatError as err:
            _LOGGER.warning("Stored quotes are unreadable, using seed collection: %s", err)
            records = None
        if records is None:
            self._install(self.normalise(seed_records()))
        else:
            try:
                self._install(self.normalise(records))
            except (FormatError, ValidationError) as err:
                _LOGGER.warning("Stored quotes are inconsistent, using seed collection: %s", err)
                self._install(self.normalise(seed_records()))

        try:
            pending = self.storage.load_outbox()
        except FormatError as err:
            _LOGGER.warning("Stored outbox is unreadable, starting empty: %s", err)
            pending = {}
        self.outbox.reset(self._records[self._index[rid]] for rid in pending if rid in self._index)

    def flush(self) -> None:
        if self.storage is None:
            return
        self.storage.save(self._records)
        self.storage.save_outbox(self.outbox.snapshot())

    # ------------------------------------------------------------------
    def normalise(self, items: Iterable[Record | Mapping[str, Any]]) -> list[Record]:
        records: list[Record] = []
        for position, item in enumerate(items):
            if isinstance(item, Record):
                try:
                    record = replace(
                        item,
                        text=require_text(item.text, "text"),
                        category=require_text(item.category, "category"),
                    )
                except ValidationError as err:
                    raise FormatError(f"entry {position}: {err}") from err
            else:
                try:
                    record = Record.from_dict(item)
                except FormatError as err:
                    raise FormatError(f"entry {position}: {err}") from err
            records.append(record)

        stamp = max([self.clock.value, *(r.updated_at for r in records if r.updated_at is not None)])
        seen: set[str] = set()
        result: list[Record] = []
        for position, record in enumerate(records):
            if record.id is None:
                record = replace(record, id=self._id_factory())
            if record.updated_at is None:
                stamp += 1
                record = replace(record, updated_at=stamp)
            if record.id in seen:
                raise FormatError(f"entry {position}: duplicate id {record.id!r}")
            seen.add(record.id)
            result.append(record)
        return result

    def _install(self, records: list[Record]) -> None:
        self._records = records
        self._index = {record.id: idx for idx, record in enumerate(records)}
        for record in records:
            self.clock.observe(record.updated_at)


__all__ = ["LocalStore", "seed_records"]
