from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from .record import Record


class PendingOutbox:
    """Ids of local records awaiting a confirmed publish.

    Each entry remembers the ``updated_at`` marker of the pending version so an
    acknowledgement only clears the exact version that was published.
    """

    def __init__(self, entries: Mapping[str, int | None] | None = None) -> None:
        self._pending: dict[str, int | None] = dict(entries or {})
        self.attempts: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._pending

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._pending))

    def mark(self, record: Record) -> None:
        if record.id is None:
            raise ValueError("cannot queue a record without an id")
        # re-marking moves the id to the back so batches stay in write order
        self._pending.pop(record.id, None)
        self._pending[record.id] = record.updated_at

    def marker(self, record_id: str) -> int | None:
        return self._pending.get(record_id)

    def ids(self, limit: int | None = None) -> list[str]:
        ids = list(self._pending)
        return ids if limit is None else ids[:limit]

    def record_attempt(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            if record_id in self._pending:
                self.attempts[record_id] = self.attempts.get(record_id, 0) + 1

    def acknowledge(self, published: Iterable[Record]) -> list[str]:
        """Clear entries whose pending marker still matches the published version."""

        cleared: list[str] = []
        for record in published:
            if record.id is None or record.id not in self._pending:
                continue
            if self._pending[record.id] != record.updated_at:
                continue
            del self._pending[record.id]
            self.attempts.pop(record.id, None)
            cleared.append(record.id)
        return cleared

    def discard(self, record_id: str) -> None:
        self._pending.pop(record_id, None)
        self.attempts.pop(record_id, None)

    def reset(self, records: Iterable[Record] = ()) -> None:
        self._pending.clear()
        self.attempts.clear()
        for record in records:
            self.mark(record)

    def snapshot(self) -> dict[str, int | None]:
        return dict(self._pending)


__all__ = ["PendingOutbox"]
