"""Merge a remote quote batch into the local collection."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from .outbox import PendingOutbox
from .record import Origin, Record, content_id

if TYPE_CHECKING:
    from .gateway import PublishResult
    from .local_store import LocalStore

_LOGGER = logging.getLogger(__name__)


class ConflictPolicy(str, Enum):
    """How a record present on both sides with different content is settled."""

    REMOTE_WINS = "remote_wins"
    LAST_WRITER_WINS = "last_writer_wins"


@dataclass(frozen=True, slots=True)
class ConflictNotice:
    """Reportable event describing an automatic conflict resolution."""

    id: str
    previous_text: str
    new_text: str
    previous_category: str
    new_category: str
    resolution: Origin = Origin.REMOTE

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "previousText": self.previous_text,
            "newText": self.new_text,
            "previousCategory": self.previous_category,
            "newCategory": self.new_category,
            "resolution": self.resolution.value,
        }


@dataclass(slots=True)
class ChangeReport:
    additions: list[Record] = field(default_factory=list)
    updates: list[Record] = field(default_factory=list)
    conflicts: list[ConflictNotice] = field(default_factory=list)
    unchanged: int = 0

    @property
    def changed(self) -> list[Record]:
        """Records the local store has to upsert to reach the merged state."""

        return [*self.additions, *self.updates]

    @property
    def is_empty(self) -> bool:
        return not (self.additions or self.updates or self.conflicts)

    def summary(self) -> dict[str, int]:
        return {
            "added": len(self.additions),
            "updated": len(self.updates),
            "conflicts": len(self.conflicts),
            "unchanged": self.unchanged,
        }


@dataclass(frozen=True, slots=True)
class MergeResult:
    records: tuple[Record, ...]
    report: ChangeReport


class ReconciliationEngine:
    """Deterministic merge of a local collection with a partial remote batch.

    Remote records are matched by id when they carry one and ``match_by_id`` is
    set, otherwise by their ``(text, category)`` content key. Unmatched remote
    records are appended, matched records with different content are settled by
    ``policy`` and always reported, and local records the remote batch does not
    mention are kept untouched.
    """

    def __init__(
        self,
        *,
        policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS,
        match_by_id: bool = True,
        outbox: PendingOutbox | None = None,
    ) -> None:
        self.policy = ConflictPolicy(policy)
        self.match_by_id = match_by_id
        self.outbox = outbox if outbox is not None else PendingOutbox()

    # ------------------------------------------------------------------
    def merge(self, local: Sequence[Record], remote: Iterable[Record]) -> MergeResult:
        incoming = list(remote)
        merged = list(local)
        by_id = {record.id: idx for idx, record in enumerate(merged) if record.id is not None}
        by_content: dict[tuple[str, str], int] = {}
        for idx, record in enumerate(merged):
            by_content.setdefault(record.content_key, idx)

        stamp = self._merge_stamp(merged, incoming)
        report = ChangeReport()

        for candidate in incoming:
            idx = self._match(candidate, by_id, by_content)
            if idx is None:
                record = self._materialise(candidate, stamp, by_id)
                by_id[record.id] = len(merged)
                by_content.setdefault(record.content_key, len(merged))
                merged.append(record)
                report.additions.append(record)
                continue

            current = merged[idx]
            if current.same_content(candidate):
                report.unchanged += 1
                continue

            remote_stamp = candidate.updated_at if candidate.updated_at is not None else stamp
            winner = self._resolve(current, remote_stamp)
            report.conflicts.append(
                ConflictNotice(
                    id=current.id,
                    previous_text=current.text,
                    new_text=candidate.text,
                    previous_category=current.category,
                    new_category=candidate.category,
                    resolution=winner,
                )
            )
            if winner is Origin.LOCAL:
                continue
            updated = replace(
                current,
                text=candidate.text,
                category=candidate.category,
                updated_at=remote_stamp,
                origin=Origin.REMOTE,
            )
            merged[idx] = updated
            if by_content.get(current.content_key) == idx:
                del by_content[current.content_key]
            by_content.setdefault(updated.content_key, idx)
            report.updates.append(updated)

        for notice in report.conflicts:
            _LOGGER.info(
                "Conflict on quote %s resolved in favour of %s: %r -> %r",
                notice.id,
                notice.resolution.value,
                notice.previous_text,
                notice.new_text,
            )
        return MergeResult(records=tuple(merged), report=report)

    def overwrite(self, remote: Iterable[Record]) -> MergeResult:
        """Treat ``remote`` as the full truth; applied through ``replace_all``."""

        incoming = list(remote)
        stamp = self._merge_stamp([], incoming)
        by_id: dict[str, int] = {}
        records: list[Record] = []
        for candidate in incoming:
            record = self._materialise(candidate, stamp, by_id)
            if record.id in by_id:
                records[by_id[record.id]] = record
                continue
            by_id[record.id] = len(records)
            records.append(record)
        return MergeResult(records=tuple(records), report=ChangeReport(additions=list(records)))

    # ------------------------------------------------------------------
    def prepare_publish(self, store: LocalStore, limit: int | None = None) -> list[Record]:
        """Current versions of the pending records, oldest write first."""

        batch: list[Record] = []
        for record_id in self.outbox.ids():
            record = store.get(record_id)
            if record is None:
                self.outbox.discard(record_id)
                continue
            batch.append(record)
            if limit is not None and len(batch) >= limit:
                break
        return batch

    def settle_publish(self, published: Sequence[Record], result: PublishResult) -> list[str]:
        """Clear confirmed records; failed ones stay pending for the next cycle."""

        self.outbox.record_attempt(record.id for record in published if record.id is not None)
        acked = set(result.acked)
        cleared = self.outbox.acknowledge(record for record in published if record.id in acked)
        if result.failed:
            _LOGGER.debug("Publish left %d quotes pending: %s", len(result.failed), sorted(result.failed))
        return cleared

    # ------------------------------------------------------------------
    def _match(
        self,
        candidate: Record,
        by_id: dict[str, int],
        by_content: dict[tuple[str, str], int],
    ) -> int | None:
        if self.match_by_id and candidate.id is not None:
            return by_id.get(candidate.id)
        return by_content.get(candidate.content_key)

    def _materialise(self, candidate: Record, stamp: int, by_id: dict[str, int]) -> Record:
        record_id = candidate.id if self.match_by_id else None
        if record_id is None:
            record_id = content_id(candidate.text, candidate.category)
            base, suffix = record_id, 1
            while record_id in by_id:
                suffix += 1
                record_id = f"{base}-{suffix}"
        return replace(
            candidate,
            id=record_id,
            updated_at=candidate.updated_at if candidate.updated_at is not None else stamp,
            origin=Origin.REMOTE,
        )

    def _resolve(self, current: Record, remote_stamp: int) -> Origin:
        if self.policy is ConflictPolicy.LAST_WRITER_WINS:
            local_stamp = current.updated_at or 0
            return Origin.LOCAL if local_stamp > remote_stamp else Origin.REMOTE
        return Origin.REMOTE

    @staticmethod
    def _merge_stamp(local: Sequence[Record], remote: Sequence[Record]) -> int:
        stamps = [r.updated_at for r in (*local, *remote) if r.updated_at is not None]
        return max(stamps, default=0) + 1


__all__ = [
    "ChangeReport",
    "ConflictNotice",
    "ConflictPolicy",
    "MergeResult",
    "ReconciliationEngine",
]
