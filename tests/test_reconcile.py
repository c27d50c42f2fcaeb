from __future__ import annotations

from dataclasses import replace

from quotesync import (
    ConflictPolicy,
    LocalStore,
    Origin,
    PendingOutbox,
    PublishResult,
    ReconciliationEngine,
    Record,
    encode_records,
)
from quotesync.record import content_id


def remote(text: str, category: str, record_id: str | None = None, updated_at: int | None = None) -> Record:
    return Record(text=text, category=category, id=record_id, updated_at=updated_at, origin=Origin.REMOTE)


def local(text: str, category: str, record_id: str, updated_at: int = 1) -> Record:
    return Record(text=text, category=category, id=record_id, updated_at=updated_at)


def test_remote_wins_on_conflict() -> None:
    engine = ReconciliationEngine()
    result = engine.merge([local("a", "X", "1")], [remote("b", "X", "1")])
    assert [(r.id, r.text, r.category) for r in result.records] == [("1", "b", "X")]
    assert result.records[0].origin is Origin.REMOTE
    assert len(result.report.conflicts) == 1
    notice = result.report.conflicts[0]
    assert (notice.id, notice.previous_text, notice.new_text) == ("1", "a", "b")
    assert notice.resolution is Origin.REMOTE
    assert result.report.updates == [result.records[0]]


def test_pure_addition() -> None:
    result = ReconciliationEngine().merge([], [remote("c", "Y", "2")])
    assert [(r.id, r.text) for r in result.records] == [("2", "c")]
    assert len(result.report.additions) == 1
    assert result.report.conflicts == []


def test_unmatched_local_records_are_retained_in_place() -> None:
    mine = [local("mine", "X", "local-1"), local("also mine", "Y", "local-2", 2)]
    result = ReconciliationEngine().merge(mine, [remote("server", "Server", "1")])
    assert list(result.records[:2]) == mine
    assert result.records[2].id == "1"


def test_conflict_preserves_position() -> None:
    mine = [local("a", "X", "1"), local("b", "X", "2"), local("c", "X", "3")]
    result = ReconciliationEngine().merge(mine, [remote("B", "Z", "2", updated_at=7)])
    assert [r.text for r in result.records] == ["a", "B", "c"]
    assert result.records[1].category == "Z"
    assert result.records[1].updated_at == 7


def test_merge_is_idempotent_and_deterministic() -> None:
    engine = ReconciliationEngine()
    mine = [local("a", "X", "1"), local("kept", "K", "local-9", 4)]
    batch = [remote("b", "X", "1"), remote("new", "Server", "5"), remote("no id", "Server")]
    once = engine.merge(mine, batch)
    again = engine.merge(mine, batch)
    assert encode_records(once.records) == encode_records(again.records)

    twice = engine.merge(list(once.records), batch)
    assert twice.records == once.records
    assert twice.report.is_empty
    assert twice.report.unchanged == 3


def test_inputs_are_not_mutated() -> None:
    mine = [local("a", "X", "1")]
    batch = [remote("b", "X", "1")]
    snapshot = (list(mine), list(batch))
    ReconciliationEngine().merge(mine, batch)
    assert (mine, batch) == snapshot


def test_identical_content_is_a_noop() -> None:
    result = ReconciliationEngine().merge([local("a", "X", "1", 3)], [remote("a", "X", "1", 99)])
    assert result.report.is_empty
    assert result.records[0].updated_at == 3


def test_content_key_matching_without_ids() -> None:
    engine = ReconciliationEngine()
    mine = [local("Code is like humor.", "Programming", "local-1")]
    batch = [remote("Code is like humor.", "Programming"), remote("Fresh", "Server")]
    result = engine.merge(mine, batch)
    assert len(result.records) == 2
    assert result.report.unchanged == 1
    added = result.report.additions[0]
    assert added.id == content_id("Fresh", "Server")
    assert added.updated_at == 2


def test_untrusted_remote_ids_fall_back_to_content() -> None:
    engine = ReconciliationEngine(match_by_id=False)
    mine = [local("a", "X", "1")]
    result = engine.merge(mine, [remote("b", "X", "1")])
    assert [r.text for r in result.records] == ["a", "b"]
    assert result.records[1].id == content_id("b", "X")
    assert result.report.conflicts == []


def test_last_writer_wins_keeps_newer_local_edit() -> None:
    engine = ReconciliationEngine(policy=ConflictPolicy.LAST_WRITER_WINS)
    mine = [local("edited", "X", "1", updated_at=10)]
    result = engine.merge(mine, [remote("stale", "X", "1", updated_at=4)])
    assert result.records[0].text == "edited"
    assert result.report.conflicts[0].resolution is Origin.LOCAL
    assert result.report.changed == []

    newer = engine.merge(mine, [remote("newer", "X", "1", updated_at=12)])
    assert newer.records[0].text == "newer"


def test_overwrite_materialises_remote_batch_only() -> None:
    result = ReconciliationEngine().overwrite([remote("a", "X", "1"), remote("b", "Y"), remote("a2", "X", "1")])
    assert [(r.id, r.text) for r in result.records] == [("1", "a2"), (content_id("b", "Y"), "b")]


def test_partial_publish_failure_keeps_failed_record_pending(store: LocalStore) -> None:
    engine = ReconciliationEngine(outbox=store.outbox)
    first = store.add("one", "X")
    second = store.add("two", "X")
    third = store.add("three", "X")
    batch = engine.prepare_publish(store)
    assert batch == [first, second, third]

    cleared = engine.settle_publish(batch, PublishResult(acked=[first.id, third.id], failed={second.id: "HTTP 500"}))
    assert cleared == [first.id, third.id]
    assert store.outbox.ids() == [second.id]
    assert store.outbox.attempts[second.id] == 1


def test_edit_during_publish_stays_pending(store: LocalStore) -> None:
    engine = ReconciliationEngine(outbox=store.outbox)
    record = store.add("draft", "X")
    batch = engine.prepare_publish(store, limit=10)
    store.edit(record.id, text="final")
    late = store.add("late", "X")
    engine.settle_publish(batch, PublishResult(acked=[record.id]))
    assert store.outbox.ids() == [record.id, late.id]


def test_prepare_publish_skips_vanished_records() -> None:
    outbox = PendingOutbox()
    store = LocalStore(outbox=outbox)
    kept = store.add("kept", "X")
    outbox.mark(replace(kept, id="ghost"))
    batch = ReconciliationEngine(outbox=outbox).prepare_publish(store)
    assert batch == [kept]
    assert "ghost" not in outbox
