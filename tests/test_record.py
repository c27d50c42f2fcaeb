from __future__ import annotations

import json

import pytest

from quotesync import FormatError, Origin, Record, decode_records, encode_records
from quotesync.record import LogicalClock, content_id, require_text
from quotesync.errors import ValidationError


def test_from_dict_trims_and_normalises_ids() -> None:
    record = Record.from_dict({"id": 7, "text": "  Stay hungry. ", "category": " Motivation", "updatedAt": 3})
    assert record == Record(text="Stay hungry.", category="Motivation", id="7", updated_at=3)
    assert record.origin is Origin.LOCAL


@pytest.mark.parametrize(
    "payload",
    [
        {"text": "", "category": "X"},
        {"text": "a", "category": "   "},
        {"category": "X"},
        {"text": 5, "category": "X"},
        {"text": "a", "category": "X", "id": True},
        {"text": "a", "category": "X", "updatedAt": -1},
        {"text": "a", "category": "X", "updatedAt": "later"},
    ],
)
def test_from_dict_rejects_malformed(payload) -> None:
    with pytest.raises(FormatError):
        Record.from_dict(payload)


def test_require_text_raises_validation_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        require_text("   ", "category")
    assert excinfo.value.field == "category"


def test_decode_rejects_non_array() -> None:
    with pytest.raises(FormatError, match="JSON array"):
        decode_records('{"text": "a", "category": "b"}')


def test_decode_rejects_invalid_json_and_duplicates() -> None:
    with pytest.raises(FormatError, match="not valid JSON"):
        decode_records("[{")
    duplicate = json.dumps([{"id": "1", "text": "a", "category": "X"}, {"id": "1", "text": "b", "category": "X"}])
    with pytest.raises(FormatError, match="duplicate id"):
        decode_records(duplicate)


def test_decode_accepts_minimal_entries_as_bytes() -> None:
    records = decode_records(b'[{"text": "Code is like humor.", "category": "Programming"}]', origin=Origin.REMOTE)
    assert records == [Record(text="Code is like humor.", category="Programming", origin=Origin.REMOTE)]
    assert records[0].id is None


def test_encode_keeps_order_and_wire_names() -> None:
    records = [
        Record(text="b", category="Y", id="2", updated_at=5),
        Record(text="a", category="X"),
    ]
    data = json.loads(encode_records(records))
    assert data == [
        {"id": "2", "text": "b", "category": "Y", "updatedAt": 5},
        {"text": "a", "category": "X"},
    ]


def test_content_id_is_deterministic_and_content_sensitive() -> None:
    assert content_id("a", "X") == content_id("a", "X")
    assert content_id("a", "X") != content_id("a", "Y")
    assert content_id("a", "X").startswith("remote-")


def test_logical_clock_is_monotonic() -> None:
    clock = LogicalClock()
    assert clock.tick() == 1
    clock.observe(10)
    clock.observe(4)
    clock.observe(None)
    assert clock.tick() == 11
