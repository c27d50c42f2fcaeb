import json
import random

import pytest

from quotesync import FormatError, LocalStore, QuoteBook
from quotesync.book import IMPORT_MERGE


@pytest.fixture
def book(tmp_path):
    return QuoteBook.open(tmp_path / "quotes.db", rng=random.Random(7))


def test_new_book_starts_from_seed_with_all_selected(book):
    assert book.selected_category == "all"
    assert len(book.filtered()) == 3
    assert book.store.category_options() == ["all", "Programming", "Motivation"]


def test_selected_category_survives_reopen(book, tmp_path):
    assert book.select_category("Motivation") == "Motivation"
    reopened = QuoteBook.open(tmp_path / "quotes.db")
    assert reopened.selected_category == "Motivation"
    assert [r.text for r in reopened.filtered()] == ["Believe you can and you're halfway there."]


def test_unknown_selection_falls_back_to_all(book):
    book.select_category("Poetry")
    assert book.selected_category == "all"
    book.add("Roses are red.", "Poetry")
    assert book.selected_category == "Poetry"


def test_random_quote_respects_filter_and_remembers_it(book):
    book.select_category("Programming")
    quote = book.random_quote()
    assert quote.category == "Programming"
    assert book.last_viewed() == quote.text


def test_random_quote_on_empty_collection():
    assert QuoteBook(LocalStore()).random_quote() is None


def test_export_then_import_replaces_collection(book, tmp_path):
    book.add("Simplicity wins.", "Design")
    target = book.export_to_file(tmp_path / "out" / "quotes.json")
    exported = json.loads(target.read_text())
    assert [item["text"] for item in exported][-1] == "Simplicity wins."

    other = QuoteBook(LocalStore())
    assert other.import_from_file(target) == 4
    assert other.export_json() == book.export_json()
    assert other.store.outbox.ids() == [item["id"] for item in exported]


def test_malformed_import_changes_nothing(book):
    before = book.export_json()
    pending = book.store.outbox.snapshot()
    bad_payloads = [
        "{not json",
        '{"text": "a", "category": "b"}',
        '[{"text": "ok", "category": "X"}, {"text": "", "category": "X"}]',
    ]
    for payload in bad_payloads:
        with pytest.raises(FormatError):
            book.import_json(payload)
        with pytest.raises(FormatError):
            book.import_json(payload, mode=IMPORT_MERGE)
    assert book.export_json() == before
    assert book.store.outbox.snapshot() == pending


def test_merge_import_upserts_and_queues(book):
    first = book.store.records()[0]
    payload = json.dumps(
        [
            {"id": first.id, "text": "Code is like humor, revised.", "category": "Programming"},
            {"text": "Fresh thought.", "category": "Ideas"},
        ]
    )
    assert book.import_json(payload, mode=IMPORT_MERGE) == 2
    records = book.store.records()
    assert len(records) == 4
    assert records[0].text == "Code is like humor, revised."
    assert records[-1].text == "Fresh thought."
    assert book.store.outbox.ids() == [first.id, records[-1].id]


def test_unknown_import_mode(book):
    with pytest.raises(ValueError):
        book.import_json("[]", mode="append")


def test_missing_import_file(book, tmp_path):
    with pytest.raises(FormatError, match="cannot read"):
        book.import_from_file(tmp_path / "missing.json")
