from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Iterable, Sequence

import pytest

from quotesync import LocalStore, PublishResult, QuoteStorage, Record
from quotesync.utils.logging import clear_warnings


class FakeGateway:
    """Scriptable stand-in for :class:`quotesync.gateway.HttpQuoteGateway`."""

    def __init__(self, batch: Iterable[Record] = ()) -> None:
        self.batch = list(batch)
        self.fetch_error: Exception | None = None
        self.publish_error: Exception | None = None
        self.fail_ids: set[str] = set()
        self.published: list[Record] = []
        self.fetch_calls = 0
        self.publish_calls = 0
        self.gate: asyncio.Event | None = None

    async def fetch_batch(self, limit: int) -> list[Record]:
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.batch)[:limit]

    async def publish(self, records: Sequence[Record]) -> PublishResult:
        self.publish_calls += 1
        if self.publish_error is not None:
            raise self.publish_error
        result = PublishResult()
        for record in records:
            if record.id in self.fail_ids:
                result.failed[record.id] = "rejected"
            else:
                result.acked.append(record.id)
                self.published.append(record)
        return result


@pytest.fixture(autouse=True)
def _reset_warn_once() -> None:
    clear_warnings()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"local-{next(counter)}"


@pytest.fixture
def store(id_factory) -> LocalStore:
    return LocalStore(id_factory=id_factory)


@pytest.fixture
def storage(tmp_path) -> QuoteStorage:
    return QuoteStorage(tmp_path / "quotes.db")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
