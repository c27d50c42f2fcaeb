"""Periodic and on-demand sync cycles for the local quote store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .const import DEFAULT_FETCH_LIMIT, DEFAULT_SYNC_INTERVAL
from .errors import FormatError, NetworkError
from .gateway import PublishResult, RemoteGateway
from .local_store import LocalStore
from .reconcile import ChangeReport, ReconciliationEngine
from .record import Record

_LOGGER = logging.getLogger(__name__)

SyncListener = Callable[["SyncReport"], Awaitable[None] | None]


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


@dataclass(slots=True)
class SyncReport:
    """Outcome of one sync cycle, handed to listeners."""

    trigger: str
    started_at: datetime
    finished_at: datetime | None = None
    fetched: int = 0
    changes: ChangeReport | None = None
    published: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    fetch_error: str | None = None
    publish_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.fetch_error is None and self.publish_error is None and not self.pending

    def to_dict(self) -> dict[str, Any]:
        changes = self.changes
        return {
            "trigger": self.trigger,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "fetched": self.fetched,
            "changes": changes.summary() if changes else None,
            "conflicts": [notice.to_dict() for notice in changes.conflicts] if changes else [],
            "published": list(self.published),
            "pending": list(self.pending),
            "fetch_error": self.fetch_error,
            "publish_error": self.publish_error,
        }


class SyncScheduler:
    """Run reconciliation cycles on a timer and on manual request.

    At most one cycle is in flight. A trigger that arrives while a cycle runs
    does not start another one; it waits for and returns the running cycle's
    report.
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        engine: ReconciliationEngine | None = None,
        *,
        interval: float = DEFAULT_SYNC_INTERVAL,
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        publish_limit: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.engine = engine or ReconciliationEngine(outbox=store.outbox)
        if self.engine.outbox is not store.outbox:
            raise ValueError("engine and store must share the same pending outbox")
        self.interval = interval
        self.fetch_limit = fetch_limit
        self.publish_limit = publish_limit
        self.logger = logger or _LOGGER
        self.state = SyncState.IDLE
        self.cycles = 0
        self.last_report: SyncReport | None = None
        self.last_success_at: datetime | None = None
        self.last_fetch_error: str | None = None
        self.last_publish_error: str | None = None
        self._inflight: asyncio.Task[SyncReport] | None = None
        self._timer: asyncio.Task[None] | None = None
        self._listeners: list[SyncListener] = []

    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start the timer loop on the running event loop."""

        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self.run_forever())

    async def stop(self) -> None:
        """Stop the timer; a cycle already in flight is allowed to finish."""

        if self._timer:
            self._timer.cancel()
            with suppress(asyncio.CancelledError):
                await self._timer
        self._timer = None
        if self._inflight and not self._inflight.done():
            with suppress(Exception):
                await self._inflight

    async def run_forever(self) -> None:
        while True:
            try:
                await self.sync_now(trigger="timer")
            except asyncio.CancelledError:
                raise
            except Exception as err:  # pragma: no cover
                self.logger.exception("Unexpected sync error: %s", err)
                self.last_fetch_error = str(err)
            await asyncio.sleep(self.interval)

    async def sync_now(self, *, trigger: str = "manual") -> SyncReport:
        if self._inflight is not None and not self._inflight.done():
            self.logger.debug("Sync already in flight; %s trigger joins it", trigger)
            return await asyncio.shield(self._inflight)
        self._inflight = asyncio.get_running_loop().create_task(self._run_cycle(trigger))
        return await asyncio.shield(self._inflight)

    # ------------------------------------------------------------------
    def register_listener(self, listener: SyncListener) -> Callable[[], None]:
        """Subscribe to cycle reports; returns a callable that unsubscribes."""

        if listener not in self._listeners:
            self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "running": self.running,
            "interval": self.interval,
            "cycles": self.cycles,
            "outbox_size": len(self.engine.outbox),
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_fetch_error": self.last_fetch_error,
            "last_publish_error": self.last_publish_error,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }

    # ------------------------------------------------------------------
    async def _run_cycle(self, trigger: str) -> SyncReport:
        report = SyncReport(trigger=trigger, started_at=datetime.now(tz=UTC))
        self.state = SyncState.SYNCING
        try:
            batch = self.engine.prepare_publish(self.store, self.publish_limit)
            fetched, published = await asyncio.gather(
                self.gateway.fetch_batch(self.fetch_limit),
                self._publish(batch),
                return_exceptions=True,
            )
            self._settle(batch, published, report)
            if isinstance(fetched, BaseException):
                self._fetch_failed(fetched, report)
            else:
                self._apply(fetched, report)
            self.store.flush()
        finally:
            self.state = SyncState.IDLE
            report.finished_at = datetime.now(tz=UTC)

        self.cycles += 1
        self.last_report = report
        self.last_fetch_error = report.fetch_error
        self.last_publish_error = report.publish_error
        if report.fetch_error is None:
            self.last_success_at = report.finished_at
        await self._notify(report)
        return report

    async def _publish(self, batch: Sequence[Record]) -> PublishResult:
        if not batch:
            return PublishResult()
        return await self.gateway.publish(batch)

    def _settle(self, batch: Sequence[Record], outcome: PublishResult | BaseException, report: SyncReport) -> None:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, NetworkError | FormatError):
                self.logger.error("Unexpected publish failure", exc_info=outcome)
            self.engine.outbox.record_attempt(record.id for record in batch)
            report.publish_error = str(outcome) or type(outcome).__name__
            report.pending = [record.id for record in batch]
            self.logger.warning("Publishing %d quotes failed: %s", len(batch), report.publish_error)
            return
        report.published = self.engine.settle_publish(batch, outcome)
        report.pending = [record_id for record_id in outcome.failed]

    def _fetch_failed(self, err: BaseException, report: SyncReport) -> None:
        if not isinstance(err, NetworkError | FormatError):
            self.logger.error("Unexpected fetch failure", exc_info=err)
        report.fetch_error = str(err) or type(err).__name__
        self.logger.warning("Sync cycle aborted, remote fetch failed: %s", report.fetch_error)

    def _apply(self, fetched: list[Record], report: SyncReport) -> None:
        report.fetched = len(fetched)
        # merge against the collection as it is now, including adds made mid-flight
        result = self.engine.merge(self.store.records(), fetched)
        report.changes = result.report
        if result.report.changed:
            self.store.upsert_many(result.report.changed)
        summary = result.report.summary()
        self.logger.info(
            "Synced %d remote quotes: %d added, %d updated, %d conflicts",
            report.fetched,
            summary["added"],
            summary["updated"],
            summary["conflicts"],
        )

    async def _notify(self, report: SyncReport) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(report)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as err:  # pragma: no cover
                self.logger.debug("Sync listener raised error: %s", err, exc_info=True)


__all__ = ["SyncListener", "SyncReport", "SyncScheduler", "SyncState"]
