"""HTTP boundary to the remote quote source."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from aiohttp import ClientError, ClientSession, ClientTimeout

from .const import (
    DEFAULT_CATEGORY_FIELD,
    DEFAULT_REMOTE_CATEGORY,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEXT_FIELD,
)
from .errors import FormatError, NetworkError
from .record import Origin, Record, records_from_list
from .utils.logging import clear_warnings, warn_once

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PublishResult:
    """Per-record outcome of a publish call."""

    acked: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class RemoteGateway(Protocol):
    """Request/response boundary the scheduler talks to.

    ``publish`` reports success per record: a failure for one record never
    hides the acknowledgement of another.
    """

    async def fetch_batch(self, limit: int) -> list[Record]: ...

    async def publish(self, records: Sequence[Record]) -> PublishResult: ...


class HttpQuoteGateway:
    """JSON-over-HTTP gateway speaking the ``/posts`` resource shape."""

    def __init__(
        self,
        base_url: str,
        session: ClientSession | None = None,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        text_field: str = DEFAULT_TEXT_FIELD,
        category_field: str = DEFAULT_CATEGORY_FIELD,
        default_category: str = DEFAULT_REMOTE_CATEGORY,
        trust_remote_ids: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)
        self.text_field = text_field
        self.category_field = category_field
        self.default_category = default_category
        self.trust_remote_ids = trust_remote_ids

    async def __aenter__(self) -> HttpQuoteGateway:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.async_close()

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True
        return self._session

    async def async_close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    async def fetch_batch(self, limit: int) -> list[Record]:
        url = f"{self.base_url}/posts"
        try:
            async with self.session.get(
                url,
                params={"_limit": str(limit)},
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            ) as resp:
                body = await resp.read()
                if resp.status >= 400:
                    raise NetworkError(f"fetch failed: HTTP {resp.status}", reason="http_status")
        except (TimeoutError, ClientError) as err:
            warn_once(_LOGGER, "fetch_failed", f"Quote fetch from {url} failed: {err}")
            raise NetworkError(f"fetch request failed: {err}", reason="transport") from err
        clear_warnings("fetch_failed")

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as err:
            raise FormatError(f"remote batch is not valid UTF-8: {err}") from err
        try:
            payload = json.loads(text) if text.strip() else []
        except json.JSONDecodeError as err:
            raise FormatError(f"remote batch is not valid JSON: {err}") from err
        records = self.parse_batch(payload)
        return records[:limit]

    async def publish(self, records: Sequence[Record]) -> PublishResult:
        result = PublishResult()
        if not records:
            return result
        outcomes = await asyncio.gather(*(self._publish_one(record) for record in records))
        for record, error in zip(records, outcomes, strict=True):
            if error is None:
                result.acked.append(record.id)
            else:
                result.failed[record.id] = error
        if result.failed:
            warn_once(_LOGGER, "publish_failed", f"{len(result.failed)} of {len(records)} quotes failed to publish")
        return result

    # ------------------------------------------------------------------
    def parse_batch(self, payload: Any) -> list[Record]:
        """Map a remote JSON payload to records, rejecting it whole on any defect."""

        items = payload.get("records") if isinstance(payload, Mapping) else payload
        if not isinstance(items, list):
            raise FormatError(f"remote batch must be a JSON array, got {type(items).__name__}")
        mapped_items: list[dict[str, Any]] = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                raise FormatError(f"remote entry {index} is not an object")
            mapped = {
                "text": item.get("text", item.get(self.text_field)),
                "category": item.get(self.category_field) or item.get("category") or self.default_category,
                "updatedAt": item.get("updatedAt"),
            }
            if self.trust_remote_ids:
                mapped["id"] = item.get("id")
            mapped_items.append(mapped)
        # ids must be unique within one batch
        return records_from_list(mapped_items, origin=Origin.REMOTE)

    def _payload_for(self, record: Record) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": record.id,
            self.text_field: record.text,
            self.category_field: record.category,
        }
        if record.updated_at is not None:
            payload["updatedAt"] = record.updated_at
        return payload

    async def _publish_one(self, record: Record) -> str | None:
        try:
            async with self.session.post(
                f"{self.base_url}/posts",
                json=self._payload_for(record),
                timeout=self._timeout,
            ) as resp:
                if resp.status >= 400:
                    return f"HTTP {resp.status}"
        except (TimeoutError, ClientError) as err:
            _LOGGER.debug("Publishing quote %s failed: %s", record.id, err)
            return str(err) or type(err).__name__
        return None


__all__ = ["HttpQuoteGateway", "PublishResult", "RemoteGateway"]
