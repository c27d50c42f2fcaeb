from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .const import REMOTE_ID_PREFIX
from .errors import FormatError, ValidationError


class Origin(str, Enum):
    """Provenance of a record inside the local collection."""

    LOCAL = "local"
    REMOTE = "remote"


def require_text(value: Any, field: str) -> str:
    """Return ``value`` trimmed, raising :class:`ValidationError` when empty."""

    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} must not be empty", field=field)
    return text


def content_id(text: str, category: str) -> str:
    """Return a deterministic id derived from the record content."""

    digest = hashlib.sha1(f"{text}\x00{category}".encode()).hexdigest()
    return f"{REMOTE_ID_PREFIX}{digest[:16]}"


@dataclass(frozen=True, slots=True)
class Record:
    """A single quote held in the collection or received from the remote side."""

    text: str
    category: str
    id: str | None = None
    updated_at: int | None = None
    origin: Origin = Origin.LOCAL

    @property
    def content_key(self) -> tuple[str, str]:
        return (self.text, self.category)

    def same_content(self, other: Record) -> bool:
        return self.content_key == other.content_key

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.id is not None:
            payload["id"] = self.id
        payload["text"] = self.text
        payload["category"] = self.category
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, origin: Origin = Origin.LOCAL) -> Record:
        if not isinstance(payload, Mapping):
            raise FormatError(f"record must be an object, got {type(payload).__name__}")
        try:
            text = require_text(payload.get("text"), "text")
            category = require_text(payload.get("category"), "category")
        except ValidationError as err:
            raise FormatError(f"invalid record: {err}") from err
        return cls(
            text=text,
            category=category,
            id=_parse_id(payload.get("id")),
            updated_at=_parse_timestamp(payload.get("updatedAt", payload.get("updated_at"))),
            origin=origin,
        )


class LogicalClock:
    """Monotonic counter used to stamp local and remote modifications."""

    def __init__(self, value: int = 0) -> None:
        self.value = value

    def tick(self) -> int:
        self.value += 1
        return self.value

    def observe(self, value: int | None) -> None:
        if value is not None and value > self.value:
            self.value = value


def _parse_id(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise FormatError("record id must be a string or integer")
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, str):
        return raw.strip() or None
    raise FormatError(f"record id must be a string or integer, got {type(raw).__name__}")


def _parse_timestamp(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise FormatError(f"updatedAt must be a non-negative integer, got {raw!r}")
    return raw


def encode_records(records: Iterable[Record], *, indent: int | None = 2) -> str:
    """Serialise ``records`` as a JSON array in collection order."""

    return json.dumps([record.to_dict() for record in records], indent=indent, ensure_ascii=False)


def decode_records(payload: str | bytes, *, origin: Origin = Origin.LOCAL) -> list[Record]:
    """Parse a JSON array of records, rejecting the whole payload on any defect."""

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as err:
            raise FormatError(f"payload is not valid UTF-8: {err}") from err
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as err:
        raise FormatError(f"payload is not valid JSON: {err}") from err
    return records_from_list(data, origin=origin)


def records_from_list(data: Any, *, origin: Origin = Origin.LOCAL) -> list[Record]:
    if not isinstance(data, list):
        raise FormatError(f"expected a JSON array of records, got {type(data).__name__}")
    records: list[Record] = []
    seen: set[str] = set()
    for index, item in enumerate(data):
        try:
            record = Record.from_dict(item, origin=origin)
        except FormatError as err:
            raise FormatError(f"entry {index}: {err}") from err
        if record.id is not None:
            if record.id in seen:
                raise FormatError(f"entry {index}: duplicate id {record.id!r}")
            seen.add(record.id)
        records.append(record)
    return records


__all__ = [
    "LogicalClock",
    "Origin",
    "Record",
    "content_id",
    "decode_records",
    "encode_records",
    "records_from_list",
    "require_text",
]
