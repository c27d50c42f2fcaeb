"""Validated runtime configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import voluptuous as vol
import yaml

from .const import (
    CONF_BASE_URL,
    CONF_CATEGORY_FIELD,
    CONF_CONFLICT_POLICY,
    CONF_DEFAULT_CATEGORY,
    CONF_FETCH_LIMIT,
    CONF_REQUEST_TIMEOUT,
    CONF_STORE_PATH,
    CONF_SYNC_INTERVAL,
    CONF_TEXT_FIELD,
    CONF_TRUST_REMOTE_IDS,
    DEFAULT_BASE_URL,
    DEFAULT_CATEGORY_FIELD,
    DEFAULT_FETCH_LIMIT,
    DEFAULT_REMOTE_CATEGORY,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STORE_PATH,
    DEFAULT_SYNC_INTERVAL,
    DEFAULT_TEXT_FIELD,
)
from .errors import ConfigError
from .reconcile import ConflictPolicy

_NON_EMPTY = vol.All(str, vol.Strip, vol.Length(min=1))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_BASE_URL, default=DEFAULT_BASE_URL): vol.All(_NON_EMPTY, vol.Url()),
        vol.Optional(CONF_SYNC_INTERVAL, default=DEFAULT_SYNC_INTERVAL): vol.All(
            vol.Coerce(float), vol.Range(min=1.0)
        ),
        vol.Optional(CONF_FETCH_LIMIT, default=DEFAULT_FETCH_LIMIT): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(CONF_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0.1)
        ),
        vol.Optional(CONF_STORE_PATH, default=DEFAULT_STORE_PATH): _NON_EMPTY,
        vol.Optional(CONF_TRUST_REMOTE_IDS, default=True): vol.Boolean(),
        vol.Optional(CONF_CONFLICT_POLICY, default=ConflictPolicy.REMOTE_WINS.value): vol.All(
            vol.Lower, vol.In([policy.value for policy in ConflictPolicy])
        ),
        vol.Optional(CONF_DEFAULT_CATEGORY, default=DEFAULT_REMOTE_CATEGORY): _NON_EMPTY,
        vol.Optional(CONF_TEXT_FIELD, default=DEFAULT_TEXT_FIELD): _NON_EMPTY,
        vol.Optional(CONF_CATEGORY_FIELD, default=DEFAULT_CATEGORY_FIELD): _NON_EMPTY,
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(slots=True)
class QuoteSyncConfig:
    """Settings for the store, the gateway and the scheduler."""

    base_url: str = DEFAULT_BASE_URL
    sync_interval: float = DEFAULT_SYNC_INTERVAL
    fetch_limit: int = DEFAULT_FETCH_LIMIT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    store_path: str = DEFAULT_STORE_PATH
    trust_remote_ids: bool = True
    conflict_policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS
    default_category: str = DEFAULT_REMOTE_CATEGORY
    text_field: str = DEFAULT_TEXT_FIELD
    category_field: str = DEFAULT_CATEGORY_FIELD

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None) -> QuoteSyncConfig:
        cleaned = {key: value for key, value in dict(options or {}).items() if value is not None}
        try:
            data = CONFIG_SCHEMA(cleaned)
        except vol.Invalid as err:
            raise ConfigError(f"invalid configuration: {err}") from err
        data[CONF_CONFLICT_POLICY] = ConflictPolicy(data[CONF_CONFLICT_POLICY])
        return cls(**data)

    def merged(self, overrides: Mapping[str, Any]) -> QuoteSyncConfig:
        """Return a copy with non-``None`` ``overrides`` applied and re-validated."""

        options = self.as_options()
        options.update({key: value for key, value in overrides.items() if value is not None})
        return self.from_options(options)

    def as_options(self) -> dict[str, Any]:
        options = asdict(self)
        options[CONF_CONFLICT_POLICY] = self.conflict_policy.value
        return options


def load_config(path: str | Path | None = None) -> QuoteSyncConfig:
    """Read a YAML config file; a missing ``path`` yields the defaults."""

    if path is None:
        return QuoteSyncConfig.from_options()
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except OSError as err:
        raise ConfigError(f"cannot read config file {config_path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"config file {config_path} is not valid YAML: {err}") from err
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"config file {config_path} must contain a mapping")
    return QuoteSyncConfig.from_options(raw)


__all__ = ["CONFIG_SCHEMA", "QuoteSyncConfig", "load_config"]
