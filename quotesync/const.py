"""Constants for the quotesync package."""

from __future__ import annotations

from typing import Final

ALL_CATEGORIES: Final = "all"

STORAGE_KEY_QUOTES: Final = "quotes"
STORAGE_KEY_SELECTED_CATEGORY: Final = "selectedCategory"
STORAGE_KEY_OUTBOX: Final = "outbox"
STORAGE_KEY_LAST_VIEWED: Final = "lastViewedQuote"

LOCAL_ID_PREFIX: Final = "local-"
REMOTE_ID_PREFIX: Final = "remote-"

CONF_BASE_URL: Final = "base_url"
CONF_SYNC_INTERVAL: Final = "sync_interval"
CONF_FETCH_LIMIT: Final = "fetch_limit"
CONF_REQUEST_TIMEOUT: Final = "request_timeout"
CONF_STORE_PATH: Final = "store_path"
CONF_TRUST_REMOTE_IDS: Final = "trust_remote_ids"
CONF_CONFLICT_POLICY: Final = "conflict_policy"
CONF_DEFAULT_CATEGORY: Final = "default_category"
CONF_TEXT_FIELD: Final = "text_field"
CONF_CATEGORY_FIELD: Final = "category_field"

DEFAULT_BASE_URL: Final = "https://jsonplaceholder.typicode.com"
DEFAULT_SYNC_INTERVAL: Final = 30.0
DEFAULT_FETCH_LIMIT: Final = 5
DEFAULT_REQUEST_TIMEOUT: Final = 30.0
DEFAULT_STORE_PATH: Final = ".quotesync.db"
DEFAULT_REMOTE_CATEGORY: Final = "Server"
DEFAULT_TEXT_FIELD: Final = "title"
DEFAULT_CATEGORY_FIELD: Final = "category"

SEED_QUOTES: Final = (
    {"text": "Code is like humor.", "category": "Programming"},
    {"text": "Simplicity is the soul of efficiency.", "category": "Programming"},
    {"text": "Believe you can and you're halfway there.", "category": "Motivation"},
)
