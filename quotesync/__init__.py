"""Local-first quote store with periodic reconciliation against a remote source."""

from .book import QuoteBook
from .config import QuoteSyncConfig, load_config
from .errors import ConfigError, FormatError, NetworkError, QuoteSyncError, ValidationError
from .gateway import HttpQuoteGateway, PublishResult, RemoteGateway
from .local_store import LocalStore, seed_records
from .outbox import PendingOutbox
from .reconcile import ChangeReport, ConflictNotice, ConflictPolicy, MergeResult, ReconciliationEngine
from .record import LogicalClock, Origin, Record, decode_records, encode_records
from .scheduler import SyncReport, SyncScheduler, SyncState
from .storage import QuoteStorage

__all__ = [
    "ChangeReport",
    "ConfigError",
    "ConflictNotice",
    "ConflictPolicy",
    "FormatError",
    "HttpQuoteGateway",
    "LocalStore",
    "LogicalClock",
    "MergeResult",
    "NetworkError",
    "Origin",
    "PendingOutbox",
    "PublishResult",
    "QuoteBook",
    "QuoteStorage",
    "QuoteSyncConfig",
    "QuoteSyncError",
    "ReconciliationEngine",
    "Record",
    "RemoteGateway",
    "SyncReport",
    "SyncScheduler",
    "SyncState",
    "ValidationError",
    "decode_records",
    "encode_records",
    "load_config",
    "seed_records",
]
