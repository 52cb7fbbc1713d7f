"""
Storage (SQLite-based).

Persistent store for:
- Latest report per cluster
- Per-user rule toggles

The schema is owned by results_aggregator.migration.
"""

from .errors import ItemNotFoundError, OldReportError, SchemaVersionMismatchError, StorageError
from .sqlite_store import ReportRecord, RuleToggleRecord, Storage, connect

__all__ = [
    "ItemNotFoundError",
    "OldReportError",
    "ReportRecord",
    "RuleToggleRecord",
    "SchemaVersionMismatchError",
    "Storage",
    "StorageError",
    "connect",
]
