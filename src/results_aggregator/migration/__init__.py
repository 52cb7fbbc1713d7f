"""
Database migrations module.

Versioned, ordered migrations for the aggregator database. The applied
version is tracked in a single-row migration_info table and moves one step
(one transaction) at a time, in either direction.
"""

from .errors import (
    CurrentVersionOutOfBoundsError,
    InfoTableCorruptedError,
    InfoTableEmptyError,
    InfoTableMultipleRowsError,
    InvalidTargetVersionError,
    MigrationError,
    MigrationLoadError,
)
from .info_table import INFO_TABLE, Version, get_db_version, init_info_table
from .runner import Migration, Migrator, get_all_migrations
from .transaction import (
    Transaction,
    TransactionClosedError,
    TransactionScopeError,
    transaction,
    with_transaction,
)

__all__ = [
    "INFO_TABLE",
    "CurrentVersionOutOfBoundsError",
    "InfoTableCorruptedError",
    "InfoTableEmptyError",
    "InfoTableMultipleRowsError",
    "InvalidTargetVersionError",
    "Migration",
    "MigrationError",
    "MigrationLoadError",
    "Migrator",
    "Transaction",
    "TransactionClosedError",
    "TransactionScopeError",
    "Version",
    "get_all_migrations",
    "get_db_version",
    "init_info_table",
    "transaction",
    "with_transaction",
]
