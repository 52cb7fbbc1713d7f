"""
Persisted schema version (migration info table).

The table holds exactly one row with one integer column. Any other row count
means something outside the migration engine touched the table; it is
reported as corruption and never repaired here.
"""

import logging
import sqlite3
from typing import Any

from .errors import InfoTableCorruptedError, InfoTableEmptyError, InfoTableMultipleRowsError
from .transaction import Transaction, transaction

logger = logging.getLogger(__name__)

INFO_TABLE = "migration_info"

# Number of migrations applied, in registry order. 0 means empty schema.
Version = int


def _info_table_exists(tx: Transaction) -> bool:
    row = tx.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
        (INFO_TABLE,),
    ).fetchone()
    return row[0] > 0


def init_info_table(conn: sqlite3.Connection) -> None:
    """
    Create the migration info table with version 0 unless it already exists.

    Calling this on an initialized database is a no-op. Either way the table
    must end up with exactly one row.

    Raises:
        InfoTableCorruptedError: If the table does not contain exactly one row.
    """
    with transaction(conn) as tx:
        if not _info_table_exists(tx):
            logger.info(f"Creating {INFO_TABLE} table")
            tx.execute(f"CREATE TABLE {INFO_TABLE} (version INTEGER NOT NULL)")
            tx.execute(f"INSERT INTO {INFO_TABLE} (version) VALUES (0)")

        count = tx.execute(f"SELECT COUNT(*) FROM {INFO_TABLE}").fetchone()[0]
        if count != 1:
            raise InfoTableCorruptedError(
                "unexpected number of rows in migration info table "
                f"(expected: 1, reality: {count})",
                actual=count,
            )


def _to_version(value: Any) -> Version:
    """Convert a stored column value into a Version."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(
            f"converting {type(value).__name__} ({value!r}) to a version: unsupported type"
        )
    version = int(value)
    if version < 0:
        raise ValueError(f"converting {value!r} to a version: value out of range")
    return version


def get_db_version(conn: sqlite3.Connection) -> Version:
    """
    Read the currently applied schema version.

    A missing table surfaces as the driver's own error.

    Raises:
        InfoTableEmptyError: If the table has no rows.
        InfoTableMultipleRowsError: If the table has more than one row.
        ValueError, TypeError: If the stored value is not a valid version.
    """
    rows = conn.execute(f"SELECT version FROM {INFO_TABLE}").fetchmany(2)
    if not rows:
        raise InfoTableEmptyError()
    if len(rows) > 1:
        raise InfoTableMultipleRowsError()

    return _to_version(rows[0][0])


def update_version_in_db(tx: Transaction, version: Version) -> None:
    """Store a new version. Must run in the transaction of the matching step."""
    cursor = tx.execute(f"UPDATE {INFO_TABLE} SET version = ?", (version,))
    if cursor.rowcount != 1:
        raise InfoTableCorruptedError(
            "unexpected number of affected rows in migration info table "
            f"(expected: 1, reality: {cursor.rowcount})",
            actual=cursor.rowcount,
        )
