"""
Test doubles for database failure injection.

ScriptedConnection wraps a real sqlite3 connection, records every statement
it sees and can make chosen statements fail or report a fake row count.
"""

import re
import sqlite3
from typing import Any


class _RowcountCursor:
    """Cursor proxy reporting a fixed rowcount."""

    def __init__(self, cursor: sqlite3.Cursor, rowcount: int):
        self._cursor = cursor
        self.rowcount = rowcount

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cursor, name)


class ScriptedConnection:
    """Connection proxy with scripted failures."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.statements: list[str] = []
        self._failures: list[tuple[re.Pattern, Exception]] = []
        self._rowcounts: list[tuple[re.Pattern, int]] = []

    def fail_on(self, pattern: str, error: Exception) -> None:
        """Raise ``error`` instead of running statements matching ``pattern``."""
        self._failures.append((re.compile(pattern, re.IGNORECASE), error))

    def fake_rowcount(self, pattern: str, rowcount: int) -> None:
        """Run matching statements but report ``rowcount`` affected rows."""
        self._rowcounts.append((re.compile(pattern, re.IGNORECASE), rowcount))

    def ran(self, prefix: str) -> bool:
        """Whether a statement starting with ``prefix`` was executed."""
        return any(s.upper().startswith(prefix.upper()) for s in self.statements)

    def execute(self, sql: str, params=()) -> Any:
        self.statements.append(" ".join(sql.split()))
        for pattern, error in self._failures:
            if pattern.search(sql):
                raise error

        cursor = self._conn.execute(sql, params)
        for pattern, rowcount in self._rowcounts:
            if pattern.search(sql):
                return _RowcountCursor(cursor, rowcount)
        return cursor

    def executemany(self, sql: str, seq_of_params) -> Any:
        self.statements.append(" ".join(sql.split()))
        return self._conn.executemany(sql, seq_of_params)

    def close(self) -> None:
        self._conn.close()
