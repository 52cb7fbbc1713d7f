"""
Explicit transactions for schema work.

The connection must be in autocommit mode (isolation_level=None, see
results_aggregator.storage.connect) so that BEGIN/COMMIT/ROLLBACK issued
here are the only transaction boundaries. DDL is transactional in SQLite,
so a schema change and the version update that accompanies it either both
land or neither does.
"""

import logging
import sqlite3
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)


class TransactionClosedError(Exception):
    """Raised when a transaction handle is used after commit or rollback."""

    def __init__(self):
        super().__init__("transaction has already been committed or rolled back")


class TransactionScopeError(Exception):
    """Raised when a scoped transaction is committed by the code running inside it."""

    def __init__(self):
        super().__init__(
            "transaction is committed by its scope and cannot be committed explicitly"
        )


class Transaction:
    """
    Handle for one open database transaction.

    Step functions receive this instead of the raw connection so that they
    cannot run statements outside the transaction once it is finished.
    Handles opened by transaction() are scoped: only the scope commits them,
    so a step cannot commit its schema change apart from the version update.
    """

    def __init__(self, conn: sqlite3.Connection, scoped: bool = False):
        self._conn = conn
        self._scoped = scoped
        self._done = False

    @classmethod
    def begin(cls, conn: sqlite3.Connection, scoped: bool = False) -> "Transaction":
        """Open a new transaction on the connection."""
        conn.execute("BEGIN")
        return cls(conn, scoped)

    @property
    def done(self) -> bool:
        """True once the transaction was committed or rolled back."""
        return self._done

    def _ensure_active(self) -> None:
        if self._done:
            raise TransactionClosedError()

    def execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        """Execute one statement inside the transaction."""
        self._ensure_active()
        return self._conn.execute(sql, params)

    def executemany(self, sql: str, seq_of_params: Iterable[Iterable[Any]]) -> sqlite3.Cursor:
        """Execute one statement for every parameter set."""
        self._ensure_active()
        return self._conn.executemany(sql, seq_of_params)

    def commit(self) -> None:
        """Commit the transaction. Stays open if the commit itself fails."""
        if self._scoped:
            raise TransactionScopeError()
        self._commit()

    def _commit(self) -> None:
        self._ensure_active()
        self._conn.execute("COMMIT")
        self._done = True

    def rollback(self) -> None:
        """Roll back the transaction."""
        self._ensure_active()
        self._done = True
        self._conn.execute("ROLLBACK")


def _rollback_quietly(tx: Transaction) -> None:
    """Roll back while another error is already propagating."""
    if tx.done:
        logger.debug("Transaction already finished, nothing to roll back")
        return
    try:
        tx.rollback()
    except Exception as e:
        logger.error(f"Unable to roll back transaction: {e}")


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[Transaction]:
    """
    Run the body of a with-block inside a single transaction.

    Commits when the body completes. On any exception, including abnormal
    terminations such as KeyboardInterrupt, the transaction is rolled back
    and the exception is re-raised unchanged.
    """
    tx = Transaction.begin(conn, scoped=True)
    try:
        yield tx
    except Exception:
        _rollback_quietly(tx)
        raise
    except BaseException:
        logger.warning("Unit of work terminated abnormally, rolling back transaction")
        _rollback_quietly(tx)
        raise

    try:
        tx._commit()
    except BaseException:
        _rollback_quietly(tx)
        raise


def with_transaction(conn: sqlite3.Connection, unit_of_work: Callable[[Transaction], None]) -> None:
    """Call ``unit_of_work`` with a live transaction and commit if it returns."""
    with transaction(conn) as tx:
        unit_of_work(tx)
