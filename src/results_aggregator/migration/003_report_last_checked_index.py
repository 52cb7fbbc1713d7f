"""
Migration 003: Index reports by last check time.
"""

from results_aggregator.migration.transaction import Transaction

NAME = "report_last_checked_index"


def upgrade(tx: Transaction) -> None:
    tx.execute("CREATE INDEX report_last_checked_at_idx ON report (last_checked_at)")


def downgrade(tx: Transaction) -> None:
    tx.execute("DROP INDEX report_last_checked_at_idx")
