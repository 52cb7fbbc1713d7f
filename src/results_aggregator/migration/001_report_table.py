"""
Migration 001: Add report table.

One row per cluster holding the latest analysis report received for it.
"""

from results_aggregator.migration.transaction import Transaction

NAME = "report_table"


def upgrade(tx: Transaction) -> None:
    """Create report table."""
    tx.execute(
        """
        CREATE TABLE report (
            org_id INTEGER NOT NULL,
            cluster VARCHAR NOT NULL UNIQUE,
            report VARCHAR NOT NULL,
            reported_at TIMESTAMP,
            last_checked_at TIMESTAMP,
            PRIMARY KEY (org_id, cluster)
        )
    """
    )


def downgrade(tx: Transaction) -> None:
    """Remove report table."""
    tx.execute("DROP TABLE report")
