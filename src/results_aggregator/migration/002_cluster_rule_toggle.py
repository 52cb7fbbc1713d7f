"""
Migration 002: Add cluster_rule_toggle table.

Per-user switch to hide a rule's results for a cluster.
"""

from results_aggregator.migration.transaction import Transaction

NAME = "cluster_rule_toggle"


def upgrade(tx: Transaction) -> None:
    """Create cluster_rule_toggle table."""
    tx.execute(
        """
        CREATE TABLE cluster_rule_toggle (
            cluster_id VARCHAR NOT NULL,
            rule_id VARCHAR NOT NULL,
            user_id VARCHAR NOT NULL,
            disabled SMALLINT NOT NULL,
            disabled_at TIMESTAMP NULL,
            enabled_at TIMESTAMP NULL,
            updated_at TIMESTAMP NOT NULL,
            CHECK (disabled >= 0 AND disabled <= 1),
            PRIMARY KEY (cluster_id, rule_id, user_id)
        )
    """
    )


def downgrade(tx: Transaction) -> None:
    """Remove cluster_rule_toggle table."""
    tx.execute("DROP TABLE cluster_rule_toggle")
