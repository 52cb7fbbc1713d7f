"""
SQLite-based storage implementation.

Tables (created by migrations):
- report: Latest report per cluster
- cluster_rule_toggle: Rules disabled by a user for a cluster
- migration_info: Applied schema version
"""

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..migration import Migration, Migrator, Version, init_info_table, transaction
from .errors import ItemNotFoundError, OldReportError, SchemaVersionMismatchError

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


def connect(db_path: Path | str) -> sqlite3.Connection:
    """
    Open a database connection suitable for the migration engine.

    The connection is in autocommit mode; transactions are always opened
    explicitly via results_aggregator.migration.transaction.
    """
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _format_timestamp(value: datetime) -> str:
    """Format as ISO-8601 UTC. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _now() -> str:
    return _format_timestamp(datetime.now(timezone.utc))


@dataclass
class ReportRecord:
    """Latest report stored for a cluster."""

    org_id: int
    cluster: str
    report: str  # JSON document as received
    reported_at: str  # ISO timestamp
    last_checked_at: str  # ISO timestamp

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ReportRecord":
        """Create from database row."""
        return cls(
            org_id=row["org_id"],
            cluster=row["cluster"],
            report=row["report"],
            reported_at=row["reported_at"],
            last_checked_at=row["last_checked_at"],
        )

    def report_json(self) -> Any:
        """Parsed report document."""
        return json.loads(self.report)


@dataclass
class RuleToggleRecord:
    """A user's enable/disable decision for a rule on a cluster."""

    cluster_id: str
    rule_id: str
    user_id: str
    disabled: bool
    disabled_at: str | None
    enabled_at: str | None
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "RuleToggleRecord":
        """Create from database row."""
        return cls(
            cluster_id=row["cluster_id"],
            rule_id=row["rule_id"],
            user_id=row["user_id"],
            disabled=bool(row["disabled"]),
            disabled_at=row["disabled_at"],
            enabled_at=row["enabled_at"],
            updated_at=row["updated_at"],
        )


class Storage:
    """
    SQLite-based storage for cluster reports.

    Owns one connection for its lifetime. Call init() before use so the
    schema is verified (or migrated) first.
    """

    def __init__(self, db_path: Path | str, migrations: list[Migration] | None = None):
        """
        Open storage.

        Args:
            db_path: Path to SQLite database file (or ":memory:")
            migrations: Migration registry (default: packaged migrations)
        """
        if str(db_path) != IN_MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = connect(db_path)
        self.migrator = Migrator(self.conn, migrations)

    def close(self) -> None:
        self.conn.close()

    def init(self, auto_migrate: bool = False) -> None:
        """
        Prepare the database for use.

        Creates the migration info table if needed, optionally migrates to
        the latest schema, and then requires the schema to be up to date.

        Raises:
            SchemaVersionMismatchError: If the schema is not at the latest version.
        """
        init_info_table(self.conn)

        if auto_migrate:
            self.migrator.migrate_to_latest()

        current = self.migrator.get_db_version()
        latest = self.migrator.get_max_version()
        if current != latest:
            raise SchemaVersionMismatchError(current, latest)

        logger.info(f"Storage {self.db_path} ready at schema version {current}")

    # Migration passthroughs

    def get_migration_version(self) -> Version:
        return self.migrator.get_db_version()

    def get_max_version(self) -> Version:
        return self.migrator.get_max_version()

    def migrate_to(self, version: Version) -> None:
        self.migrator.set_db_version(version)

    # Report methods

    def write_report_for_cluster(
        self,
        org_id: int,
        cluster_name: str,
        report: str,
        collected_at: datetime,
    ) -> None:
        """
        Store the latest report for a cluster.

        Cluster names are unique across organizations. A report for a known
        cluster under a different org moves the cluster to that org.

        Raises:
            OldReportError: If a report collected later is already stored.
        """
        collected = _format_timestamp(collected_at)

        with transaction(self.conn) as tx:
            row = tx.execute(
                "SELECT org_id, last_checked_at FROM report WHERE cluster = ?",
                (cluster_name,),
            ).fetchone()

            if row is None:
                tx.execute(
                    """
                    INSERT INTO report (org_id, cluster, report, reported_at, last_checked_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (org_id, cluster_name, report, _now(), collected),
                )
            else:
                stored = row["last_checked_at"]
                if stored and _parse_timestamp(stored) > _parse_timestamp(collected):
                    raise OldReportError(cluster_name, stored, collected)

                if row["org_id"] != org_id:
                    logger.info(
                        f"Cluster {cluster_name} moved from org {row['org_id']} to org {org_id}"
                    )

                tx.execute(
                    """
                    UPDATE report
                    SET org_id = ?, report = ?, reported_at = ?, last_checked_at = ?
                    WHERE cluster = ?
                    """,
                    (org_id, report, _now(), collected, cluster_name),
                )

        logger.debug(f"Stored report for cluster {cluster_name} (org {org_id})")

    def read_report_for_cluster(self, org_id: int, cluster_name: str) -> ReportRecord:
        """
        Get the stored report for a cluster.

        Raises:
            ItemNotFoundError: If no report exists for the org/cluster pair.
        """
        row = self.conn.execute(
            "SELECT * FROM report WHERE org_id = ? AND cluster = ?",
            (org_id, cluster_name),
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(f"{org_id}/{cluster_name}")
        return ReportRecord.from_row(row)

    def list_of_orgs(self) -> list[int]:
        """Organizations that have at least one report."""
        rows = self.conn.execute("SELECT DISTINCT org_id FROM report ORDER BY org_id").fetchall()
        return [row["org_id"] for row in rows]

    def list_of_clusters_for_org(self, org_id: int) -> list[str]:
        rows = self.conn.execute(
            "SELECT cluster FROM report WHERE org_id = ? ORDER BY cluster", (org_id,)
        ).fetchall()
        return [row["cluster"] for row in rows]

    # Rule toggle methods

    def toggle_rule_for_cluster(
        self, cluster_name: str, rule_id: str, user_id: str, disabled: bool
    ) -> None:
        """Enable or disable a rule's results on a cluster for one user."""
        now = _now()
        with transaction(self.conn) as tx:
            tx.execute(
                """
                INSERT INTO cluster_rule_toggle (
                    cluster_id, rule_id, user_id, disabled, disabled_at, enabled_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (cluster_id, rule_id, user_id) DO UPDATE SET
                    disabled = excluded.disabled,
                    disabled_at = excluded.disabled_at,
                    enabled_at = excluded.enabled_at,
                    updated_at = excluded.updated_at
                """,
                (
                    cluster_name,
                    rule_id,
                    user_id,
                    int(disabled),
                    now if disabled else None,
                    None if disabled else now,
                    now,
                ),
            )

        logger.info(
            f"Rule {rule_id} {'disabled' if disabled else 'enabled'} "
            f"for cluster {cluster_name} by user {user_id}"
        )

    def get_rule_toggle(
        self, cluster_name: str, rule_id: str, user_id: str
    ) -> RuleToggleRecord | None:
        row = self.conn.execute(
            """
            SELECT * FROM cluster_rule_toggle
            WHERE cluster_id = ? AND rule_id = ? AND user_id = ?
            """,
            (cluster_name, rule_id, user_id),
        ).fetchone()
        return RuleToggleRecord.from_row(row) if row else None
