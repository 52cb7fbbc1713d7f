"""
Migration runner for versioned database schema changes.

Migrations are named with format: {number}_{name}.py
E.g., 001_report_table.py, 002_cluster_rule_toggle.py

Each migration must define:
- NAME: str
- upgrade(tx: Transaction) -> None
- downgrade(tx: Transaction) -> None

The position of a migration in the registry is its version: applying the
first migration moves the schema to version 1, reverting it moves it back
to version 0. File numbers must therefore run from 001 without gaps.
"""

import importlib
import logging
import re
import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import CurrentVersionOutOfBoundsError, InvalidTargetVersionError, MigrationLoadError
from .info_table import Version, get_db_version, init_info_table, update_version_in_db
from .transaction import Transaction, with_transaction

logger = logging.getLogger(__name__)

StepFunction = Callable[[Transaction], None]

MIGRATION_FILE_PATTERN = re.compile(r"^(\d{3})_(\w+)\.py$")


@dataclass(frozen=True)
class Migration:
    """A forward/reverse pair of schema changes."""

    step_up: StepFunction
    step_down: StepFunction
    name: str = ""


def get_all_migrations(
    migrations_dir: Path | None = None, package: str | None = None
) -> list[Migration]:
    """
    Load all migrations from a package directory.

    Args:
        migrations_dir: Directory holding the migration modules (default: this package)
        package: Importable package name of that directory

    Returns migrations ordered by file number.

    Raises:
        MigrationLoadError: If a module cannot be loaded, lacks a step
            function, or the numbering is not contiguous from 1.
    """
    migrations = []
    migrations_dir = migrations_dir or Path(__file__).parent
    package = package or __package__

    for expected, py_file in enumerate(sorted(migrations_dir.glob("[0-9][0-9][0-9]_*.py")), 1):
        match = MIGRATION_FILE_PATTERN.match(py_file.name)
        if not match:
            raise MigrationLoadError(f"malformed migration file name: {py_file.name}")

        number = int(match.group(1))
        if number != expected:
            raise MigrationLoadError(
                f"migration {py_file.name} has number {number}, expected {expected}"
            )

        full_module = f"{package}.{py_file.stem}"
        try:
            module = importlib.import_module(full_module)
            migrations.append(
                Migration(
                    step_up=module.upgrade,
                    step_down=module.downgrade,
                    name=getattr(module, "NAME", match.group(2)),
                )
            )
        except (ImportError, AttributeError) as e:
            raise MigrationLoadError(f"failed to load migration {py_file.stem}: {e}") from e

    return migrations


class Migrator:
    """
    Moves a database schema between versions one step at a time.

    Every step runs its schema change and the version update in one
    transaction, so the persisted version always matches the schema.

    The connection is owned by the caller. Concurrent migrators on the same
    database are not coordinated; callers must serialize migration runs.
    """

    def __init__(self, conn: sqlite3.Connection, migrations: Sequence[Migration] | None = None):
        """
        Initialize with a database connection.

        Args:
            conn: Connection in autocommit mode
            migrations: Migration registry (default: packaged migrations)
        """
        self.conn = conn
        self.migrations: tuple[Migration, ...] = tuple(
            get_all_migrations() if migrations is None else migrations
        )

    def get_max_version(self) -> Version:
        """Highest version reachable with the registry."""
        return len(self.migrations)

    def init_info_table(self) -> None:
        init_info_table(self.conn)

    def get_db_version(self) -> Version:
        return get_db_version(self.conn)

    def set_db_version(self, target_version: Version) -> None:
        """
        Migrate the schema up or down to ``target_version``.

        Stops at the first failing step and re-raises its error; the
        persisted version then reflects the last committed step.

        Raises:
            InvalidTargetVersionError: Target outside of the registry range.
            CurrentVersionOutOfBoundsError: Stored version outside of the range.
        """
        if isinstance(target_version, bool) or not isinstance(target_version, int):
            raise TypeError(f"target version must be an integer, got {target_version!r}")

        max_version = self.get_max_version()
        if not 0 <= target_version <= max_version:
            raise InvalidTargetVersionError(max_version)

        current_version = self.get_db_version()
        if current_version > max_version:
            raise CurrentVersionOutOfBoundsError(current_version)

        if target_version == current_version:
            logger.debug(f"Database already at version {current_version}")
            return

        logger.info(f"Migrating database from version {current_version} to {target_version}")

        if target_version > current_version:
            for version in range(current_version + 1, target_version + 1):
                migration = self.migrations[version - 1]
                logger.info(f"Applying migration {version}: {migration.name}")
                self._run_step(migration.step_up, version)
        else:
            for version in range(current_version, target_version, -1):
                migration = self.migrations[version - 1]
                logger.info(f"Reverting migration {version}: {migration.name}")
                self._run_step(migration.step_down, version - 1)

        logger.info(f"Database migrated to version {target_version}")

    def migrate_to_latest(self) -> None:
        self.set_db_version(self.get_max_version())

    def _run_step(self, step: StepFunction, new_version: Version) -> None:
        def unit_of_work(tx: Transaction) -> None:
            step(tx)
            update_version_in_db(tx, new_version)

        try:
            with_transaction(self.conn, unit_of_work)
        except Exception as e:
            logger.error(f"Migration step to version {new_version} failed: {e}")
            raise
