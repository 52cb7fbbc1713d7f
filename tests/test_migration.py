"""Tests for the schema migration engine."""

import sqlite3

import pytest

from results_aggregator.migration import (
    CurrentVersionOutOfBoundsError,
    InfoTableCorruptedError,
    InfoTableEmptyError,
    InfoTableMultipleRowsError,
    InvalidTargetVersionError,
    Migration,
    MigrationLoadError,
    Migrator,
    TransactionClosedError,
    TransactionScopeError,
    get_all_migrations,
    get_db_version,
    init_info_table,
)
from results_aggregator.storage import connect

from fixtures import ScriptedConnection

NO_SUCH_TABLE_ERROR_MSG = "no such table: migration_info"
STEP_ERROR_MSG = "migration Step Error"


def step_noop(tx):
    pass


def step_error(tx):
    raise RuntimeError(STEP_ERROR_MSG)


def step_rollback(tx):
    tx.rollback()


def step_create_and_commit(tx):
    tx.execute("CREATE TABLE migration_test_table (col INTEGER)")
    tx.commit()


TEST_MIGRATION = Migration(
    step_up=lambda tx: tx.execute("CREATE TABLE migration_test_table (col INTEGER)"),
    step_down=lambda tx: tx.execute("DROP TABLE migration_test_table"),
    name="test_table",
)


class StepAbort(BaseException):
    """Abnormal termination that is not an ordinary error."""


def table_exists(conn, name: str) -> bool:
    row = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone()
    return row[0] == 1


def info_row_count(conn) -> int:
    return conn.execute("SELECT COUNT(*) FROM migration_info").fetchone()[0]


@pytest.fixture
def migrator(db_with_info) -> Migrator:
    """Migrator with the single test migration."""
    return Migrator(db_with_info, [TEST_MIGRATION])


class TestMigrationFull:
    """Full up/down walks with the packaged migrations."""

    def test_step_up_and_down_with_real_migrations(self, db_with_info):
        """Majority of the mechanism, all in one place."""
        migrator = Migrator(db_with_info)

        max_version = migrator.get_max_version()
        assert max_version != 0, "no migrations available"
        assert migrator.get_db_version() == 0

        migrator.set_db_version(max_version)
        assert migrator.get_db_version() == max_version

        migrator.set_db_version(0)
        assert migrator.get_db_version() == 0

    def test_round_trip_for_every_target(self, db_with_info):
        migrator = Migrator(db_with_info)

        for target in range(migrator.get_max_version() + 1):
            migrator.set_db_version(target)
            assert migrator.get_db_version() == target
            migrator.set_db_version(0)
            assert migrator.get_db_version() == 0

        assert not table_exists(db_with_info, "report")
        assert not table_exists(db_with_info, "cluster_rule_toggle")

    def test_migrate_to_latest(self, db_with_info):
        migrator = Migrator(db_with_info)

        migrator.migrate_to_latest()

        assert migrator.get_db_version() == migrator.get_max_version()
        assert table_exists(db_with_info, "report")
        assert table_exists(db_with_info, "cluster_rule_toggle")


class TestInfoTableInit:
    """Tests for migration info table initialization."""

    def test_init(self, db):
        init_info_table(db)

        assert get_db_version(db) == 0

    def test_reinit_is_noop(self, db_with_info):
        """Re-initializing an initialized table changes nothing."""
        Migrator(db_with_info, [TEST_MIGRATION]).set_db_version(1)

        init_info_table(db_with_info)

        assert info_row_count(db_with_info) == 1
        assert get_db_version(db_with_info) == 1

    def test_init_not_one_row(self, db_with_info):
        db_with_info.execute("INSERT INTO migration_info(version) VALUES(10)")

        with pytest.raises(InfoTableCorruptedError) as exc_info:
            init_info_table(db_with_info)

        assert str(exc_info.value) == (
            "unexpected number of rows in migration info table (expected: 1, reality: 2)"
        )
        assert exc_info.value.actual == 2

    def test_init_does_not_repair_empty_table(self, db_with_info):
        db_with_info.execute("DELETE FROM migration_info")

        with pytest.raises(InfoTableCorruptedError) as exc_info:
            init_info_table(db_with_info)

        assert str(exc_info.value) == (
            "unexpected number of rows in migration info table (expected: 1, reality: 0)"
        )
        assert info_row_count(db_with_info) == 0

    def test_init_closed_db(self, db):
        db.close()

        with pytest.raises(sqlite3.ProgrammingError, match="closed database"):
            init_info_table(db)

    @pytest.mark.parametrize(
        "failing_statement, error_message",
        [
            (r"^CREATE TABLE migration_info", "create table error"),
            (r"^INSERT INTO migration_info", "insert error"),
            (r"^SELECT COUNT\(\*\) FROM migration_info", "count error"),
        ],
    )
    def test_init_db_error_rolls_back(self, db, failing_statement, error_message):
        conn = ScriptedConnection(db)
        conn.fail_on(failing_statement, sqlite3.OperationalError(error_message))

        with pytest.raises(sqlite3.OperationalError) as exc_info:
            init_info_table(conn)

        assert str(exc_info.value) == error_message
        assert conn.ran("ROLLBACK")
        assert not conn.ran("COMMIT")
        assert not table_exists(db, "migration_info")


class TestGetDBVersion:
    """Tests for reading the persisted version."""

    def test_initial_version_is_zero(self, db_with_info):
        assert get_db_version(db_with_info) == 0

    def test_missing_info_table(self, db):
        with pytest.raises(sqlite3.OperationalError) as exc_info:
            get_db_version(db)

        assert str(exc_info.value) == NO_SUCH_TABLE_ERROR_MSG

    def test_multiple_rows(self, db_with_info):
        db_with_info.execute("INSERT INTO migration_info(version) VALUES(10)")

        with pytest.raises(InfoTableMultipleRowsError) as exc_info:
            get_db_version(db_with_info)

        assert str(exc_info.value) == "migration info table contain multiple rows"

    def test_empty_table(self, db_with_info):
        db_with_info.execute("DELETE FROM migration_info")

        with pytest.raises(InfoTableEmptyError) as exc_info:
            get_db_version(db_with_info)

        assert str(exc_info.value) == "migration info table is empty"

    def test_invalid_type(self, db):
        db.execute("CREATE TABLE migration_info ( version TEXT )")
        db.execute("INSERT INTO migration_info(version) VALUES('hello world')")

        with pytest.raises(ValueError, match="hello world"):
            get_db_version(db)

    def test_negative_value(self, db_with_info):
        db_with_info.execute("UPDATE migration_info SET version = -1")

        with pytest.raises(ValueError, match="out of range"):
            get_db_version(db_with_info)

    def test_closed_db(self, db_with_info):
        db_with_info.close()

        with pytest.raises(sqlite3.ProgrammingError, match="closed database"):
            get_db_version(db_with_info)


class TestSetDBVersion:
    """Tests for moving between versions."""

    def test_step_up_and_down(self, migrator, db_with_info):
        migrator.set_db_version(1)
        assert migrator.get_db_version() == 1
        assert table_exists(db_with_info, "migration_test_table")

        migrator.set_db_version(0)
        assert migrator.get_db_version() == 0
        assert not table_exists(db_with_info, "migration_test_table")

        migrator.set_db_version(1)
        assert migrator.get_db_version() == 1
        assert table_exists(db_with_info, "migration_test_table")

    def test_same_version_does_no_work(self, db_with_info):
        Migrator(db_with_info, [TEST_MIGRATION]).set_db_version(1)
        conn = ScriptedConnection(db_with_info)

        Migrator(conn, [TEST_MIGRATION]).set_db_version(1)

        assert not conn.ran("BEGIN")
        assert get_db_version(db_with_info) == 1

    def test_target_too_high(self, db_with_info):
        """Only one migration is available, so version 2 is impossible."""
        conn = ScriptedConnection(db_with_info)
        migrator = Migrator(conn, [TEST_MIGRATION])

        with pytest.raises(InvalidTargetVersionError) as exc_info:
            migrator.set_db_version(migrator.get_max_version() + 1)

        assert str(exc_info.value) == "invalid target version (available version range is 0-1)"
        assert conn.statements == []
        assert not table_exists(db_with_info, "migration_test_table")

    def test_negative_target(self, migrator):
        with pytest.raises(InvalidTargetVersionError):
            migrator.set_db_version(-1)

    def test_non_integer_target(self, migrator):
        with pytest.raises(TypeError):
            migrator.set_db_version("1")

    def test_up_error(self, db_with_info):
        migrator = Migrator(db_with_info, [Migration(step_up=step_error, step_down=step_noop)])

        with pytest.raises(RuntimeError) as exc_info:
            migrator.set_db_version(1)

        assert str(exc_info.value) == STEP_ERROR_MSG
        assert migrator.get_db_version() == 0

    def test_down_error(self, db_with_info):
        migrator = Migrator(db_with_info, [Migration(step_up=step_noop, step_down=step_error)])
        migrator.set_db_version(1)

        with pytest.raises(RuntimeError) as exc_info:
            migrator.set_db_version(0)

        assert str(exc_info.value) == STEP_ERROR_MSG
        assert migrator.get_db_version() == 1

    def test_failing_step_stops_walk_at_last_committed_version(self, db_with_info):
        later_steps = []
        migrator = Migrator(
            db_with_info,
            [
                TEST_MIGRATION,
                Migration(step_up=step_error, step_down=step_noop),
                Migration(step_up=lambda tx: later_steps.append(3), step_down=step_noop),
            ],
        )

        with pytest.raises(RuntimeError) as exc_info:
            migrator.set_db_version(3)

        assert str(exc_info.value) == STEP_ERROR_MSG
        assert migrator.get_db_version() == 1
        assert table_exists(db_with_info, "migration_test_table")
        assert later_steps == []

    def test_failing_step_down_keeps_already_reverted_steps(self, db_with_info):
        migrator = Migrator(
            db_with_info,
            [
                Migration(step_up=step_noop, step_down=step_error),
                TEST_MIGRATION,
            ],
        )
        migrator.set_db_version(2)

        with pytest.raises(RuntimeError):
            migrator.set_db_version(0)

        assert migrator.get_db_version() == 1
        assert not table_exists(db_with_info, "migration_test_table")

    def test_schema_change_of_failed_step_is_rolled_back(self, db_with_info):
        def create_then_fail(tx):
            tx.execute("CREATE TABLE half_applied (col INTEGER)")
            raise RuntimeError(STEP_ERROR_MSG)

        migrator = Migrator(db_with_info, [Migration(step_up=create_then_fail, step_down=step_noop)])

        with pytest.raises(RuntimeError):
            migrator.set_db_version(1)

        assert not table_exists(db_with_info, "half_applied")
        assert migrator.get_db_version() == 0

    def test_current_version_too_high(self, migrator, db_with_info):
        db_with_info.execute("UPDATE migration_info SET version=10")

        with pytest.raises(CurrentVersionOutOfBoundsError) as exc_info:
            migrator.set_db_version(0)

        assert str(exc_info.value) == (
            "current version (10) is outside of available migration boundaries"
        )
        assert not table_exists(db_with_info, "migration_test_table")

    def test_closed_db(self, migrator, db_with_info):
        db_with_info.close()

        with pytest.raises(sqlite3.ProgrammingError, match="closed database"):
            migrator.set_db_version(0)

    def test_step_rolling_back_itself(self, db_with_info):
        migrator = Migrator(db_with_info, [Migration(step_up=step_rollback, step_down=step_noop)])

        with pytest.raises(TransactionClosedError) as exc_info:
            migrator.set_db_version(1)

        assert str(exc_info.value) == "transaction has already been committed or rolled back"
        assert migrator.get_db_version() == 0

    def test_step_cannot_commit_its_own_transaction(self, db_with_info):
        migrator = Migrator(
            db_with_info, [Migration(step_up=step_create_and_commit, step_down=step_noop)]
        )

        with pytest.raises(TransactionScopeError):
            migrator.set_db_version(1)

        assert migrator.get_db_version() == 0
        assert not table_exists(db_with_info, "migration_test_table")
        assert not db_with_info.in_transaction

    def test_abnormal_step_termination_is_rolled_back_and_reraised(self, db_with_info):
        def create_then_abort(tx):
            tx.execute("CREATE TABLE aborted (col INTEGER)")
            raise StepAbort("abort")

        conn = ScriptedConnection(db_with_info)
        migrator = Migrator(conn, [Migration(step_up=create_then_abort, step_down=step_noop)])

        with pytest.raises(StepAbort):
            migrator.set_db_version(1)

        assert conn.ran("ROLLBACK")
        assert not table_exists(db_with_info, "aborted")
        assert get_db_version(db_with_info) == 0

    @pytest.mark.parametrize("rowcount", [0, 2])
    def test_unexpected_affected_rows(self, db_with_info, rowcount):
        conn = ScriptedConnection(db_with_info)
        conn.fake_rowcount(r"^UPDATE migration_info SET version", rowcount)
        migrator = Migrator(conn, [TEST_MIGRATION])

        with pytest.raises(InfoTableCorruptedError) as exc_info:
            migrator.set_db_version(migrator.get_max_version())

        assert str(exc_info.value) == (
            "unexpected number of affected rows in migration info table "
            f"(expected: 1, reality: {rowcount})"
        )
        assert conn.ran("ROLLBACK")
        assert get_db_version(db_with_info) == 0
        assert not table_exists(db_with_info, "migration_test_table")

    def test_version_update_error(self, db_with_info):
        conn = ScriptedConnection(db_with_info)
        conn.fail_on(r"^UPDATE migration_info", sqlite3.OperationalError("update error"))
        migrator = Migrator(conn, [TEST_MIGRATION])

        with pytest.raises(sqlite3.OperationalError, match="update error"):
            migrator.set_db_version(1)

        assert not table_exists(db_with_info, "migration_test_table")

    def test_registries_are_independent(self, db):
        """Each migrator holds its own registry."""
        one = Migrator(db, [TEST_MIGRATION])
        two = Migrator(db, [TEST_MIGRATION, TEST_MIGRATION])

        assert one.get_max_version() == 1
        assert two.get_max_version() == 2


class TestMigrationLoader:
    """Tests for loading the packaged migration registry."""

    def test_packaged_migrations(self):
        migrations = get_all_migrations()

        assert [m.name for m in migrations] == [
            "report_table",
            "cluster_rule_toggle",
            "report_last_checked_index",
        ]
        assert all(callable(m.step_up) and callable(m.step_down) for m in migrations)

    def test_default_registry_is_packaged_migrations(self, db):
        assert Migrator(db).get_max_version() == len(get_all_migrations())

    def _make_package(self, tmp_path, monkeypatch, name: str, modules: dict[str, str]):
        package_dir = tmp_path / name
        package_dir.mkdir()
        (package_dir / "__init__.py").write_text("")
        for filename, source in modules.items():
            (package_dir / filename).write_text(source)
        monkeypatch.syspath_prepend(str(tmp_path))
        return package_dir

    def test_custom_package(self, tmp_path, monkeypatch):
        source = "NAME = 'noop'\ndef upgrade(tx):\n    pass\ndef downgrade(tx):\n    pass\n"
        package_dir = self._make_package(
            tmp_path, monkeypatch, "loader_ok_migrations", {"001_first.py": source}
        )

        migrations = get_all_migrations(package_dir, "loader_ok_migrations")

        assert len(migrations) == 1
        assert migrations[0].name == "noop"

    def test_gap_in_numbering(self, tmp_path, monkeypatch):
        source = "def upgrade(tx):\n    pass\ndef downgrade(tx):\n    pass\n"
        package_dir = self._make_package(
            tmp_path,
            monkeypatch,
            "loader_gap_migrations",
            {"001_first.py": source, "003_third.py": source},
        )

        with pytest.raises(MigrationLoadError, match="expected 2"):
            get_all_migrations(package_dir, "loader_gap_migrations")

    def test_missing_downgrade(self, tmp_path, monkeypatch):
        package_dir = self._make_package(
            tmp_path,
            monkeypatch,
            "loader_no_down_migrations",
            {"001_first.py": "def upgrade(tx):\n    pass\n"},
        )

        with pytest.raises(MigrationLoadError, match="downgrade"):
            get_all_migrations(package_dir, "loader_no_down_migrations")


class TestFileBackedDatabase:
    """Version survives reopening the database."""

    def test_version_persists(self, temp_db):
        conn = connect(temp_db)
        init_info_table(conn)
        Migrator(conn, [TEST_MIGRATION]).set_db_version(1)
        conn.close()

        reopened = connect(temp_db)
        try:
            assert get_db_version(reopened) == 1
            assert table_exists(reopened, "migration_test_table")
        finally:
            reopened.close()
