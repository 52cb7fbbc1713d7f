"""
Exceptions raised by the migration engine.

Driver errors (sqlite3.Error and friends) and errors raised by step functions
are never wrapped; only conditions detected by the engine itself get a class
here.
"""


class MigrationError(Exception):
    """Base class for errors detected by the migration engine."""

    pass


class InvalidTargetVersionError(MigrationError):
    """Requested version lies outside of the available migration range."""

    def __init__(self, max_version: int):
        self.max_version = max_version
        super().__init__(f"invalid target version (available version range is 0-{max_version})")


class CurrentVersionOutOfBoundsError(MigrationError):
    """Persisted version lies outside of the available migration range."""

    def __init__(self, current_version: int):
        self.current_version = current_version
        super().__init__(
            f"current version ({current_version}) is outside of available migration boundaries"
        )


class InfoTableCorruptedError(MigrationError):
    """The migration info table does not hold exactly one version record."""

    def __init__(self, message: str, expected: int = 1, actual: int | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class InfoTableEmptyError(InfoTableCorruptedError):
    """The migration info table exists but has no rows."""

    def __init__(self):
        super().__init__("migration info table is empty", actual=0)


class InfoTableMultipleRowsError(InfoTableCorruptedError):
    """The migration info table has more than one row."""

    def __init__(self):
        super().__init__("migration info table contain multiple rows")


class MigrationLoadError(MigrationError):
    """The packaged migration modules do not form a valid registry."""

    pass
