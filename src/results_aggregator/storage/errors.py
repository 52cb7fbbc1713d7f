"""
Storage errors.
"""


class StorageError(Exception):
    """Base class for storage errors."""

    pass


class ItemNotFoundError(StorageError):
    """Requested item does not exist in the storage."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item with ID {item_id} was not found in the storage")


class OldReportError(StorageError):
    """A newer report is already stored for the cluster."""

    def __init__(self, cluster_name: str, stored_at: str, collected_at: str):
        self.cluster_name = cluster_name
        super().__init__(
            f"report for cluster {cluster_name} collected at {collected_at} "
            f"is older than the stored one ({stored_at})"
        )


class SchemaVersionMismatchError(StorageError):
    """Database schema is not at the version this release expects."""

    def __init__(self, current_version: int, expected_version: int):
        self.current_version = current_version
        self.expected_version = expected_version
        super().__init__(
            f"database schema version ({current_version}) does not match "
            f"the latest available version ({expected_version}); run the migration command"
        )
