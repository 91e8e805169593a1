"""Exceptions for the series cache.

Infrastructure failures of a cache backend are reported as CacheStoreError
so the fetch layer can handle them without depending on sqlite3.
"""


class CacheError(Exception):
    """Base exception for all cache errors."""


class CacheStoreError(CacheError):
    """Raised when a cache backend cannot read or write.

    Wraps the backend's own exception (e.g. sqlite3.OperationalError on a
    locked database).
    """

    def __init__(self, operation: str, message: str) -> None:
        """Initialize the error.

        Args:
            operation: The backend operation that failed.
            message: Human-readable error message.
        """
        self.operation = operation
        super().__init__(f"Cache {operation} failed: {message}")


class CacheMigrationError(CacheError):
    """Raised when a cache schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
