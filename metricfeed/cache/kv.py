"""Key-value backends for the series cache.

Backends guarantee that every key passed to a single `put` call is replaced
atomically: a concurrent `get` sees either all old or all new values.
No ordering or transactionality is provided across separate `put` calls.
"""

import sqlite3
import threading
import time
from collections.abc import Generator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

import structlog

from metricfeed.cache.errors import CacheStoreError
from metricfeed.cache.migrations import SCHEMA_VERSION, migrate, schema_version


logger = structlog.get_logger()

# Seconds a writer waits for another process's lock before failing
DEFAULT_BUSY_TIMEOUT_SECONDS = 5.0


class KeyValueStore(Protocol):
    """Protocol for the narrow storage interface behind the series cache."""

    def get(self, keys: Sequence[str]) -> dict[str, str]:
        """Read several keys from one consistent snapshot.

        Args:
            keys: Keys to read.

        Returns:
            Mapping of the keys that exist to their values.

        Raises:
            CacheStoreError: If the backend cannot be read.
        """
        ...

    def put(self, values: Mapping[str, str]) -> None:
        """Replace several keys atomically.

        Args:
            values: Keys and their new values.

        Raises:
            CacheStoreError: If the backend cannot be written.
        """
        ...


class MemoryKeyValueStore:
    """In-process backend guarded by a lock."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, keys: Sequence[str]) -> dict[str, str]:
        with self._lock:
            return {key: self._data[key] for key in keys if key in self._data}

    def put(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._data.update(values)

    def keys(self) -> list[str]:
        """List stored keys (for inspection in tests and the CLI)."""
        with self._lock:
            return sorted(self._data)


class SqliteKeyValueStore:
    """SQLite backend shareable between processes.

    Uses WAL mode so readers never block on a writer in another process,
    and a busy timeout so concurrent writers queue instead of failing.
    """

    def __init__(
        self,
        db_path: Path | str,
        busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
            busy_timeout_seconds: How long to wait for a locked database.
        """
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout_seconds
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._log = logger.bind(component="cache", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open the database and apply migrations.

        Creates the database file and parent directories if they don't exist.

        Raises:
            CacheStoreError: If the database cannot be opened.
        """
        if self._conn is not None:
            return

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self._db_path),
                timeout=self._busy_timeout,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        except (OSError, sqlite3.Error) as e:
            raise CacheStoreError("connect", str(e)) from e

        try:
            old_version = schema_version(conn)
            applied = migrate(conn)
        except sqlite3.Error as e:
            conn.close()
            raise CacheStoreError("migrate", str(e)) from e
        except Exception:
            conn.close()
            raise
        self._conn = conn

        self._log.info(
            "cache_connected",
            old_version=old_version,
            new_version=SCHEMA_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.debug("cache_closed")

    def __enter__(self) -> "SqliteKeyValueStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            msg = "Database not connected. Call connect() first."
            raise CacheStoreError("connect", msg)
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[sqlite3.Connection]:
        """Run a write transaction with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            The connection, inside an open transaction.

        Raises:
            CacheStoreError: If the transaction fails; it is rolled back.
        """
        conn = self._ensure_connected()
        start_ns = time.perf_counter_ns()

        with self._lock:
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                self._log.error("transaction_failed", op=operation, error=str(e))
                raise CacheStoreError(operation, str(e)) from e

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._log.debug(
            "transaction_complete", op=operation, duration_ms=round(duration_ms, 2)
        )

    def get(self, keys: Sequence[str]) -> dict[str, str]:
        """Read several keys in one statement (one consistent snapshot)."""
        if not keys:
            return {}

        conn = self._ensure_connected()
        placeholders = ", ".join("?" for _ in keys)
        try:
            with self._lock:
                rows = conn.execute(
                    f"SELECT key, value FROM kv WHERE key IN ({placeholders})",  # noqa: S608
                    tuple(keys),
                ).fetchall()
        except sqlite3.Error as e:
            raise CacheStoreError("get", str(e)) from e

        return {row["key"]: row["value"] for row in rows}

    def put(self, values: Mapping[str, str]) -> None:
        """Replace several keys in one transaction."""
        if not values:
            return

        updated_at = datetime.now(UTC).isoformat()
        with self._transaction("put") as conn:
            conn.executemany(
                """
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                [(key, value, updated_at) for key, value in values.items()],
            )

    def keys(self) -> list[str]:
        """List stored keys."""
        conn = self._ensure_connected()
        try:
            with self._lock:
                rows = conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise CacheStoreError("keys", str(e)) from e
        return [row["key"] for row in rows]
