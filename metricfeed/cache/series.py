"""Series cache: durable cache key -> series store with write timestamps."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Annotated

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from metricfeed.cache.errors import CacheStoreError
from metricfeed.cache.kv import KeyValueStore
from metricfeed.fetch.models import SERIES_ADAPTER, Series


logger = structlog.get_logger()

TIMESTAMP_SUFFIX = "_timestamp"


def timestamp_key(key: str) -> str:
    """Get the companion key holding the write time of `key`."""
    return f"{key}{TIMESTAMP_SUFFIX}"


class CacheEntry(BaseModel):
    """A cached series and when it was written."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: Annotated[str, Field(min_length=1)]
    series: Series
    stored_at: datetime

    def age(self, now: datetime | None = None) -> timedelta:
        """Get how long ago the entry was written.

        Args:
            now: Reference time; defaults to the current time.

        Returns:
            Time elapsed since the write.
        """
        return (now or datetime.now(UTC)) - self.stored_at


class SeriesCache:
    """Cache of shaped series keyed by `metric_<metric_id>_<time_range>`.

    Entries are overwritten on every successful fetch and never evicted;
    staleness is left to callers through `CacheEntry.stored_at`. The series
    and its timestamp are written in a single backend `put`, so readers in
    other processes never see one without the other.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Key-value backend.
            clock: Source of the write timestamp; defaults to UTC now.
        """
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        self._log = logger.bind(component="cache")

    def put(self, key: str, series: Series) -> CacheEntry:
        """Store a series, replacing any existing entry.

        Args:
            key: Cache key.
            series: Series to store.

        Returns:
            The entry as written.

        Raises:
            CacheStoreError: If the backend cannot be written.
        """
        stored_at = self._clock()
        self._store.put(
            {
                key: SERIES_ADAPTER.dump_json(series).decode("utf-8"),
                timestamp_key(key): stored_at.isoformat(),
            }
        )
        self._log.debug("cache_write", key=key, points=len(series))
        return CacheEntry(key=key, series=series, stored_at=stored_at)

    def get(self, key: str) -> CacheEntry | None:
        """Read a cached entry.

        Never raises: backend errors and undecodable entries are logged and
        reported as a miss.

        Args:
            key: Cache key.

        Returns:
            The entry, or None if absent or unreadable.
        """
        ts_key = timestamp_key(key)
        try:
            values = self._store.get([key, ts_key])
        except CacheStoreError as e:
            self._log.warning("cache_read_failed", key=key, error=str(e))
            return None

        raw_series = values.get(key)
        if raw_series is None:
            return None

        try:
            series = SERIES_ADAPTER.validate_json(raw_series)
        except ValidationError as e:
            self._log.warning(
                "cache_entry_corrupt", key=key, errors=e.error_count()
            )
            return None

        stored_at = self._parse_timestamp(values.get(ts_key))
        return CacheEntry(key=key, series=series, stored_at=stored_at)

    def _parse_timestamp(self, raw: str | None) -> datetime:
        """Parse a stored write time.

        Entries written without a usable timestamp are reported as written
        at the Unix epoch, so callers treat them as maximally stale.
        """
        if raw:
            try:
                parsed = datetime.fromisoformat(raw)
            except ValueError:
                parsed = None
            if parsed is not None:
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        return datetime.fromtimestamp(0, tz=UTC)
