"""Durable series cache shared between processes."""

from metricfeed.cache.errors import CacheError, CacheMigrationError, CacheStoreError
from metricfeed.cache.kv import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from metricfeed.cache.series import CacheEntry, SeriesCache, timestamp_key


__all__ = [
    "CacheEntry",
    "CacheError",
    "CacheMigrationError",
    "CacheStoreError",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SeriesCache",
    "SqliteKeyValueStore",
    "timestamp_key",
]
