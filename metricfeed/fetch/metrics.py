"""Metrics collection for the metric fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar

from metricfeed.fetch.models import FailureKind


@dataclass
class FetchMetrics:
    """Metrics for metric fetch operations.

    Process-wide by default through `get_instance()`, but the executor
    accepts any instance so tests can observe their own counters.
    """

    fetch_attempts_total: dict[int, int] = field(default_factory=dict)
    fetch_retry_total: int = 0
    fetch_failures_total: dict[str, int] = field(default_factory=dict)
    fetch_success_total: int = 0
    cache_fallback_total: int = 0
    cache_write_total: int = 0
    cache_write_failures_total: int = 0
    fetch_duration_ms_total: float = 0.0
    fetch_count: int = 0

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self, status_code: int) -> None:
        """Record a transport attempt.

        Args:
            status_code: HTTP status code, or 0 when no response was received.
        """
        self.fetch_attempts_total[status_code] = (
            self.fetch_attempts_total.get(status_code, 0) + 1
        )

    def record_retry(self) -> None:
        """Record a retry attempt."""
        self.fetch_retry_total += 1

    def record_success(self) -> None:
        """Record a fetch that returned fresh data."""
        self.fetch_success_total += 1

    def record_failure(self, kind: FailureKind) -> None:
        """Record a fetch that ended without fresh data.

        Args:
            kind: Classification of the last failure.
        """
        key = kind.value
        self.fetch_failures_total[key] = self.fetch_failures_total.get(key, 0) + 1

    def record_cache_fallback(self) -> None:
        """Record a fetch answered from the cache."""
        self.cache_fallback_total += 1

    def record_cache_write(self, ok: bool) -> None:
        """Record a cache write attempt."""
        if ok:
            self.cache_write_total += 1
        else:
            self.cache_write_failures_total += 1

    def record_duration(self, duration_ms: float) -> None:
        """Record fetch duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.fetch_duration_ms_total += duration_ms
        self.fetch_count += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "fetch_attempts_total": dict(self.fetch_attempts_total),
            "fetch_retry_total": self.fetch_retry_total,
            "fetch_failures_total": dict(self.fetch_failures_total),
            "fetch_success_total": self.fetch_success_total,
            "cache_fallback_total": self.cache_fallback_total,
            "cache_write_total": self.cache_write_total,
            "cache_write_failures_total": self.cache_write_failures_total,
            "fetch_duration_ms_total": self.fetch_duration_ms_total,
            "fetch_count": self.fetch_count,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average fetch duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.fetch_count == 0:
            return 0.0
        return self.fetch_duration_ms_total / self.fetch_count
