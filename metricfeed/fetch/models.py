"""Data models for the metric fetch layer."""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_serializer,
    field_validator,
)

from metricfeed.catalog.models import SamplingInterval
from metricfeed.fetch.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    PARAM_ASSET,
    PARAM_INTERVAL,
    PARAM_SINCE,
)


class TimeValue(BaseModel):
    """One point of a metric time series.

    `t` is decoded from (and encoded back to) integer Unix seconds.
    """

    model_config = ConfigDict(frozen=True)

    t: datetime = Field(description="Sample timestamp (UTC)")
    v: float = Field(description="Sample value")

    @field_validator("t")
    @classmethod
    def ensure_utc(cls, t: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if t.tzinfo is None:
            return t.replace(tzinfo=UTC)
        return t

    @field_serializer("t")
    def serialize_t(self, t: datetime) -> int:
        """Encode the timestamp as Unix seconds, matching the wire format."""
        return int(t.timestamp())


Series = list[TimeValue]

SERIES_ADAPTER: TypeAdapter[list[TimeValue]] = TypeAdapter(list[TimeValue])


class TimeRangeMode(str, Enum):
    """Window a caller wants to display.

    - LAST_24H: the full 24 hours returned by the API
    - SINCE_MIDNIGHT: points from local midnight (minus a margin) onwards
    """

    LAST_24H = "24h"
    SINCE_MIDNIGHT = "today"


class FailureKind(str, Enum):
    """Classification of fetch failures for retry and scheduling decisions.

    - MISSING_CREDENTIAL: No API key configured
    - TRANSIENT_UNAVAILABLE: Credential store temporarily inaccessible
    - CLIENT: 4xx response, never retried
    - SERVER: 5xx response, retryable
    - NETWORK: No HTTP response (connection error, timeout)
    - DECODE: 200 response whose body is not a series
    - UNKNOWN: Any other status, retried conservatively
    """

    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
    TRANSIENT_UNAVAILABLE = "TRANSIENT_UNAVAILABLE"
    CLIENT = "CLIENT"
    SERVER = "SERVER"
    NETWORK = "NETWORK"
    DECODE = "DECODE"
    UNKNOWN = "UNKNOWN"


RETRYABLE_KINDS = frozenset(
    {FailureKind.NETWORK, FailureKind.SERVER, FailureKind.UNKNOWN}
)


class FetchFailure(BaseModel):
    """Typed failure from a fetch operation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: FailureKind = Field(description="Classification of the failure")
    status_code: int | None = Field(
        default=None, description="HTTP status code if a response was received"
    )
    message: str | None = Field(
        default=None, description="Message extracted from the response or transport"
    )

    @property
    def is_retryable(self) -> bool:
        """Check if another attempt may be made after this failure."""
        return self.kind in RETRYABLE_KINDS


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Attempts are bounded by `max_attempts`; retries wait a fixed backoff.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=5)] = DEFAULT_MAX_ATTEMPTS
    backoff_seconds: Annotated[float, Field(ge=0.0, le=60.0)] = DEFAULT_BACKOFF_SECONDS

    def should_retry(self, failure: FetchFailure, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            failure: The failure observed on this attempt.
            attempt: Current attempt number (1-indexed).

        Returns:
            True if another attempt should be made.
        """
        if attempt >= self.max_attempts:
            return False
        return failure.is_retryable


class FetchRequest(BaseModel):
    """Planned request for one metric pull.

    Recreated per call; never mutated. Does not carry the credential.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    metric_id: Annotated[str, Field(min_length=1)]
    time_range: TimeRangeMode
    asset: Annotated[str, Field(min_length=1)]
    interval: SamplingInterval
    point_budget: Annotated[int, Field(ge=1)]
    since_timestamp: int = Field(description="Unix seconds 24h before planning time")
    url: Annotated[str, Field(min_length=1)]
    cache_key: Annotated[str, Field(min_length=1)]

    @property
    def params(self) -> dict[str, str]:
        """Query parameters, excluding the API key."""
        return {
            PARAM_ASSET: self.asset,
            PARAM_INTERVAL: self.interval.value,
            PARAM_SINCE: str(self.since_timestamp),
        }


class Verdict(str, Enum):
    """Classifier decision for one attempt."""

    SUCCESS = "SUCCESS"
    RETRYABLE = "RETRYABLE"
    FATAL = "FATAL"


class Classification(BaseModel):
    """Result of classifying one transport outcome."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    verdict: Verdict
    series: Series | None = None
    failure: FetchFailure | None = None


class OutcomeKind(str, Enum):
    """Discriminator for fetch outcomes."""

    SUCCESS = "success"
    CACHED_FALLBACK = "cached_fallback"
    FAILURE = "failure"


class Success(BaseModel):
    """Fresh series fetched and shaped on this call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal[OutcomeKind.SUCCESS] = OutcomeKind.SUCCESS
    series: Series


class CachedFallback(BaseModel):
    """Previously cached series returned because the fetch failed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal[OutcomeKind.CACHED_FALLBACK] = OutcomeKind.CACHED_FALLBACK
    series: Series
    cached_at: datetime
    failure: FetchFailure = Field(description="Failure that triggered the fallback")

    def age(self, now: datetime | None = None) -> timedelta:
        """Get how old the cached series is."""
        return (now or datetime.now(UTC)) - self.cached_at


class Failure(BaseModel):
    """Terminal failure with no cached series to fall back on."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal[OutcomeKind.FAILURE] = OutcomeKind.FAILURE
    failure: FetchFailure


Outcome = Success | CachedFallback | Failure
