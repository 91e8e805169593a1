"""Unit tests for fetch models and configuration."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from metricfeed.fetch.config import FetchConfig
from metricfeed.fetch.models import (
    SERIES_ADAPTER,
    CachedFallback,
    Failure,
    FailureKind,
    FetchFailure,
    Success,
    TimeValue,
)
from tests.helpers.time import FIXED_NOW


class TestTimeValue:
    """Tests for TimeValue."""

    def test_decodes_unix_seconds(self) -> None:
        """Test that integer `t` is read as Unix seconds in UTC."""
        point = TimeValue.model_validate({"t": 1710504000, "v": 42})

        assert point.t == datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
        assert point.v == 42.0

    def test_naive_datetime_treated_as_utc(self) -> None:
        """Test that naive datetimes are assumed UTC."""
        point = TimeValue(t=datetime(2024, 3, 15, 12, 0), v=1.0)

        assert point.t.tzinfo is not None
        assert point.t == FIXED_NOW

    def test_serializes_to_wire_format(self) -> None:
        """Test that `t` is dumped back to integer seconds."""
        point = TimeValue(t=FIXED_NOW, v=0.5)

        assert point.model_dump(mode="json") == {"t": 1710504000, "v": 0.5}

    def test_series_json_preserves_points(self) -> None:
        """Test that a dumped series decodes to the same points."""
        series = [TimeValue(t=FIXED_NOW - timedelta(hours=i), v=i) for i in range(3)]

        decoded = SERIES_ADAPTER.validate_json(SERIES_ADAPTER.dump_json(series))

        assert decoded == series


class TestFetchFailure:
    """Tests for FetchFailure."""

    @pytest.mark.parametrize(
        ("kind", "retryable"),
        [
            (FailureKind.NETWORK, True),
            (FailureKind.SERVER, True),
            (FailureKind.UNKNOWN, True),
            (FailureKind.CLIENT, False),
            (FailureKind.DECODE, False),
            (FailureKind.MISSING_CREDENTIAL, False),
            (FailureKind.TRANSIENT_UNAVAILABLE, False),
        ],
    )
    def test_is_retryable(self, kind: FailureKind, retryable: bool) -> None:
        """Test the retryable partition of failure kinds."""
        assert FetchFailure(kind=kind).is_retryable is retryable


class TestOutcomes:
    """Tests for outcome variants."""

    def test_kinds(self) -> None:
        """Test that each variant carries its discriminator."""
        failure = FetchFailure(kind=FailureKind.SERVER, status_code=503)

        assert Success(series=[]).kind.value == "success"
        assert (
            CachedFallback(series=[], cached_at=FIXED_NOW, failure=failure).kind.value
            == "cached_fallback"
        )
        assert Failure(failure=failure).kind.value == "failure"

    def test_cached_fallback_age(self) -> None:
        """Test age of a cached fallback."""
        outcome = CachedFallback(
            series=[],
            cached_at=FIXED_NOW - timedelta(minutes=20),
            failure=FetchFailure(kind=FailureKind.NETWORK),
        )

        assert outcome.age(FIXED_NOW) == timedelta(minutes=20)

    def test_outcomes_are_frozen(self) -> None:
        """Test that outcomes cannot be mutated."""
        outcome = Success(series=[])

        with pytest.raises(ValidationError):
            outcome.series = [TimeValue(t=FIXED_NOW, v=1.0)]  # type: ignore[misc]


class TestFetchConfig:
    """Tests for FetchConfig."""

    def test_defaults(self) -> None:
        """Test default configuration."""
        config = FetchConfig()

        assert config.base_url == "https://api.glassnode.com"
        assert config.default_asset == "BTC"
        assert config.request_timeout_seconds == 10.0
        assert config.resource_timeout_seconds == 15.0
        assert config.retry_policy.max_attempts == 2

    def test_rejects_non_http_base_url(self) -> None:
        """Test that the base URL must be http(s)."""
        with pytest.raises(ValidationError):
            FetchConfig(base_url="ftp://example.com")

    def test_rejects_unknown_fields(self) -> None:
        """Test that unknown settings are rejected."""
        with pytest.raises(ValidationError):
            FetchConfig(max_retries=3)  # type: ignore[call-arg]
