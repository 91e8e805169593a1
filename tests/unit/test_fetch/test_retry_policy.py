"""Unit tests for retry policy decisions."""

import pytest
from pydantic import ValidationError

from metricfeed.fetch.models import FailureKind, FetchFailure, RetryPolicy


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.max_attempts == 2
        assert policy.backoff_seconds == 0.5

    def test_custom_values(self) -> None:
        """Test custom retry policy values."""
        policy = RetryPolicy(max_attempts=4, backoff_seconds=2.0)

        assert policy.max_attempts == 4
        assert policy.backoff_seconds == 2.0

    def test_rejects_zero_attempts(self) -> None:
        """Test that at least one attempt is required."""
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_backoff(self) -> None:
        """Test that backoff cannot be negative."""
        with pytest.raises(ValidationError):
            RetryPolicy(backoff_seconds=-1.0)


class TestShouldRetry:
    """Tests for retry decision logic."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create the default two-attempt policy."""
        return RetryPolicy()

    @pytest.mark.parametrize(
        "kind", [FailureKind.NETWORK, FailureKind.SERVER, FailureKind.UNKNOWN]
    )
    def test_retryable_kinds_retried_once(
        self, policy: RetryPolicy, kind: FailureKind
    ) -> None:
        """Test that retryable failures get exactly one more attempt."""
        failure = FetchFailure(kind=kind)

        assert policy.should_retry(failure, attempt=1) is True
        assert policy.should_retry(failure, attempt=2) is False

    @pytest.mark.parametrize(
        "kind",
        [
            FailureKind.CLIENT,
            FailureKind.DECODE,
            FailureKind.MISSING_CREDENTIAL,
            FailureKind.TRANSIENT_UNAVAILABLE,
        ],
    )
    def test_fatal_kinds_never_retried(
        self, policy: RetryPolicy, kind: FailureKind
    ) -> None:
        """Test that fatal failures stop on the first attempt."""
        failure = FetchFailure(kind=kind, status_code=400)

        assert policy.should_retry(failure, attempt=1) is False

    def test_single_attempt_policy_never_retries(self) -> None:
        """Test that max_attempts=1 disables retries."""
        policy = RetryPolicy(max_attempts=1)
        failure = FetchFailure(kind=FailureKind.SERVER, status_code=503)

        assert policy.should_retry(failure, attempt=1) is False

    def test_larger_budget(self) -> None:
        """Test retry decisions with a larger attempt budget."""
        policy = RetryPolicy(max_attempts=3)
        failure = FetchFailure(kind=FailureKind.NETWORK)

        assert policy.should_retry(failure, attempt=1) is True
        assert policy.should_retry(failure, attempt=2) is True
        assert policy.should_retry(failure, attempt=3) is False
