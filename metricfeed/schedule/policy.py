"""Refresh policy: how long to wait before the next fetch, by outcome.

This table is the single place that decides how aggressively the system
re-polls after each failure category.
"""

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from metricfeed.fetch.constants import HTTP_STATUS_UNAUTHORIZED
from metricfeed.fetch.models import (
    CachedFallback,
    FailureKind,
    FetchFailure,
    Outcome,
    OutcomeKind,
    Success,
)
from metricfeed.schedule.messages import status_message


SUCCESS_DELAY = timedelta(minutes=15)
TRANSIENT_UNAVAILABLE_DELAY = timedelta(minutes=2)
MISSING_CREDENTIAL_DELAY = timedelta(minutes=60)
UNAUTHORIZED_DELAY = timedelta(minutes=60)
FAILURE_DELAY = timedelta(minutes=5)
CACHED_FALLBACK_DELAY = timedelta(minutes=5)


class RefreshDecision(BaseModel):
    """When to refresh next, and what to tell the user meanwhile."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome_kind: OutcomeKind
    failure_kind: FailureKind | None = None
    delay: timedelta
    message: str | None = Field(
        default=None, description="Short status text for the display, if any"
    )


def _failure_delay(failure: FetchFailure) -> timedelta:
    if failure.kind == FailureKind.TRANSIENT_UNAVAILABLE:
        return TRANSIENT_UNAVAILABLE_DELAY
    if failure.kind == FailureKind.MISSING_CREDENTIAL:
        return MISSING_CREDENTIAL_DELAY
    if (
        failure.kind == FailureKind.CLIENT
        and failure.status_code == HTTP_STATUS_UNAUTHORIZED
    ):
        return UNAUTHORIZED_DELAY
    return FAILURE_DELAY


def refresh_delay(outcome: Outcome) -> timedelta:
    """Get the delay until the next fetch for an outcome.

    Args:
        outcome: Result of the last fetch.

    Returns:
        15 minutes after success, 5 minutes after a cache fallback, and a
        failure-specific delay otherwise.
    """
    if isinstance(outcome, Success):
        return SUCCESS_DELAY
    if isinstance(outcome, CachedFallback):
        return CACHED_FALLBACK_DELAY
    return _failure_delay(outcome.failure)


def decide_refresh(outcome: Outcome) -> RefreshDecision:
    """Build the refresh decision for an outcome.

    Args:
        outcome: Result of the last fetch.

    Returns:
        The decision, including the display message for failures.
    """
    failure_kind = None if isinstance(outcome, Success) else outcome.failure.kind
    return RefreshDecision(
        outcome_kind=outcome.kind,
        failure_kind=failure_kind,
        delay=refresh_delay(outcome),
        message=status_message(outcome),
    )
