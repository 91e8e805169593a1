"""Fetch executor: bounded-retry metric pulls with cache fallback."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, tzinfo
from urllib.parse import urlencode

import structlog

from metricfeed.cache.errors import CacheStoreError
from metricfeed.cache.series import SeriesCache
from metricfeed.catalog.registry import DEFAULT_METRIC_ID, MetricCatalog
from metricfeed.credentials.provider import (
    CredentialProvider,
    CredentialUnavailableError,
)
from metricfeed.fetch.classifier import classify_response, classify_transport_error
from metricfeed.fetch.config import FetchConfig
from metricfeed.fetch.constants import PARAM_API_KEY
from metricfeed.fetch.metrics import FetchMetrics
from metricfeed.fetch.models import (
    CachedFallback,
    Classification,
    Failure,
    FailureKind,
    FetchFailure,
    FetchRequest,
    Outcome,
    Success,
    TimeRangeMode,
    Verdict,
)
from metricfeed.fetch.planner import RequestPlanner
from metricfeed.fetch.shaper import shape_series
from metricfeed.fetch.transport import Transport, TransportError
from metricfeed.observability.redact import redact_url


logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class FetchExecutor:
    """Fetches metric series with retries, shaping, and cache fallback.

    Every call resolves to exactly one outcome:
    - Success: fresh series, shaped and written to the cache
    - CachedFallback: the fetch failed and a cached series exists
    - Failure: the fetch failed and nothing is cached, or no usable credential

    Retryable failures are absorbed up to the retry policy's attempt budget.
    Fatal failures stop immediately but still consult the cache. Cancellation
    propagates; a cancel during a request or the backoff writes nothing.
    """

    def __init__(  # noqa: PLR0913
        self,
        credentials: CredentialProvider,
        transport: Transport,
        cache: SeriesCache,
        catalog: MetricCatalog | None = None,
        config: FetchConfig | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = _utc_now,
        local_tz: tzinfo | None = None,
        metrics: FetchMetrics | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            credentials: Source of the API key.
            transport: HTTP transport.
            cache: Series cache written on success and read on failure.
            catalog: Metric catalog; defaults to the built-in metrics.
            config: Fetch configuration; defaults to FetchConfig().
            sleep: Async sleep used for the inter-attempt backoff.
            clock: Source of the current time.
            local_tz: Timezone defining "midnight"; defaults to the system timezone.
            metrics: Metrics sink; defaults to the process-wide instance.
        """
        self._credentials = credentials
        self._transport = transport
        self._cache = cache
        self._config = config or FetchConfig()
        self._planner = RequestPlanner(catalog or MetricCatalog(), self._config)
        self._sleep = sleep
        self._clock = clock
        self._local_tz = local_tz
        self._metrics = metrics or FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch")

    async def fetch(
        self,
        metric_id: str,
        time_range: TimeRangeMode = TimeRangeMode.LAST_24H,
        asset: str | None = None,
    ) -> Outcome:
        """Fetch a metric series.

        Args:
            metric_id: API metric id.
            time_range: Window the caller wants to display.
            asset: Asset symbol; defaults to the configured asset.

        Returns:
            Success, CachedFallback, or Failure.
        """
        start_ns = time.perf_counter_ns()
        request = self._planner.plan(metric_id, time_range, asset, now=self._clock())
        log = self._log.bind(
            metric_id=metric_id,
            time_range=time_range.value,
            asset=request.asset,
            cache_key=request.cache_key,
        )

        outcome = await self._fetch_planned(request, log)

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)
        log.info(
            "fetch_complete",
            outcome=outcome.kind.value,
            points=len(outcome.series) if not isinstance(outcome, Failure) else 0,
            failure_kind=_failure_of(outcome),
            duration_ms=round(duration_ms, 2),
        )
        return outcome

    async def _fetch_planned(
        self,
        request: FetchRequest,
        log: structlog.stdlib.BoundLogger,
    ) -> Outcome:
        credential = self._read_credential(log)
        if isinstance(credential, FetchFailure):
            self._metrics.record_failure(credential.kind)
            return Failure(failure=credential)

        classification, attempts = await self._execute_with_retry(
            request, credential, log
        )

        if classification.verdict == Verdict.SUCCESS:
            return await self._complete_success(request, classification, log)

        last_failure = classification.failure or FetchFailure(kind=FailureKind.UNKNOWN)
        self._metrics.record_failure(last_failure.kind)
        log.warning(
            "fetch_failed",
            attempts=attempts,
            failure_kind=last_failure.kind.value,
            status_code=last_failure.status_code,
            message=last_failure.message,
        )
        return await self._fallback(request, last_failure, log)

    def _read_credential(
        self, log: structlog.stdlib.BoundLogger
    ) -> str | FetchFailure:
        """Read the API key, mapping absence and unavailability to failures."""
        try:
            api_key = self._credentials.read()
        except CredentialUnavailableError as e:
            log.warning("credential_unavailable", error=str(e))
            return FetchFailure(kind=FailureKind.TRANSIENT_UNAVAILABLE, message=str(e))

        if not api_key:
            log.warning("credential_missing")
            return FetchFailure(
                kind=FailureKind.MISSING_CREDENTIAL, message="No API key configured"
            )
        return api_key

    async def _execute_with_retry(
        self,
        request: FetchRequest,
        api_key: str,
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[Classification, int]:
        """Run attempts until success, a fatal failure, or the budget runs out.

        Returns:
            The last classification and the number of attempts made.
        """
        policy = self._config.retry_policy
        attempt = 0

        while True:
            attempt += 1
            classification = await self._attempt(request, api_key, attempt, log)

            if classification.verdict != Verdict.RETRYABLE:
                return classification, attempt

            failure = classification.failure
            if failure is None or not policy.should_retry(failure, attempt):
                return classification, attempt

            self._metrics.record_retry()
            log.info(
                "fetch_retry_scheduled",
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_s=policy.backoff_seconds,
                failure_kind=failure.kind.value,
            )
            await self._sleep(policy.backoff_seconds)

    async def _attempt(
        self,
        request: FetchRequest,
        api_key: str,
        attempt: int,
        log: structlog.stdlib.BoundLogger,
    ) -> Classification:
        """Perform and classify a single transport call."""
        params = {**request.params, PARAM_API_KEY: api_key}
        log.debug(
            "fetch_attempt",
            attempt=attempt,
            url=redact_url(f"{request.url}?{_query_string(params)}"),
        )

        try:
            response = await self._transport.get(request.url, params)
        except TransportError as e:
            self._metrics.record_attempt(0)
            log.info("transport_error", attempt=attempt, error=e.reason)
            return classify_transport_error(e)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_attempt(0)
            log.warning(
                "transport_unexpected_error",
                attempt=attempt,
                error_type=type(e).__name__,
                error=str(e),
            )
            return classify_transport_error(TransportError(f"Unexpected error: {e}"))

        self._metrics.record_attempt(response.status_code)
        classification = classify_response(response)
        log.debug(
            "attempt_classified",
            attempt=attempt,
            status_code=response.status_code,
            verdict=classification.verdict.value,
        )
        return classification

    async def _complete_success(
        self,
        request: FetchRequest,
        classification: Classification,
        log: structlog.stdlib.BoundLogger,
    ) -> Success:
        """Shape the decoded series, write it to the cache, and wrap it."""
        raw = classification.series or []
        shaped = shape_series(
            raw,
            request.time_range,
            request.point_budget,
            now=self._clock(),
            tz=self._local_tz,
        )
        if len(shaped) < len(raw):
            log.debug("series_shaped", raw_points=len(raw), kept_points=len(shaped))

        try:
            await asyncio.to_thread(self._cache.put, request.cache_key, shaped)
            self._metrics.record_cache_write(ok=True)
        except CacheStoreError as e:
            self._metrics.record_cache_write(ok=False)
            log.warning("cache_write_failed", error=str(e))

        self._metrics.record_success()
        return Success(series=shaped)

    async def _fallback(
        self,
        request: FetchRequest,
        failure: FetchFailure,
        log: structlog.stdlib.BoundLogger,
    ) -> CachedFallback | Failure:
        """Return the cached series for the request, or the terminal failure.

        The stored series is shaped again against the current clock and
        the request's point budget.
        """
        entry = await asyncio.to_thread(self._cache.get, request.cache_key)
        if entry is None:
            return Failure(failure=failure)

        series = shape_series(
            entry.series,
            request.time_range,
            request.point_budget,
            now=self._clock(),
            tz=self._local_tz,
        )

        self._metrics.record_cache_fallback()
        log.info(
            "cache_fallback",
            cached_at=entry.stored_at.isoformat(),
            points=len(series),
            stored_points=len(entry.series),
            failure_kind=failure.kind.value,
        )
        return CachedFallback(series=series, cached_at=entry.stored_at, failure=failure)

    async def validate_credential(self, metric_id: str = DEFAULT_METRIC_ID) -> bool:
        """Check that the configured API key is accepted by the API.

        Makes a single unretried request and never touches the cache.

        Args:
            metric_id: Lightweight metric to request.

        Returns:
            True only if the request succeeded and decoded.
        """
        request = self._planner.plan(metric_id, now=self._clock())
        log = self._log.bind(metric_id=metric_id, operation="validate_credential")

        credential = self._read_credential(log)
        if isinstance(credential, FetchFailure):
            return False

        classification = await self._attempt(request, credential, 1, log)
        valid = classification.verdict == Verdict.SUCCESS
        log.info(
            "credential_validated",
            valid=valid,
            status_code=classification.failure.status_code
            if classification.failure
            else None,
        )
        return valid


def _failure_of(outcome: Outcome) -> str | None:
    if isinstance(outcome, Success):
        return None
    return outcome.failure.kind.value


def _query_string(params: dict[str, str]) -> str:
    return urlencode(params)
