"""Periodic refresh loop driving the fetch executor for several targets."""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

import structlog

from metricfeed.fetch.executor import FetchExecutor, Sleep
from metricfeed.fetch.models import Outcome, TimeRangeMode
from metricfeed.observability.logging import (
    bind_refresh_context,
    clear_refresh_context,
)
from metricfeed.schedule.policy import RefreshDecision, decide_refresh


logger = structlog.get_logger()

DEFAULT_MAX_CONCURRENCY = 4


@dataclass(frozen=True)
class RefreshTarget:
    """A metric series to keep fresh."""

    metric_id: str
    time_range: TimeRangeMode = TimeRangeMode.LAST_24H
    asset: str | None = None


@dataclass
class RefreshResult:
    """Outcome of one refresh of one target."""

    target: RefreshTarget
    outcome: Outcome
    decision: RefreshDecision


ResultCallback = Callable[[RefreshResult], Awaitable[None] | None]


async def _refresh_target(
    executor: FetchExecutor,
    target: RefreshTarget,
    semaphore: asyncio.Semaphore,
) -> RefreshResult:
    async with semaphore:
        outcome = await executor.fetch(
            target.metric_id, target.time_range, target.asset
        )
    return RefreshResult(
        target=target, outcome=outcome, decision=decide_refresh(outcome)
    )


async def refresh_once(
    executor: FetchExecutor,
    targets: Sequence[RefreshTarget],
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> list[RefreshResult]:
    """Fetch every target once, concurrently.

    Args:
        executor: Fetch executor.
        targets: Targets to refresh.
        max_concurrency: Maximum fetches in flight.

    Returns:
        One result per target, in target order.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    return list(
        await asyncio.gather(
            *(_refresh_target(executor, t, semaphore) for t in targets)
        )
    )


class RefreshLoop:
    """Keeps a set of targets fresh, each on its own refresh schedule.

    Each target runs in its own task: fetch, decide, sleep for the decided
    delay, repeat. A semaphore bounds how many fetches run at once.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        targets: Sequence[RefreshTarget],
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        sleep: Sleep = asyncio.sleep,
        on_result: ResultCallback | None = None,
    ) -> None:
        """Initialize the loop.

        Args:
            executor: Fetch executor.
            targets: Targets to refresh.
            max_concurrency: Maximum fetches in flight.
            sleep: Async sleep used between refreshes.
            on_result: Called after every refresh; may be async.
        """
        self._executor = executor
        self._targets = list(targets)
        self._max_concurrency = max(1, max_concurrency)
        self._sleep = sleep
        self._on_result = on_result
        self._refresh_id = uuid.uuid4().hex[:12]
        self._log = logger.bind(component="refresh_loop")

    @property
    def refresh_id(self) -> str:
        """Get the identifier bound to this loop's log lines."""
        return self._refresh_id

    async def run(self, iterations: int | None = None) -> None:
        """Run until cancelled, or for a fixed number of refreshes per target.

        Args:
            iterations: Refreshes per target; None runs forever.
        """
        bind_refresh_context(self._refresh_id)
        semaphore = asyncio.Semaphore(self._max_concurrency)
        self._log.info(
            "refresh_loop_started",
            targets=len(self._targets),
            max_concurrency=self._max_concurrency,
            iterations=iterations,
        )
        try:
            async with asyncio.TaskGroup() as group:
                for target in self._targets:
                    group.create_task(self._run_target(target, semaphore, iterations))
        finally:
            self._log.info("refresh_loop_stopped")
            clear_refresh_context()

    async def _run_target(
        self,
        target: RefreshTarget,
        semaphore: asyncio.Semaphore,
        iterations: int | None,
    ) -> None:
        log = self._log.bind(
            metric_id=target.metric_id, time_range=target.time_range.value
        )
        count = 0
        while iterations is None or count < iterations:
            result = await _refresh_target(self._executor, target, semaphore)
            count += 1
            log.info(
                "refresh_decided",
                outcome=result.decision.outcome_kind.value,
                delay_s=result.decision.delay.total_seconds(),
                iteration=count,
            )
            await self._notify(result)

            if iterations is not None and count >= iterations:
                break
            await self._sleep(result.decision.delay.total_seconds())

    async def _notify(self, result: RefreshResult) -> None:
        if self._on_result is None:
            return
        pending = self._on_result(result)
        if pending is not None:
            await pending
