"""CLI commands for fetching and watching on-chain metrics."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

import click
import structlog

from metricfeed.cache.errors import CacheError
from metricfeed.cache.kv import MemoryKeyValueStore, SqliteKeyValueStore
from metricfeed.cache.series import SeriesCache
from metricfeed.catalog.registry import CatalogError, MetricCatalog
from metricfeed.credentials.provider import CredentialUnavailableError
from metricfeed.fetch.config import FetchConfig
from metricfeed.fetch.executor import FetchExecutor
from metricfeed.fetch.models import (
    CachedFallback,
    Failure,
    Outcome,
    Success,
    TimeRangeMode,
)
from metricfeed.fetch.planner import build_cache_key
from metricfeed.fetch.transport import HttpxTransport
from metricfeed.observability.logging import configure_logging
from metricfeed.observability.redact import anonymize_key
from metricfeed.schedule.loop import RefreshLoop, RefreshResult, RefreshTarget
from metricfeed.schedule.policy import RefreshDecision, decide_refresh
from metricfeed.settings.app import AppSettings, get_settings


logger = structlog.get_logger()

T = TypeVar("T")

RANGE_CHOICES = [mode.value for mode in TimeRangeMode]


@dataclass
class CliContext:
    """Options shared by all commands."""

    settings: AppSettings
    catalog: MetricCatalog


def _build_transport(config: FetchConfig) -> HttpxTransport:
    """Create the HTTP transport for a command."""
    return HttpxTransport(config)


def _outcome_to_dict(outcome: Outcome) -> dict[str, Any]:
    data: dict[str, Any] = {"outcome": outcome.kind.value}
    if not isinstance(outcome, Success):
        data["failure"] = outcome.failure.model_dump(mode="json")
    if not isinstance(outcome, Failure):
        data["series"] = [point.model_dump(mode="json") for point in outcome.series]
        data["points"] = len(outcome.series)
    if isinstance(outcome, CachedFallback):
        data["cached_at"] = outcome.cached_at.isoformat()
    return data


def _decision_to_dict(decision: RefreshDecision) -> dict[str, Any]:
    return {
        "delay_seconds": int(decision.delay.total_seconds()),
        "message": decision.message,
    }


def _open_store(settings: AppSettings, cache_path: Path | None) -> SqliteKeyValueStore:
    path = (cache_path or settings.resolved_cache_path()).expanduser()
    store = SqliteKeyValueStore(path)
    try:
        store.connect()
    except CacheError as e:
        click.echo(f"Error: Cannot open cache at {path}: {e}", err=True)
        sys.exit(1)
    return store


async def _with_executor(
    ctx: CliContext,
    store: SqliteKeyValueStore,
    action: Callable[[FetchExecutor], Awaitable[T]],
) -> T:
    config = ctx.settings.fetch_config()
    async with _build_transport(config) as transport:
        executor = FetchExecutor(
            credentials=ctx.settings.credential_provider(),
            transport=transport,
            cache=SeriesCache(store),
            catalog=ctx.catalog,
            config=config,
        )
        return await action(executor)


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--json-logs/--console-logs",
    default=False,
    help="Use JSON format for logs (default: console).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to a metrics catalog YAML file (default: built-in metrics).",
)
@click.pass_context
def cli(
    click_ctx: click.Context,
    json_logs: bool,
    verbose: bool,
    catalog_path: Path | None,
) -> None:
    """On-chain metric feed CLI."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    configure_logging(level=log_level, json_format=json_logs)

    settings = get_settings()
    catalog_path = catalog_path or settings.catalog_path
    try:
        catalog = (
            MetricCatalog.from_yaml(catalog_path) if catalog_path else MetricCatalog()
        )
    except CatalogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click_ctx.obj = CliContext(settings=settings, catalog=catalog)


@cli.command()
@click.argument("metric_id")
@click.option(
    "--range",
    "time_range",
    type=click.Choice(RANGE_CHOICES),
    default=TimeRangeMode.LAST_24H.value,
    help="Window to display: rolling 24h or since local midnight (default: 24h).",
)
@click.option(
    "--asset",
    type=str,
    default=None,
    help="Asset symbol (default: METRICFEED_ASSET or BTC).",
)
@click.option(
    "--cache-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to the SQLite cache (default: METRICFEED_CACHE_PATH).",
)
@click.pass_obj
def fetch(
    ctx: CliContext,
    metric_id: str,
    time_range: str,
    asset: str | None,
    cache_path: Path | None,
) -> None:
    """Fetch one metric series and print the outcome as JSON.

    Exits with status 1 when neither fresh nor cached data is available.
    """
    mode = TimeRangeMode(time_range)
    store = _open_store(ctx.settings, cache_path)
    with store:
        outcome: Outcome = asyncio.run(
            _with_executor(
                ctx, store, lambda executor: executor.fetch(metric_id, mode, asset)
            )
        )

    decision = decide_refresh(outcome)
    output = _outcome_to_dict(outcome)
    output["metric_id"] = metric_id
    output["time_range"] = mode.value
    output["next_refresh"] = _decision_to_dict(decision)
    click.echo(json.dumps(output, indent=2))

    if isinstance(outcome, Failure):
        sys.exit(1)


@cli.command()
@click.argument("metric_ids", nargs=-1, required=True)
@click.option(
    "--range",
    "time_range",
    type=click.Choice(RANGE_CHOICES),
    default=TimeRangeMode.LAST_24H.value,
    help="Window to display for every metric (default: 24h).",
)
@click.option(
    "--asset",
    type=str,
    default=None,
    help="Asset symbol (default: METRICFEED_ASSET or BTC).",
)
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=4,
    help="Maximum fetches in flight (default: 4).",
)
@click.option(
    "--iterations",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many refreshes per metric (default: run forever).",
)
@click.option(
    "--cache-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to the SQLite cache (default: METRICFEED_CACHE_PATH).",
)
@click.pass_obj
def watch(  # noqa: PLR0913
    ctx: CliContext,
    metric_ids: tuple[str, ...],
    time_range: str,
    asset: str | None,
    max_concurrency: int,
    iterations: int | None,
    cache_path: Path | None,
) -> None:
    """Keep metrics fresh, printing one JSON line per refresh."""
    mode = TimeRangeMode(time_range)
    targets = [
        RefreshTarget(metric_id=m, time_range=mode, asset=asset) for m in metric_ids
    ]

    def print_result(result: RefreshResult) -> None:
        line = _outcome_to_dict(result.outcome)
        line.pop("series", None)
        line["metric_id"] = result.target.metric_id
        line["next_refresh"] = _decision_to_dict(result.decision)
        click.echo(json.dumps(line))

    async def run_loop(executor: FetchExecutor) -> None:
        loop = RefreshLoop(
            executor,
            targets,
            max_concurrency=max_concurrency,
            on_result=print_result,
        )
        await loop.run(iterations=iterations)

    store = _open_store(ctx.settings, cache_path)
    with store:
        try:
            asyncio.run(_with_executor(ctx, store, run_loop))
        except KeyboardInterrupt:
            click.echo("Stopped.", err=True)


@cli.command("metrics")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
@click.pass_obj
def list_metrics(ctx: CliContext, json_output: bool) -> None:
    """List the metrics in the catalog."""
    if json_output:
        output = [
            {
                **m.model_dump(mode="json", by_alias=True),
                "point_budget": m.point_budget,
                "api_path": m.api_path,
            }
            for m in ctx.catalog
        ]
        click.echo(json.dumps(output, indent=2))
        return

    click.echo("Metrics")
    click.echo("=" * 40)
    for m in ctx.catalog:
        click.echo(
            f"  {m.id:<40} {m.short_name:<16} {m.sampling_interval.value:>4} "
            f"({m.point_budget} pts)"
        )


@cli.command("validate-key")
@click.pass_obj
def validate_key(ctx: CliContext) -> None:
    """Check that the configured API key is accepted by the API."""
    provider = ctx.settings.credential_provider()
    try:
        api_key = provider.read()
    except CredentialUnavailableError as e:
        click.echo(f"API key unavailable: {e}", err=True)
        sys.exit(1)

    if not api_key:
        click.echo(
            "API key missing. Set GLASSNODE_API_KEY or METRICFEED_API_KEY_FILE.",
            err=True,
        )
        sys.exit(1)

    config = ctx.settings.fetch_config()

    async def validate() -> bool:
        async with _build_transport(config) as transport:
            executor = FetchExecutor(
                credentials=provider,
                transport=transport,
                cache=SeriesCache(MemoryKeyValueStore()),
                catalog=ctx.catalog,
                config=config,
            )
            return await executor.validate_credential()

    if asyncio.run(validate()):
        click.echo(f"API key {anonymize_key(api_key)} is valid.")
        return

    click.echo(f"API key {anonymize_key(api_key)} was rejected.", err=True)
    sys.exit(1)


@cli.command("cache-show")
@click.argument("metric_id")
@click.option(
    "--range",
    "time_range",
    type=click.Choice(RANGE_CHOICES),
    default=TimeRangeMode.LAST_24H.value,
    help="Window the entry was fetched for (default: 24h).",
)
@click.option(
    "--cache-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to the SQLite cache (default: METRICFEED_CACHE_PATH).",
)
@click.pass_obj
def cache_show(
    ctx: CliContext,
    metric_id: str,
    time_range: str,
    cache_path: Path | None,
) -> None:
    """Print the cached series for a metric and its age."""
    key = build_cache_key(metric_id, TimeRangeMode(time_range))
    store = _open_store(ctx.settings, cache_path)
    with store:
        entry = SeriesCache(store).get(key)

    if entry is None:
        click.echo(f"No cached entry for {key}", err=True)
        sys.exit(1)

    output = {
        "key": entry.key,
        "stored_at": entry.stored_at.isoformat(),
        "age_seconds": int(entry.age(datetime.now(UTC)).total_seconds()),
        "points": len(entry.series),
        "series": [point.model_dump(mode="json") for point in entry.series],
    }
    click.echo(json.dumps(output, indent=2))


if __name__ == "__main__":
    cli()
