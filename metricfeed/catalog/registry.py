"""Metric catalog: static lookup from metric id to descriptor."""

from collections.abc import Iterable, Iterator
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from metricfeed.catalog.models import (
    DEFAULT_SAMPLING_INTERVAL,
    MetricDescriptor,
    MetricUnit,
    SamplingInterval,
)


logger = structlog.get_logger()

DEFAULT_METRIC_ID = "supply/profit_relative"


class CatalogError(Exception):
    """Raised when a catalog file cannot be loaded or validated."""

    def __init__(self, path: Path, message: str) -> None:
        """Initialize the error.

        Args:
            path: Catalog file that failed to load.
            message: Human-readable error message.
        """
        self.path = path
        super().__init__(f"Invalid metric catalog {path}: {message}")


class CatalogFile(BaseModel):
    """Schema of a YAML catalog file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    metrics: list[MetricDescriptor] = Field(default_factory=list)


BUILTIN_METRICS: tuple[MetricDescriptor, ...] = (
    MetricDescriptor(
        id="market/price_usd_close",
        name="Price",
        short_name="Price",
        unit=MetricUnit.USD,
        sampling_interval=SamplingInterval.TEN_MINUTES,
    ),
    MetricDescriptor(
        id="market/marketcap_usd",
        name="Market Cap",
        short_name="Market Cap",
        unit=MetricUnit.USD,
        sampling_interval=SamplingInterval.TEN_MINUTES,
    ),
    MetricDescriptor(
        id="supply/profit_relative",
        name="Percent Supply in Profit",
        short_name="Supply in Profit",
        unit=MetricUnit.PERCENTAGE,
    ),
    MetricDescriptor(
        id="addresses/active_count",
        name="Active Addresses",
        short_name="Active Addresses",
        unit=MetricUnit.COUNT,
    ),
    MetricDescriptor(
        id="transactions/count",
        name="Transaction Count",
        short_name="Transactions",
        unit=MetricUnit.COUNT,
    ),
    MetricDescriptor(
        id="market/mvrv",
        name="MVRV Ratio",
        short_name="MVRV",
        unit=MetricUnit.RATIO,
    ),
    MetricDescriptor(
        id="mining/hash_rate_mean",
        name="Hash Rate",
        short_name="Hash Rate",
        unit=MetricUnit.HASH_RATE,
    ),
    MetricDescriptor(
        id="supply/active_more_1y_percent",
        name="Supply Last Active 1+ Years",
        short_name="1Y+ Supply",
        unit=MetricUnit.PERCENTAGE,
    ),
    MetricDescriptor(
        id="indicators/sopr",
        name="SOPR",
        short_name="SOPR",
        unit=MetricUnit.RATIO,
    ),
    MetricDescriptor(
        id="indicators/fear_greed",
        name="Fear & Greed Index",
        short_name="Fear & Greed",
        unit=MetricUnit.PERCENTAGE,
    ),
)


class MetricCatalog:
    """Read-only registry of metric descriptors keyed by id."""

    def __init__(self, metrics: Iterable[MetricDescriptor] = BUILTIN_METRICS) -> None:
        """Initialize the catalog.

        Args:
            metrics: Descriptors to register. Later duplicates replace earlier ones.
        """
        self._metrics: dict[str, MetricDescriptor] = {m.id: m for m in metrics}

    def __iter__(self) -> Iterator[MetricDescriptor]:
        return iter(self._metrics.values())

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, metric_id: object) -> bool:
        return metric_id in self._metrics

    def lookup(self, metric_id: str) -> MetricDescriptor | None:
        """Look up a metric descriptor.

        Args:
            metric_id: API metric id.

        Returns:
            The descriptor, or None if the id is unknown.
        """
        return self._metrics.get(metric_id)

    def sampling_interval_for(self, metric_id: str) -> SamplingInterval:
        """Get the sampling interval, falling back to hourly for unknown ids."""
        descriptor = self.lookup(metric_id)
        if descriptor is None:
            return DEFAULT_SAMPLING_INTERVAL
        return descriptor.sampling_interval

    def point_budget_for(self, metric_id: str) -> int:
        """Get the point budget, falling back to the hourly budget for unknown ids."""
        return self.sampling_interval_for(metric_id).point_budget

    @classmethod
    def from_yaml(cls, path: Path) -> "MetricCatalog":
        """Load a catalog from a YAML file.

        Args:
            path: Path to a file with a top-level `metrics` list.

        Returns:
            Catalog containing the file's metrics.

        Raises:
            CatalogError: If the file is missing, unparseable, or invalid.
        """
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CatalogError(path, str(e)) from e

        try:
            catalog_file = CatalogFile.model_validate(parsed)
        except ValidationError as e:
            raise CatalogError(path, f"{e.error_count()} validation errors") from e

        logger.info(
            "catalog_loaded",
            component="catalog",
            path=str(path),
            metric_count=len(catalog_file.metrics),
        )
        return cls(catalog_file.metrics)
