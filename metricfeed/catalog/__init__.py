"""Metric catalog: descriptors, sampling intervals, and point budgets."""

from metricfeed.catalog.models import (
    DEFAULT_SAMPLING_INTERVAL,
    MetricDescriptor,
    MetricUnit,
    SamplingInterval,
)
from metricfeed.catalog.registry import (
    BUILTIN_METRICS,
    DEFAULT_METRIC_ID,
    CatalogError,
    MetricCatalog,
)


__all__ = [
    "BUILTIN_METRICS",
    "DEFAULT_METRIC_ID",
    "DEFAULT_SAMPLING_INTERVAL",
    "CatalogError",
    "MetricCatalog",
    "MetricDescriptor",
    "MetricUnit",
    "SamplingInterval",
]
