"""Metric fetch layer: planning, transport, classification, and shaping.

The executor that ties these together lives in `metricfeed.fetch.executor`
and is imported from there, since it depends on the cache and credential
packages which themselves use the models defined here.
"""

from metricfeed.fetch.classifier import (
    classify_response,
    classify_transport_error,
    extract_error_message,
)
from metricfeed.fetch.config import FetchConfig
from metricfeed.fetch.metrics import FetchMetrics
from metricfeed.fetch.models import (
    SERIES_ADAPTER,
    CachedFallback,
    Classification,
    Failure,
    FailureKind,
    FetchFailure,
    FetchRequest,
    Outcome,
    OutcomeKind,
    RetryPolicy,
    Series,
    Success,
    TimeRangeMode,
    TimeValue,
    Verdict,
)
from metricfeed.fetch.planner import RequestPlanner, build_cache_key
from metricfeed.fetch.shaper import shape_series, window_start
from metricfeed.fetch.transport import (
    HttpxTransport,
    Transport,
    TransportError,
    TransportResponse,
)


__all__ = [
    # Models
    "SERIES_ADAPTER",
    "CachedFallback",
    "Classification",
    "Failure",
    "FailureKind",
    "FetchFailure",
    "FetchRequest",
    "Outcome",
    "OutcomeKind",
    "RetryPolicy",
    "Series",
    "Success",
    "TimeRangeMode",
    "TimeValue",
    "Verdict",
    # Config
    "FetchConfig",
    # Planning and shaping
    "RequestPlanner",
    "build_cache_key",
    "shape_series",
    "window_start",
    # Classification
    "classify_response",
    "classify_transport_error",
    "extract_error_message",
    # Transport
    "HttpxTransport",
    "Transport",
    "TransportError",
    "TransportResponse",
    # Metrics
    "FetchMetrics",
]
