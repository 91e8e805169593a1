"""Request planning: metric id + time range -> FetchRequest."""

from datetime import UTC, datetime

from metricfeed.catalog.models import METRICS_PATH_PREFIX
from metricfeed.catalog.registry import MetricCatalog
from metricfeed.fetch.config import FetchConfig
from metricfeed.fetch.constants import LOOKBACK_SECONDS
from metricfeed.fetch.models import FetchRequest, TimeRangeMode


def build_cache_key(metric_id: str, time_range: TimeRangeMode) -> str:
    """Build the persisted cache key for a metric and time range.

    Args:
        metric_id: API metric id.
        time_range: Requested time range.

    Returns:
        Key of the form `metric_<metric_id>_<time_range>`.
    """
    return f"metric_{metric_id}_{time_range.value}"


class RequestPlanner:
    """Builds deterministic fetch requests.

    Unknown metric ids are not rejected here: they degrade to the default
    sampling interval and are validated by the API.
    """

    def __init__(self, catalog: MetricCatalog, config: FetchConfig) -> None:
        """Initialize the planner.

        Args:
            catalog: Metric catalog for sampling interval lookup.
            config: Fetch configuration (base URL, default asset).
        """
        self._catalog = catalog
        self._config = config

    def plan(
        self,
        metric_id: str,
        time_range: TimeRangeMode = TimeRangeMode.LAST_24H,
        asset: str | None = None,
        now: datetime | None = None,
    ) -> FetchRequest:
        """Plan a request for a metric.

        Args:
            metric_id: API metric id (e.g. "market/price_usd_close").
            time_range: Window the caller wants to display.
            asset: Asset symbol; defaults to the configured asset.
            now: Planning time; defaults to the current time.

        Returns:
            The planned request.
        """
        now = now or datetime.now(UTC)
        interval = self._catalog.sampling_interval_for(metric_id)

        # Floor to whole seconds so repeated plans within a second agree.
        since_timestamp = int(now.timestamp()) - LOOKBACK_SECONDS

        return FetchRequest(
            metric_id=metric_id,
            time_range=time_range,
            asset=asset or self._config.default_asset,
            interval=interval,
            point_budget=self._catalog.point_budget_for(metric_id),
            since_timestamp=since_timestamp,
            url=f"{self._config.base_url}{METRICS_PATH_PREFIX}{metric_id}",
            cache_key=build_cache_key(metric_id, time_range),
        )
