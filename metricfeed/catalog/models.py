"""Data models for the metric catalog."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


METRICS_PATH_PREFIX = "/v1/metrics/"

# Point budgets per sampling interval (24h of samples)
TEN_MINUTE_POINT_BUDGET = 144
HOURLY_POINT_BUDGET = 24


class SamplingInterval(str, Enum):
    """Resolution at which the API samples a metric.

    The value is the `i` query parameter sent on the wire.
    """

    TEN_MINUTES = "10m"
    ONE_HOUR = "1h"

    @property
    def point_budget(self) -> int:
        """Maximum number of points covering 24 hours at this resolution."""
        if self is SamplingInterval.TEN_MINUTES:
            return TEN_MINUTE_POINT_BUDGET
        return HOURLY_POINT_BUDGET


DEFAULT_SAMPLING_INTERVAL = SamplingInterval.ONE_HOUR


class MetricUnit(str, Enum):
    """Unit a metric's values are expressed in (display metadata only)."""

    USD = "usd"
    PERCENTAGE = "percentage"
    RATIO = "ratio"
    COUNT = "count"
    HASH_RATE = "hash_rate"
    BTC = "btc"


class MetricDescriptor(BaseModel):
    """Static description of one remote metric.

    Immutable; looked up by id through the MetricCatalog.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: Annotated[
        str,
        Field(min_length=1, description="API metric id, e.g. market/price_usd_close"),
    ]
    name: Annotated[str, Field(min_length=1, description="Display name")]
    short_name: Annotated[str, Field(min_length=1, description="Compact display name")]
    unit: MetricUnit = Field(default=MetricUnit.RATIO, description="Value unit")
    sampling_interval: SamplingInterval = Field(
        default=DEFAULT_SAMPLING_INTERVAL,
        alias="interval",
        description="Sampling resolution requested from the API",
    )

    @property
    def point_budget(self) -> int:
        """Maximum number of points a consumer may receive for this metric."""
        return self.sampling_interval.point_budget

    @property
    def api_path(self) -> str:
        """API path for this metric."""
        return f"{METRICS_PATH_PREFIX}{self.id}"
