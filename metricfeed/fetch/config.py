"""Configuration models for the metric fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from metricfeed.fetch.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_ASSET,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RESOURCE_TIMEOUT_SECONDS,
)
from metricfeed.fetch.models import RetryPolicy


class FetchConfig(BaseModel):
    """Configuration for the metric fetch layer.

    Central configuration for the API endpoint, timeouts, and retry policy.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(min_length=1)] = DEFAULT_API_BASE_URL
    default_asset: Annotated[str, Field(min_length=1, max_length=20)] = DEFAULT_ASSET
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "metricfeed/0.1.0"
    )
    request_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = (
        DEFAULT_REQUEST_TIMEOUT_SECONDS
    )
    resource_timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_RESOURCE_TIMEOUT_SECONDS
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip any trailing slash."""
        if not v.startswith(("http://", "https://")):
            msg = f"base_url must start with http:// or https://, got {v!r}"
            raise ValueError(msg)
        return v.rstrip("/")

