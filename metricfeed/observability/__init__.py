"""Observability module for logging and log redaction."""

from metricfeed.observability.logging import (
    bind_refresh_context,
    clear_refresh_context,
    configure_logging,
)
from metricfeed.observability.redact import anonymize_key, redact_params, redact_url


__all__ = [
    "anonymize_key",
    "bind_refresh_context",
    "clear_refresh_context",
    "configure_logging",
    "redact_params",
    "redact_url",
]
