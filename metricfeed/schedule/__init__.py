"""Refresh scheduling: delay policy, status messages, and the refresh loop."""

from metricfeed.schedule.loop import (
    RefreshLoop,
    RefreshResult,
    RefreshTarget,
    refresh_once,
)
from metricfeed.schedule.messages import failure_message, status_message
from metricfeed.schedule.policy import RefreshDecision, decide_refresh, refresh_delay


__all__ = [
    "RefreshDecision",
    "RefreshLoop",
    "RefreshResult",
    "RefreshTarget",
    "decide_refresh",
    "failure_message",
    "refresh_delay",
    "refresh_once",
    "status_message",
]
