"""Short status texts shown in place of a chart when a fetch fails."""

from metricfeed.fetch.constants import (
    HTTP_STATUS_CLIENT_ERROR_MAX,
    HTTP_STATUS_CLIENT_ERROR_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
)
from metricfeed.fetch.models import Failure, FailureKind, FetchFailure, Outcome


MAX_MESSAGE_CHARS = 60
ELLIPSIS = "..."

MSG_DEVICE_LOCKED = "Device locked\nUnlock to update"
MSG_MISSING_KEY = "API key missing\nOpen app to add key"
MSG_INVALID_KEY = "Invalid API key\nCheck key in app"
MSG_RATE_LIMITED = "Rate limited\nTry again later"
MSG_SERVER_ERROR = "Server error\nTry again later"
MSG_NETWORK_ERROR = "Network error\nCheck connection"
MSG_DECODE_ERROR = "Data format error\nCheck metric config"


def truncate_message(message: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    """Shorten a message to fit the display.

    Args:
        message: Message text.
        limit: Maximum length including the ellipsis.

    Returns:
        The message, or its first `limit - 3` characters followed by "...".
    """
    if len(message) <= limit:
        return message
    return message[: limit - len(ELLIPSIS)] + ELLIPSIS


def _http_message(failure: FetchFailure) -> str:
    if failure.message:
        return truncate_message(failure.message)

    status = failure.status_code or 0
    if status == HTTP_STATUS_UNAUTHORIZED:
        return MSG_INVALID_KEY
    if status == HTTP_STATUS_TOO_MANY_REQUESTS:
        return MSG_RATE_LIMITED
    if HTTP_STATUS_CLIENT_ERROR_MIN <= status < HTTP_STATUS_CLIENT_ERROR_MAX:
        return f"Invalid request\nError {status}"
    if HTTP_STATUS_SERVER_ERROR_MIN <= status < HTTP_STATUS_SERVER_ERROR_MAX:
        return MSG_SERVER_ERROR
    return MSG_NETWORK_ERROR


def failure_message(failure: FetchFailure) -> str:
    """Get the status text for a failure.

    API-provided messages win over the generic per-status texts.

    Args:
        failure: The failure to describe.

    Returns:
        Display text, at most 60 characters for API messages.
    """
    match failure.kind:
        case FailureKind.TRANSIENT_UNAVAILABLE:
            return MSG_DEVICE_LOCKED
        case FailureKind.MISSING_CREDENTIAL:
            return MSG_MISSING_KEY
        case FailureKind.DECODE:
            return MSG_DECODE_ERROR
        case FailureKind.NETWORK:
            return MSG_NETWORK_ERROR
        case _:
            return _http_message(failure)


def status_message(outcome: Outcome) -> str | None:
    """Get the status text for an outcome.

    Success and cached fallbacks show data, so they have no status text.
    """
    if isinstance(outcome, Failure):
        return failure_message(outcome.failure)
    return None
