"""Response classification: transport outcome -> success, retryable, or fatal."""

import json

from pydantic import ValidationError

from metricfeed.fetch.constants import (
    HTTP_STATUS_CLIENT_ERROR_MAX,
    HTTP_STATUS_CLIENT_ERROR_MIN,
    HTTP_STATUS_OK,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    MAX_ERROR_MESSAGE_CHARS,
)
from metricfeed.fetch.models import (
    SERIES_ADAPTER,
    Classification,
    FailureKind,
    FetchFailure,
    Verdict,
)
from metricfeed.fetch.transport import TransportError, TransportResponse


def extract_error_message(body: bytes) -> str | None:
    """Extract a human-readable message from an error response body.

    Tries a JSON object with an `error` or `message` string first, then
    falls back to the raw text truncated to 100 characters. An envelope
    whose field is present but empty has no message.

    Args:
        body: Response body bytes.

    Returns:
        The message, or None if the body has no usable text.
    """
    try:
        envelope = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        envelope = None

    if isinstance(envelope, dict):
        for field in ("error", "message"):
            value = envelope.get(field)
            if isinstance(value, str):
                return value or None

    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    return text[:MAX_ERROR_MESSAGE_CHARS]


def classify_transport_error(error: TransportError) -> Classification:
    """Classify a network-level failure (no HTTP response).

    Args:
        error: The transport error.

    Returns:
        Retryable NETWORK classification.
    """
    return Classification(
        verdict=Verdict.RETRYABLE,
        failure=FetchFailure(kind=FailureKind.NETWORK, message=error.reason),
    )


def classify_response(response: TransportResponse) -> Classification:
    """Classify an HTTP response.

    Args:
        response: Status code and body from the transport.

    Returns:
        SUCCESS with the decoded series, or a FATAL/RETRYABLE failure.
    """
    status = response.status_code

    if status == HTTP_STATUS_OK:
        try:
            series = SERIES_ADAPTER.validate_json(response.body)
        except ValidationError as e:
            return Classification(
                verdict=Verdict.FATAL,
                failure=FetchFailure(
                    kind=FailureKind.DECODE,
                    status_code=status,
                    message=f"Failed to decode series ({e.error_count()} errors)",
                ),
            )
        return Classification(verdict=Verdict.SUCCESS, series=series)

    message = extract_error_message(response.body)

    if HTTP_STATUS_CLIENT_ERROR_MIN <= status < HTTP_STATUS_CLIENT_ERROR_MAX:
        return Classification(
            verdict=Verdict.FATAL,
            failure=FetchFailure(
                kind=FailureKind.CLIENT, status_code=status, message=message
            ),
        )

    if HTTP_STATUS_SERVER_ERROR_MIN <= status < HTTP_STATUS_SERVER_ERROR_MAX:
        return Classification(
            verdict=Verdict.RETRYABLE,
            failure=FetchFailure(
                kind=FailureKind.SERVER, status_code=status, message=message
            ),
        )

    return Classification(
        verdict=Verdict.RETRYABLE,
        failure=FetchFailure(kind=FailureKind.UNKNOWN, status_code=status),
    )
