"""Credential redaction utilities for logging."""

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


# Query parameters that must never appear in logs
SENSITIVE_PARAMS = frozenset({"api_key", "apikey", "token", "access_token"})

REDACTED_VALUE = "[REDACTED]"

_MIN_ANONYMIZE_LENGTH = 10
_MASK_CHAR = "•"


def redact_params(params: dict[str, str]) -> dict[str, str]:
    """Redact sensitive query parameters for logging.

    Args:
        params: Original query parameters.

    Returns:
        New dictionary with sensitive values redacted.
    """
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_PARAMS else value
        for key, value in params.items()
    }


def redact_url(url: str) -> str:
    """Redact credentials from a URL.

    Handles both `user:pass@` userinfo and sensitive query parameters.

    Args:
        url: URL that may contain credentials.

    Returns:
        URL with credentials redacted.
    """
    url = re.sub(r"(https?://)([^:/]+):([^@/]+)@", r"\1[REDACTED]:[REDACTED]@", url)

    parts = urlsplit(url)
    if not parts.query:
        return url

    query = [
        (key, REDACTED_VALUE if key.lower() in SENSITIVE_PARAMS else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="[]")))


def anonymize_key(key: str) -> str:
    """Mask an API key for display, keeping its first and last four characters.

    Short keys are fully masked.

    Args:
        key: The API key.

    Returns:
        Masked key, e.g. "abcd••••••••wxyz".
    """
    if len(key) <= _MIN_ANONYMIZE_LENGTH:
        return _MASK_CHAR * max(4, len(key))
    return f"{key[:4]}{_MASK_CHAR * 8}{key[-4:]}"
