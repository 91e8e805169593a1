"""Constants for the metric fetch layer.

Centralizes HTTP and series-shaping constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK = 200
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_CLIENT_ERROR_MIN = 400
HTTP_STATUS_CLIENT_ERROR_MAX = 500
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Remote API
DEFAULT_API_BASE_URL = "https://api.glassnode.com"
DEFAULT_ASSET = "BTC"

# Query parameter names on the wire
PARAM_ASSET = "a"
PARAM_INTERVAL = "i"
PARAM_SINCE = "s"
PARAM_API_KEY = "api_key"

# Retry defaults
DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_BACKOFF_SECONDS = 0.5

# Timeouts (seconds)
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_RESOURCE_TIMEOUT_SECONDS = 15.0

# Requests always cover the last 24 hours
LOOKBACK_SECONDS = 24 * 60 * 60

# Points earlier than local midnight minus this margin are dropped in "today" mode
MIDNIGHT_MARGIN_SECONDS = 30 * 60

# Raw error text longer than this is truncated
MAX_ERROR_MESSAGE_CHARS = 100
