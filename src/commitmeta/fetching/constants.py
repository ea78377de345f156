"""
Constants for the commitmeta fetching infrastructure.

This module defines the timeouts, polling interval, pause durations and
retry limits shared by the CI status and avatar schedulers.

Timing Overview:
- Poll interval: how often a non-empty queue is checked (10 seconds)
- Request timeout: per HTTP call (15 seconds)
- Pauses: how long a provider is left alone after a failure (epoch ms offsets)
"""

# Timeout constants (in seconds)
REQUEST_TIMEOUT = 15        # For every provider API call and image download
POLL_INTERVAL = 10          # Interval of the polling job while the queue has items

# Pause constants (in milliseconds) - added to "now" to form a provider timeout
SERVER_ERROR_PAUSE_MS = 600000      # 10 minutes after a 5xx response
TRANSPORT_ERROR_PAUSE_MS = 300000   # 5 minutes after a socket/request error
RATE_LIMIT_FALLBACK_PAUSE_MS = 600000  # Used when the reset header is missing

# Retry constants
MAX_ATTEMPTS = 4            # Retries allowed while the commit can't be found

# Pagination constants
PER_PAGE = 100
DEFAULT_MAXIMUM_STATUSES = 1000

# Avatar freshness (in milliseconds)
AVATAR_REFRESH_AGE_MS = 1209600000      # 14 days
IDENTICON_REFRESH_AGE_MS = 345600000    # 4 days
AVATAR_SIZE = 162

# Remote source lookups kept while the avatar queue is busy
REMOTE_SOURCE_CACHE_TTL = 3600
REMOTE_SOURCE_CACHE_SIZE = 256

# Client identifier sent with every request
DEFAULT_USER_AGENT = "commitmeta"

# HTTP status codes treated as "rate limit reached"
RATE_LIMIT_STATUS_CODES = [403, 429]

# HTTP status code GitHub uses when it doesn't know a commit yet
COMMIT_NOT_FOUND_STATUS_CODE = 422
