"""
Commitmeta Fetching Package

This package provides the infrastructure shared by the CI status and avatar
schedulers: the request queue, per-provider rate limit state, the HTTP
client and the scheduler base class.

Components:
- constants: Timeouts, pause durations, attempt caps and page size
- provider: Provider enumeration
- exceptions: Error taxonomy of a fetch attempt
- http_client: HTTP client resolving every call to one FetchResult
- rate_limit_manager: Per-instance provider timeouts
- request_queue: Queue ordered by check-after time with merge on duplicates
- fetch_scheduler: Base class with the Idle/Polling state machine
"""

from .constants import (
    REQUEST_TIMEOUT,
    POLL_INTERVAL,
    MAX_ATTEMPTS,
    PER_PAGE,
    DEFAULT_MAXIMUM_STATUSES,
    DEFAULT_USER_AGENT,
)
from .provider import Provider
from .exceptions import FetchError, TransportError, ParseError, MisconfiguredError
from .http_client import HttpClientManager, HttpRequest, FetchResult
from .rate_limit_manager import RateLimitInfo, RateLimitState, parse_rate_limit_headers
from .request_queue import FetchRequest, RequestQueue
from .fetch_scheduler import FetchScheduler

__all__ = [
    'REQUEST_TIMEOUT',
    'POLL_INTERVAL',
    'MAX_ATTEMPTS',
    'PER_PAGE',
    'DEFAULT_MAXIMUM_STATUSES',
    'DEFAULT_USER_AGENT',
    'Provider',
    'FetchError',
    'TransportError',
    'ParseError',
    'MisconfiguredError',
    'HttpClientManager',
    'HttpRequest',
    'FetchResult',
    'RateLimitInfo',
    'RateLimitState',
    'parse_rate_limit_headers',
    'FetchRequest',
    'RequestQueue',
    'FetchScheduler',
]
