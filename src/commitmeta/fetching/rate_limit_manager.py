"""
Rate limit state for tracking provider pauses.

This module keeps, per provider, the epoch-millisecond time before which no
request may be sent to that provider. Each scheduler owns its own
RateLimitState, so two managers (or two tests) never share timeouts.
"""

import datetime
import threading
import logging
from typing import Dict, Optional

from .provider import Provider

logger = logging.getLogger(__name__)


# pylint: disable=too-few-public-methods
class RateLimitInfo:
    """Rate limit information reported in response headers."""

    def __init__(self, limit: Optional[int], remaining: Optional[int], reset_ms: Optional[int]):
        self.limit = limit
        self.remaining = remaining
        self.reset_ms = reset_ms  # When the rate limit resets (epoch ms)

    @property
    def exhausted(self) -> bool:
        """True if the provider reported no remaining requests."""
        return self.remaining == 0

    def describe(self) -> str:
        """Short human readable summary for log lines."""
        reset = 'unknown'
        if self.reset_ms is not None:
            reset = datetime.datetime.fromtimestamp(self.reset_ms / 1000).strftime('%Y-%m-%d %H:%M:%S')
        return f"RateLimit={self.limit}/Remaining={self.remaining}/Reset={reset}"


def _parse_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_rate_limit_headers(headers, prefix: str) -> Optional[RateLimitInfo]:
    """
    Parse `<prefix>limit`, `<prefix>remaining` and `<prefix>reset` headers.

    The reset header is expected in epoch seconds.

    Args:
        headers: Case-insensitive response headers
        prefix: Header prefix, e.g. 'x-ratelimit-' or 'ratelimit-'

    Returns:
        RateLimitInfo, or None if none of the headers could be parsed
    """
    limit = _parse_int(headers.get(prefix + 'limit'))
    remaining = _parse_int(headers.get(prefix + 'remaining'))
    reset = _parse_int(headers.get(prefix + 'reset'))
    if limit is None and remaining is None and reset is None:
        return None
    return RateLimitInfo(limit, remaining, reset * 1000 if reset is not None else None)


class RateLimitState:
    """
    Per-instance provider timeouts.

    Features:
    - One `timeout_until` value (epoch ms) per provider, starting at 0
    - Never persisted
    - Thread-safe operations
    """

    def __init__(self):
        self._timeouts: Dict[Provider, int] = {}
        self._lock = threading.Lock()

    def get_timeout(self, provider: Provider) -> int:
        """Epoch ms before which the provider must not be called (0 if none)."""
        with self._lock:
            return self._timeouts.get(provider, 0)

    def is_rate_limited(self, provider: Provider, now_ms: int) -> bool:
        """
        Check if a provider is currently paused.

        Args:
            provider: Provider to check
            now_ms: Current time in epoch ms

        Returns:
            True if requests to the provider must be deferred
        """
        timeout = self.get_timeout(provider)
        if now_ms < timeout:
            logger.debug(
                "Provider %s is paused for %.1f more seconds",
                provider.display_name, (timeout - now_ms) / 1000
            )
            return True
        return False

    def pause_until(self, provider: Provider, timeout_ms: int) -> int:
        """Pause a provider until the given epoch ms time."""
        with self._lock:
            self._timeouts[provider] = timeout_ms
        logger.debug("Provider %s paused until %d", provider.display_name, timeout_ms)
        return timeout_ms

    def apply_rate_limit_info(self, provider: Provider, info: Optional[RateLimitInfo]) -> bool:
        """
        Pause the provider if the headers report an exhausted rate limit.

        Returns:
            True if a pause was set
        """
        if info is None:
            return False
        logger.debug('%s API %s', provider.display_name, info.describe())
        if not info.exhausted or info.reset_ms is None:
            return False
        self.pause_until(provider, info.reset_ms)
        logger.info(
            '%s API Rate Limit Reached - Paused fetching from %s until the Rate Limit is reset',
            provider.display_name, provider.display_name
        )
        return True

    def clear_all(self):
        """Clear all provider pauses."""
        with self._lock:
            self._timeouts.clear()

    def get_all_timeouts(self) -> Dict[str, int]:
        """Get the active timeouts keyed by provider name."""
        with self._lock:
            return {provider.value: timeout for provider, timeout in self._timeouts.items()}
