"""
HTTP client manager with one-shot result handling.

This module provides the HTTP client used by both schedulers. Every call
resolves to exactly one FetchResult, carrying either the response or a
TransportError, no matter how many errors the underlying request raises
while connecting and reading the body.
"""

import json
import time
import logging
from typing import Any, Dict, Optional

import requests
from requests.structures import CaseInsensitiveDict

from .constants import REQUEST_TIMEOUT, DEFAULT_USER_AGENT
from .exceptions import ParseError, TransportError

logger = logging.getLogger(__name__)


# pylint: disable=too-few-public-methods,too-many-arguments
class HttpRequest:
    """Description of a GET request built by a provider adapter."""

    def __init__(self, hostname: str, path: str, headers: Optional[Dict[str, str]] = None,
                 port: str = '', scheme: str = 'https'):
        self.hostname = hostname
        self.path = path
        self.headers = headers if headers is not None else {}
        self.port = port
        self.scheme = scheme

    @property
    def url(self) -> str:
        """Full URL of the request."""
        netloc = self.hostname
        if self.port:
            netloc = f"{netloc}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path}"

    def __repr__(self):
        return f"HttpRequest({self.url!r})"


class FetchResult:
    """
    Outcome of a single HTTP call.

    Exactly one of `status_code` and `error` is meaningful: a result with an
    error never carries a response.
    """

    def __init__(self, url: str, status_code: int = 0, headers=None,
                 content: bytes = b'', reason: str = '',
                 error: Optional[TransportError] = None):
        self.url = url
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content
        self.reason = reason
        self.error = error

    @classmethod
    def from_error(cls, url: str, error: TransportError) -> 'FetchResult':
        """Create a result for a request that failed on the network level."""
        return cls(url, error=error)

    @property
    def failed(self) -> bool:
        """True if the request didn't produce a response."""
        return self.error is not None

    @property
    def text(self) -> str:
        return self.content.decode('utf-8', errors='replace')

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ParseError: If the body isn't valid JSON
        """
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise ParseError(f"Invalid JSON body from {self.url}: {e}") from e

    def error_message(self) -> str:
        """Message of an API error response, falling back to the HTTP reason."""
        try:
            body = self.json()
        except ParseError:
            return self.reason
        if isinstance(body, dict) and body.get('message'):
            return str(body['message'])
        return self.reason


class _ResultLatch:
    """Holds the first result handed to it and ignores later ones."""

    def __init__(self):
        self.result: Optional[FetchResult] = None

    def resolve(self, result: FetchResult) -> bool:
        if self.result is not None:
            return False
        self.result = result
        return True


class HttpClientManager:
    """
    HTTP client shared by the requests of one scheduler instance.

    Features:
    - Single requests.Session with a fixed client identifier
    - Fixed per-call timeout
    - Network errors converted to a TransportError result, resolved once
    - Request statistics
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 user_agent: str = DEFAULT_USER_AGENT,
                 timeout: int = REQUEST_TIMEOUT):
        self.session = session if session is not None else requests.Session()
        self.user_agent = user_agent
        self.timeout = timeout
        self._stats = {
            'requests_made': 0,
            'requests_failed': 0,
        }

    def get(self, request: HttpRequest, provider_id: str) -> FetchResult:
        """
        Perform a GET request described by an adapter.

        Args:
            request: Request built by a provider adapter
            provider_id: Provider name used in log messages

        Returns:
            FetchResult: The single outcome of the call
        """
        headers = {'User-Agent': self.user_agent}
        headers.update(request.headers)
        return self._get(request.url, headers, provider_id)

    def get_url(self, url: str, provider_id: str) -> FetchResult:
        """Perform a plain GET request, e.g. to download an image."""
        return self._get(url, {'User-Agent': self.user_agent}, provider_id)

    def _get(self, url: str, headers: Dict[str, str], provider_id: str) -> FetchResult:
        latch = _ResultLatch()
        start_time = time.time()
        logger.debug("[%s] Making GET request to %s (timeout: %ds)", provider_id, url, self.timeout)
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout, stream=True)
            try:
                content = response.content
            except requests.exceptions.RequestException as e:
                self._on_error(latch, url, provider_id, e)
            else:
                latch.resolve(FetchResult(
                    url, response.status_code, response.headers, content,
                    response.reason or ''
                ))
            finally:
                response.close()
        except requests.exceptions.RequestException as e:
            self._on_error(latch, url, provider_id, e)

        result = latch.result
        duration = time.time() - start_time
        if result.failed:
            self._stats['requests_failed'] += 1
        else:
            self._stats['requests_made'] += 1
            logger.debug(
                "[%s] Request completed in %.2fs (status: %d)",
                provider_id, duration, result.status_code
            )
        return result

    def _on_error(self, latch: _ResultLatch, url: str, provider_id: str,
                  error: requests.exceptions.RequestException):
        logger.info("%s API HTTPS Error - %s", provider_id, error)
        latch.resolve(FetchResult.from_error(url, TransportError(str(error), provider_id)))

    def get_stats(self) -> Dict[str, Any]:
        """Get HTTP client statistics."""
        total_requests = self._stats['requests_made'] + self._stats['requests_failed']
        success_rate = (self._stats['requests_made'] / total_requests * 100) if total_requests > 0 else 0
        return {
            **self._stats,
            'success_rate': success_rate,
        }
