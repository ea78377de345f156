"""
Base class for the metadata fetch schedulers.

A FetchScheduler owns a RequestQueue, a polling job on a
`schedule.Scheduler`, its own RateLimitState and an HTTP client. It is
either Idle (no polling job) or Polling (a job runs `fetch_interval` every
10 seconds while the queue has items). The job is due at once when the
queue becomes non-empty, so the first tick runs on the thread driving the
`schedule.Scheduler` and never on the caller's. Each tick dispatches at most
one due request; subclasses turn requests into provider calls and decide what
a successful response means.

Outcome routing shared by all providers:
- transport error: pause the provider 5 minutes, re-queue
- 403 / 429: pause until the rate limit resets, re-queue
- 422: re-queue with attempts + 1 while retries remain
- 5xx: pause the provider 10 minutes, re-queue
- anything else: handled by the subclass (drop by default)
"""

import datetime
import time
import threading
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import schedule

from .constants import (
    COMMIT_NOT_FOUND_STATUS_CODE,
    MAX_ATTEMPTS,
    POLL_INTERVAL,
    RATE_LIMIT_FALLBACK_PAUSE_MS,
    RATE_LIMIT_STATUS_CODES,
    SERVER_ERROR_PAUSE_MS,
    TRANSPORT_ERROR_PAUSE_MS,
)
from .http_client import FetchResult, HttpClientManager, HttpRequest
from .provider import Provider
from .rate_limit_manager import RateLimitInfo, RateLimitState
from .request_queue import FetchRequest, RequestQueue
from ..event import EventEmitter, Subscription
from ..scheduler import cancel_job, schedule_every
from ..storage import CacheStorage

logger = logging.getLogger(__name__)


class FetchScheduler(ABC):
    """
    Queue, timer and outcome routing shared by the CI and avatar managers.

    Subclasses must implement _process_item() and _on_success().
    """

    def __init__(self, storage: CacheStorage,
                 http_client: Optional[HttpClientManager] = None,
                 scheduler: Optional[schedule.Scheduler] = None,
                 name: str = 'fetch'):
        self.name = name
        self.storage = storage
        self.http_client = http_client if http_client is not None else HttpClientManager()
        self.scheduler = scheduler if scheduler is not None else schedule.Scheduler()
        self.rate_limits = RateLimitState()
        self.queue = RequestQueue(self._on_items_available)
        self.emitter = EventEmitter()

        self._job: Optional[schedule.Job] = None
        self._wakeup: Optional[Callable[[], None]] = None
        self._disposed = False
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @property
    def is_polling(self) -> bool:
        """True while the polling job is scheduled."""
        return self._job is not None

    @property
    def is_idle(self) -> bool:
        """True when nothing is queued and no polling job is scheduled."""
        return not self.is_polling and not self.queue.has_items()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def on_update(self, listener) -> Subscription:
        """Subscribe to cache updates; returns a Subscription to dispose."""
        return self.emitter.subscribe(listener)

    def set_wakeup(self, callback: Optional[Callable[[], None]]) -> None:
        """Callback run when the polling job is registered, e.g. SchedulerThread.wake."""
        self._wakeup = callback

    def dispose(self):
        """Stop polling and discard the result of any request still in flight."""
        with self._state_lock:
            self._disposed = True
        self._stop_polling()
        self.emitter.dispose()
        logger.debug("%s scheduler disposed", self.name)

    # Timer handling

    def _on_items_available(self):
        self._start_polling()

    def _start_polling(self) -> bool:
        """Register the polling job, due immediately; False if already polling."""
        with self._state_lock:
            if self._job is not None or self._disposed:
                return False
            self._job = schedule_every(self.scheduler, POLL_INTERVAL, self.fetch_interval,
                                       f'{self.name}-fetch-interval')
            self._job.next_run = datetime.datetime.now()
        logger.debug("%s scheduler polling started", self.name)
        if self._wakeup is not None:
            self._wakeup()
        return True

    def _stop_polling(self):
        with self._state_lock:
            job, self._job = self._job, None
        if job is not None:
            cancel_job(self.scheduler, job)
            logger.debug("%s scheduler polling stopped", self.name)

    def fetch_interval(self):
        """
        Run one tick: dispatch the head of the queue if it is due.

        Only one tick runs at a time; a tick started while another one is in
        progress returns immediately.
        """
        if not self._tick_lock.acquire(blocking=False):
            return
        try:
            if self._disposed:
                return
            item = self.queue.take_item(self._now_ms())
            if item is not None:
                self._process_item(item)
            if not self.queue.has_items():
                self._stop_polling()
                self._on_queue_drained()
                if self.queue.has_items():
                    # Added by another thread while polling was being stopped
                    self._start_polling()
        finally:
            self._tick_lock.release()

    @abstractmethod
    def _process_item(self, item: FetchRequest) -> None:
        """Dispatch one request taken from the queue."""

    def _on_queue_drained(self) -> None:
        """Called when the queue became empty and polling stopped."""

    # Dispatch and outcome routing

    def _defer_if_rate_limited(self, item: FetchRequest, provider: Provider) -> bool:
        """Re-queue the item unchanged if the provider is paused."""
        now = self._now_ms()
        if self.rate_limits.is_rate_limited(provider, now):
            self.queue.add_item(item, self.rate_limits.get_timeout(provider), False)
            return True
        return False

    def _dispatch(self, request: HttpRequest, provider: Provider) -> Optional[FetchResult]:
        """Send a request; returns None if the scheduler was disposed meanwhile."""
        result = self.http_client.get(request, provider.display_name)
        if self._disposed:
            logger.debug("Discarding result of %s, scheduler disposed", request.url)
            return None
        return result

    # pylint: disable=too-many-arguments
    def _handle_result(self, item: FetchRequest, provider: Provider, result: FetchResult,
                       rate_limit: Optional[RateLimitInfo], authenticated: bool) -> None:
        """Route the outcome of a dispatched request."""
        now = self._now_ms()
        if result.failed:
            timeout = self.rate_limits.pause_until(provider, now + TRANSPORT_ERROR_PAUSE_MS)
            self.queue.add_item(item, timeout, False)
            return

        logger.info('%s API - (%d)%s', provider.display_name, result.status_code, result.url)
        paused = self.rate_limits.apply_rate_limit_info(provider, rate_limit)
        status = result.status_code

        if status == 200:
            self._on_success(item, provider, result)
        elif status in RATE_LIMIT_STATUS_CODES:
            self._on_rate_limited(item, provider, paused, authenticated)
        elif status == COMMIT_NOT_FOUND_STATUS_CODE and self._can_retry_not_found(item):
            self.queue.add_item(item, 0, True)
        elif status >= 500:
            timeout = self.rate_limits.pause_until(provider, now + SERVER_ERROR_PAUSE_MS)
            self.queue.add_item(item, timeout, False)
        else:
            self._on_unhandled_status(item, provider, result)

    def _on_rate_limited(self, item: FetchRequest, provider: Provider,
                         paused: bool, authenticated: bool) -> None:
        if not paused:
            timeout = self.rate_limits.get_timeout(provider)
            if timeout <= self._now_ms():
                self.rate_limits.pause_until(provider, self._now_ms() + RATE_LIMIT_FALLBACK_PAUSE_MS)
            logger.info(
                '%s API Rate Limit Reached - Paused fetching from %s until the Rate Limit is reset',
                provider.display_name, provider.display_name
            )
        if not authenticated:
            logger.info('%s API Rate Limit can upgrade by Access Token.', provider.display_name)
        self.queue.add_item(item, self.rate_limits.get_timeout(provider), False)

    def _can_retry_not_found(self, item: FetchRequest) -> bool:
        return item.attempts < MAX_ATTEMPTS

    def _retry_not_found(self, item: FetchRequest, description: str) -> bool:
        """Re-queue an item whose commit wasn't found yet; False if out of attempts."""
        if self._can_retry_not_found(item):
            logger.debug("%s not found, retrying (attempt %d)", description, item.attempts + 1)
            self.queue.add_item(item, 0, True)
            return True
        logger.info("%s not found after %d attempts, giving up", description, item.attempts + 1)
        return False

    @abstractmethod
    def _on_success(self, item: FetchRequest, provider: Provider, result: FetchResult) -> None:
        """Handle a 200 response."""

    def _on_unhandled_status(self, item: FetchRequest, provider: Provider,
                             result: FetchResult) -> None:
        logger.info(
            '%s API Error - (%d)%s', provider.display_name, result.status_code,
            result.error_message()
        )

    @staticmethod
    def _log_parse_error(provider: Provider, result: FetchResult) -> None:
        logger.info('%s API Error - (%d)API Result error.', provider.display_name, result.status_code)
