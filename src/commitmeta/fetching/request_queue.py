"""
Request queue ordered by the time a request may next be checked.

Requests with the same identity key are merged instead of queued twice,
and a callback fires whenever the queue goes from empty to non-empty so
the owning scheduler can start polling.
"""

import threading
import logging
from typing import Callable, Hashable, List, Optional

logger = logging.getLogger(__name__)


class FetchRequest:
    """
    One pending unit of work.

    Subclasses define the identity key and the payload merge.

    Attributes:
        commits: Candidate commit hashes referenced by the request
        check_after: Epoch ms before which the request must not be dispatched
        attempts: Number of failed attempts so far
    """

    def __init__(self, commits=None):
        self.commits: List[str] = list(commits or [])
        self.check_after = 0
        self.attempts = 0

    @property
    def key(self) -> Hashable:
        """Identity key; two requests with the same key are merged."""
        raise NotImplementedError

    def merge(self, other: 'FetchRequest') -> None:
        """Merge the payload of a duplicate request into this one."""
        for commit in other.commits:
            if commit not in self.commits:
                self.commits.append(commit)


class RequestQueue:
    """
    Queue of FetchRequests sorted ascending by `check_after`.

    Thread-safe; the items-available callback is invoked outside the lock.
    """

    def __init__(self, items_available_callback: Optional[Callable[[], None]] = None):
        self._queue: List[FetchRequest] = []
        self._items_available_callback = items_available_callback
        self._lock = threading.RLock()

    def add(self, request: FetchRequest, immediate: bool) -> bool:
        """
        Add a new request, or merge it into a queued one with the same key.

        A merged request keeps its position in the queue.

        Args:
            request: The request to add
            immediate: If True the request is due right away, otherwise it is
                placed just after the last queued request

        Returns:
            True if a new entry was inserted, False if it was merged
        """
        with self._lock:
            for queued in self._queue:
                if queued.key == request.key:
                    queued.merge(request)
                    logger.debug("Merged request %s into queued request", request.key)
                    return False

            if immediate or len(self._queue) == 0:
                request.check_after = 0
            else:
                request.check_after = self._queue[-1].check_after + 1
            became_available = self._insert_item(request)

        if became_available:
            self._notify_items_available()
        return True

    def add_item(self, item: FetchRequest, check_after: int, failed_attempt: bool) -> None:
        """
        Re-queue a request after a dispatch outcome.

        Args:
            item: The request to re-queue
            check_after: Epoch ms before which it must not be dispatched again
            failed_attempt: If True the attempt counter is incremented
        """
        with self._lock:
            item.check_after = check_after
            if failed_attempt:
                item.attempts += 1
            became_available = self._insert_item(item)

        if became_available:
            self._notify_items_available()

    def has_items(self) -> bool:
        with self._lock:
            return len(self._queue) > 0

    def take_item(self, now_ms: int) -> Optional[FetchRequest]:
        """
        Remove and return the head of the queue if it is due.

        Returns:
            The head request, or None if the queue is empty or the head's
            `check_after` lies in the future
        """
        with self._lock:
            if self._queue and self._queue[0].check_after <= now_ms:
                return self._queue.pop(0)
            return None

    def items(self) -> List[FetchRequest]:
        """Snapshot of the queued requests in order."""
        with self._lock:
            return list(self._queue)

    def clear(self) -> None:
        with self._lock:
            self._queue.clear()

    def __len__(self):
        with self._lock:
            return len(self._queue)

    def _insert_item(self, item: FetchRequest) -> bool:
        # Binary search for the insertion point, after entries with an equal check_after
        low, high = 0, len(self._queue) - 1
        prev_length = len(self._queue)
        while low <= high:
            mid = (low + high) >> 1
            if self._queue[mid].check_after <= item.check_after:
                low = mid + 1
            else:
                high = mid - 1
        self._queue.insert(low, item)
        return prev_length == 0

    def _notify_items_available(self):
        if self._items_available_callback is not None:
            self._items_available_callback()
