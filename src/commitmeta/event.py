"""Event emitter used to notify subscribers about cache updates."""

import threading
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Subscription:
    """Handle returned by EventEmitter.subscribe; dispose() unsubscribes."""

    def __init__(self, emitter: 'EventEmitter', listener: Listener):
        self._emitter = emitter
        self._listener = listener

    def dispose(self):
        if self._emitter is not None:
            self._emitter.unsubscribe(self._listener)
            self._emitter = None


class EventEmitter:
    """Calls every subscribed listener with each emitted event."""

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def unsubscribe(self, listener: Listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def has_subscribers(self) -> bool:
        with self._lock:
            return len(self._listeners) > 0

    def emit(self, event: Any):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Error in event listener %s: %s", listener, e, exc_info=True)

    def dispose(self):
        with self._lock:
            self._listeners.clear()
