# ABOUTME: Single-subscriber event channel used by the coordinator to publish progress and results.
# ABOUTME: Each emit() is delivered once, synchronously, on the emitting thread.

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class EventChannel(Generic[T]):
    """Callback registration for one kind of event.

    At most one subscriber is expected per session; connecting a new one
    replaces the old. Events emitted while nobody listens are not queued,
    but the latest one is kept in `last` for late readers.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._callback: Callable[[T], None] | None = None
        self._last: T | None = None
        self._lock = threading.Lock()

    def connect(self, callback: Callable[[T], None]) -> None:
        with self._lock:
            self._callback = callback

    def disconnect(self) -> None:
        with self._lock:
            self._callback = None

    @property
    def last(self) -> T | None:
        return self._last

    def emit(self, event: T) -> None:
        with self._lock:
            self._last = event
            callback = self._callback
        if callback is not None:
            callback(event)
