"""
Thread-safe primitives for the fetch pipeline.
"""

import queue
import threading
from typing import Any, Optional


class ThreadSafeCounter:
    """Thread-safe counter with atomic operations."""

    def __init__(self, initial_value: int = 0):
        """
        Initialize counter with initial value.

        Args:
            initial_value: Starting value for the counter
        """
        self._value = initial_value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """
        Atomically increment counter and return new value.

        Args:
            amount: Amount to increment by (default: 1)

        Returns:
            New counter value after increment
        """
        with self._lock:
            self._value += amount
            return self._value

    def get_value(self) -> int:
        """
        Get current counter value.

        Returns:
            Current counter value
        """
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"ThreadSafeCounter(value={self.get_value()})"


class ConcurrencyPermit:
    """
    Counting permit limiting how many fetch tasks run at once.

    acquire() blocks while `limit` permits are held. The in-flight and
    peak counts are kept for observability only; admission never depends
    on reading them.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit)
        self._stats_lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0
        self._acquired_total = 0

    def acquire(self) -> None:
        self._semaphore.acquire()
        with self._stats_lock:
            self._in_flight += 1
            self._acquired_total += 1
            if self._in_flight > self._peak:
                self._peak = self._in_flight

    def release(self) -> None:
        with self._stats_lock:
            self._in_flight -= 1
        self._semaphore.release()

    @property
    def peak(self) -> int:
        """Highest number of permits held simultaneously so far."""
        with self._stats_lock:
            return self._peak

    @property
    def acquired_total(self) -> int:
        with self._stats_lock:
            return self._acquired_total


class _StreamClosed:
    """Marker put into a stream by close()."""

    def __repr__(self) -> str:
        return "STREAM_CLOSED"


STREAM_CLOSED = _StreamClosed()


class OutcomeStream:
    """
    One-way bounded stream with explicit close.

    Producers call send(); a single consumer calls receive_nowait().
    Every send and close sets the shared `ready` event so a consumer
    watching several streams can block until any of them has data.
    """

    def __init__(self, name: str, capacity: int, ready: Optional[threading.Event] = None):
        """
        Initialize stream.

        Args:
            name: Stream name for logging
            capacity: Maximum number of undelivered items; send() blocks when full
            ready: Event shared between streams of one consumer
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self.capacity = capacity
        self.ready = ready or threading.Event()
        # One extra slot so close() never blocks behind a full stream
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=capacity + 1)
        self._slots = threading.BoundedSemaphore(capacity)
        self._closed = threading.Event()
        self._sent = ThreadSafeCounter()

    def send(self, item: Any) -> None:
        """
        Deliver an item, blocking while the stream is full.

        Raises:
            RuntimeError: If the stream is already closed
        """
        if self._closed.is_set():
            raise RuntimeError(f"send on closed stream '{self.name}'")
        self._slots.acquire()
        self._queue.put(item)
        self._sent.increment()
        self.ready.set()

    def close(self) -> None:
        """Signal that no more items will be sent. Idempotent."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(STREAM_CLOSED)
        self.ready.set()

    def receive_nowait(self) -> Any:
        """
        Take the next item without blocking.

        Returns:
            The item, or STREAM_CLOSED once every sent item was received

        Raises:
            queue.Empty: If nothing is available yet
        """
        item = self._queue.get_nowait()
        if item is not STREAM_CLOSED:
            self._slots.release()
        return item

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def sent_count(self) -> int:
        return self._sent.get_value()
