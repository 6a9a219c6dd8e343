# src/fusebatch/ingestion/queue.py
"""Bounded multi-producer/multi-consumer queue of envelopes.

queue.Queue has no notion of closing, so a consumer could never tell "empty
for now" apart from "empty forever". EventQueue adds close(): after it,
put() is refused and get() keeps returning queued envelopes until the queue
is drained, then raises QueueClosed.

Thread Safety:
    All methods are safe to call from any thread.
"""

from __future__ import annotations

import threading
import time
from collections import deque

from fusebatch.contracts.envelope import Envelope


class QueueClosed(Exception):
    """The queue is closed (put) or closed and drained (get)."""


class EventQueue:
    """Fixed-capacity FIFO with blocking put/get and close semantics.

    Example:
        q = EventQueue(capacity=512)
        q.put(envelope)            # blocks while full
        item = q.get(timeout=0.5)  # None on timeout
        q.close()                  # wakes every waiter
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._items: deque[Envelope] = deque()
        self._closed = False
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        with self._mutex:
            return self._closed

    def qsize(self) -> int:
        with self._mutex:
            return len(self._items)

    def full(self) -> bool:
        with self._mutex:
            return len(self._items) >= self._capacity

    def put(self, envelope: Envelope) -> None:
        """Append an envelope, blocking without limit while the queue is full.

        Raises:
            QueueClosed: If the queue is closed before or while waiting.
        """
        with self._not_full:
            while not self._closed and len(self._items) >= self._capacity:
                self._not_full.wait()
            if self._closed:
                raise QueueClosed("queue is closed")
            self._items.append(envelope)
            self._not_empty.notify()

    def get(self, timeout: float | None = None) -> Envelope | None:
        """Pop the oldest envelope.

        Args:
            timeout: Maximum seconds to wait for an item. None waits forever.

        Returns:
            The envelope, or None if the timeout elapsed with the queue empty.

        Raises:
            QueueClosed: If the queue is closed and holds nothing more.
        """
        with self._not_empty:
            if timeout is None:
                while not self._items and not self._closed:
                    self._not_empty.wait()
            else:
                end = time.monotonic() + max(0.0, timeout)
                while not self._items and not self._closed:
                    remaining = end - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._not_empty.wait(remaining)
            if self._items:
                envelope = self._items.popleft()
                self._not_full.notify()
                return envelope
            raise QueueClosed("queue is closed and drained")

    def close(self) -> None:
        """Refuse further puts and wake every blocked producer and consumer.

        Envelopes already queued stay available to get(). Idempotent.
        """
        with self._mutex:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
