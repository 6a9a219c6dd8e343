# src/fusebatch/contracts/context.py
"""Delivery context: cancellation, deadline and log correlation for a submission.

A DeliveryContext travels with every envelope from add_event() to the
transport. It carries:
- a cancellation flag, shared with any child contexts derived from it
  (observed between transport attempts, never mid-request)
- an optional deadline on the monotonic clock (inherited by children, which
  may only shorten it)
- correlation fields bound onto the logger for every log line about the
  events submitted under it

Contexts compare and hash by identity. The batch accumulator groups the
envelopes it flushes by context, so events submitted under the same context
object travel in the same transport call.

Thread Safety:
    cancel() and the read methods are safe to call from any thread. Cancelling
    a context wakes every thread blocked in sleep() on it or on a descendant.
"""

from __future__ import annotations

import threading
import time
import weakref
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from fusebatch.contracts.errors import CANCELLED, DEADLINE_EXCEEDED, IngestionError


class DeliveryContext:
    """Cancellation scope for one or more submitted events.

    Example:
        ctx = DeliveryContext.with_timeout(10.0, request_id="abc")
        service.add_event(trace, context=ctx)
        ...
        ctx.cancel()  # no further attempts; pending backoff waits end at once

    Cancellation is cooperative. It is checked before each transport attempt
    and wakes any backoff wait, but it does not interrupt a request already
    on the wire. A deadline does bound such a request, since the transport
    caps its per-request timeout at remaining().
    """

    __slots__ = ("__weakref__", "_cancelled", "_cancellable", "_children", "_deadline", "_fields", "_lock")

    _background: DeliveryContext | None = None

    def __init__(
        self,
        *,
        deadline: float | None = None,
        fields: Mapping[str, Any] | None = None,
        cancellable: bool = True,
    ) -> None:
        """Create a root context.

        Args:
            deadline: Absolute time.monotonic() value after which delivery
                attempts are abandoned. None means no deadline.
            fields: Correlation fields bound onto log lines.
            cancellable: False only for the shared background context.
        """
        self._deadline = deadline
        self._fields: Mapping[str, Any] = MappingProxyType(dict(fields or {}))
        self._cancellable = cancellable
        self._cancelled = threading.Event()
        self._children: weakref.WeakSet[DeliveryContext] = weakref.WeakSet()
        self._lock = threading.Lock()

    @classmethod
    def background(cls) -> DeliveryContext:
        """Shared root context: never cancelled, no deadline, no fields."""
        if cls._background is None:
            cls._background = cls(cancellable=False)
        return cls._background

    @classmethod
    def with_timeout(cls, seconds: float, **fields: Any) -> DeliveryContext:
        """New root context whose deadline is ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds, fields=fields)

    def child(self, *, timeout: float | None = None, **fields: Any) -> DeliveryContext:
        """Derive a context cancelled together with this one.

        The child's deadline is the earlier of this context's deadline and
        ``timeout`` seconds from now. Fields are merged over this context's.
        """
        deadline = self._deadline
        if timeout is not None:
            candidate = time.monotonic() + timeout
            deadline = candidate if deadline is None else min(deadline, candidate)
        child = DeliveryContext(deadline=deadline, fields={**self._fields, **fields})
        if not self._cancellable:
            return child
        with self._lock:
            self._children.add(child)
            already_cancelled = self._cancelled.is_set()
        if already_cancelled:
            child.cancel()
        return child

    @property
    def fields(self) -> Mapping[str, Any]:
        return self._fields

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def cancel(self) -> None:
        """Cancel this context and every context derived from it.

        A transport request already in flight runs to completion; the next
        attempt and any backoff wait see the cancellation.

        Raises:
            ValueError: If called on the background context.
        """
        if not self._cancellable:
            raise ValueError("the background context cannot be cancelled")
        with self._lock:
            self._cancelled.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def error(self) -> IngestionError | None:
        """Why this context is done, or None while it is still live."""
        if self._cancelled.is_set():
            return CANCELLED
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DEADLINE_EXCEEDED
        return None

    def raise_if_done(self) -> None:
        """Raise DeliveryCancelledError if cancelled or past the deadline."""
        err = self.error()
        if err is not None:
            raise err.with_details({"fields": dict(self._fields)})

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds``, aborting early on cancellation or deadline.

        Used as the backoff wait between delivery attempts.

        Raises:
            DeliveryCancelledError: If the context is done before or during
                the wait. A deadline that falls inside the wait aborts the
                wait at the deadline rather than sleeping past it.
        """
        self.raise_if_done()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(timeout=remaining)
            # Either cancelled or the deadline passed
            raise (CANCELLED if self._cancelled.is_set() else DEADLINE_EXCEEDED).with_details({"fields": dict(self._fields)})
        if self._cancelled.wait(timeout=seconds):
            raise CANCELLED.with_details({"fields": dict(self._fields)})

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled() else "live"
        return f"DeliveryContext({state}, remaining={self.remaining()!r}, fields={dict(self._fields)!r})"
