# src/fusebatch/ingestion/accumulator.py
"""Per-worker batch accumulation with size and time triggers.

Each worker owns one BatchAccumulator. The accumulator buffers envelopes
until either trigger fires, then hands them to the delivery callback:

- size: pending envelopes reach batch_size (checked on every receive)
- timeout: the periodic batch timer expires (checked on every tick)
- shutdown: the worker is stopping

The timer is periodic, not per-batch: it is armed at construction and
re-armed after every flush, and it fires even when nothing is pending (an
empty flush is a no-op). An envelope therefore waits at most batch_timeout
before it is handed to delivery.

On flush, pending envelopes are grouped by delivery context identity, in
the order each context was first seen, and each group is delivered with
one callback. Groups only ever split a flushed batch, so no delivered group
exceeds batch_size.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from fusebatch.contracts.enums import FlushReason
from fusebatch.core.clock import DEFAULT_CLOCK

if TYPE_CHECKING:
    from fusebatch.contracts.context import DeliveryContext
    from fusebatch.contracts.envelope import Envelope
    from fusebatch.core.clock import Clock

DeliverFn = Callable[["DeliveryContext", list["Envelope"]], None]


class BatchAccumulator:
    """Buffers envelopes for one worker and flushes them in batches.

    Not thread-safe: each instance is driven by a single worker thread.

    Example:
        accumulator = BatchAccumulator(batch_size=100, batch_timeout=5.0, deliver=engine.send_batch)
        while running:
            envelope = queue.get(timeout=accumulator.time_until_flush())
            if envelope is not None:
                accumulator.receive(envelope)
            accumulator.tick()
        accumulator.flush(FlushReason.SHUTDOWN)
    """

    def __init__(
        self,
        batch_size: int,
        batch_timeout: float,
        deliver: DeliverFn,
        *,
        clock: Clock | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize an empty accumulator and arm its timer.

        Args:
            batch_size: Pending count that triggers a size flush (>= 1)
            batch_timeout: Seconds between timer flushes (> 0)
            deliver: Called once per context group on flush
            clock: Time source. Inject MockClock for deterministic tests.
            logger: Logger to use. Defaults to this module's logger.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if batch_timeout <= 0:
            raise ValueError(f"batch_timeout must be > 0, got {batch_timeout}")
        self._batch_size = batch_size
        self._batch_timeout = batch_timeout
        self._deliver = deliver
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._pending: list[Envelope] = []
        self._next_flush_at = self._clock.monotonic() + batch_timeout

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> tuple[Envelope, ...]:
        """Snapshot of buffered envelopes in arrival order."""
        return tuple(self._pending)

    def time_until_flush(self) -> float:
        """Seconds until the timer fires (0.0 if it is already due)."""
        return max(0.0, self._next_flush_at - self._clock.monotonic())

    def receive(self, envelope: Envelope) -> bool:
        """Buffer an envelope, flushing if the batch is now full.

        Returns:
            True if this envelope triggered a size flush.
        """
        self._pending.append(envelope)
        if len(self._pending) >= self._batch_size:
            self.flush(FlushReason.SIZE)
            return True
        return False

    def tick(self) -> bool:
        """Fire the timer if it is due.

        Returns:
            True if the timer fired (whether or not anything was pending).
        """
        if self._clock.monotonic() < self._next_flush_at:
            return False
        self.flush(FlushReason.TIMEOUT)
        return True

    def flush(self, reason: FlushReason) -> int:
        """Deliver all pending envelopes, grouped by context, and re-arm the timer.

        Pending state is cleared before delivery, so a failing delivery
        callback never causes envelopes to be delivered twice.

        Returns:
            Number of envelopes handed to delivery.
        """
        batch = self._pending
        self._pending = []
        self._next_flush_at = self._clock.monotonic() + self._batch_timeout
        if not batch:
            return 0

        groups: dict[DeliveryContext, list[Envelope]] = {}
        for envelope in batch:
            groups.setdefault(envelope.context, []).append(envelope)

        self._logger.debug(
            "Flushing batch",
            reason=str(reason),
            batch_size=len(batch),
            context_groups=len(groups),
        )
        for context, envelopes in groups.items():
            self._deliver(context, envelopes)
        return len(batch)
