# src/fusebatch/ingestion/delivery.py
"""DeliveryEngine: sends batches with retry, backoff and per-event fallback.

Delivery outcomes:
- Batch accepted with no per-event errors: every event is processed.
- Batch accepted but some events rejected: the accepted events are
  processed and each rejected event is resent on its own.
- Batch request failed (after retries, or terminally): every event in the
  batch is resent on its own, so one poison event cannot sink its siblings.
  A batch of one event is not resent; its failure is recorded directly.

A transport attempt is recorded as one HTTP request in the metrics when it
returns or fails with a NetworkError or ApiError. Failures that happen
before anything reaches the server, such as a batch that cannot be encoded,
are not counted as requests. Batch-level counters and per-event counters
are kept separately.

Nothing raised while delivering escapes send_batch() or send_single(): the
worker calling them must keep running whatever the transport does.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, TypeVar

import structlog

from fusebatch.contracts.errors import (
    BATCH_PROCESSING,
    EVENT_PROCESSING,
    ApiError,
    DeliveryCancelledError,
    IngestionError,
    NetworkError,
    wrap_error,
)
from fusebatch.ingestion.retry import RetriesExhaustedError, RetryManager

if TYPE_CHECKING:
    from fusebatch.contracts.context import DeliveryContext
    from fusebatch.contracts.envelope import Envelope
    from fusebatch.ingestion.metrics import MetricsCollector
    from fusebatch.ingestion.protocols import TransportProtocol

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """Retry classification: only classified retryable ingestion errors."""
    return isinstance(error, IngestionError) and error.retryable


class DeliveryEngine:
    """Delivers envelopes through a transport and records the outcome.

    One engine is shared by every worker thread.

    Thread Safety:
        Stateless apart from the aggregate failure-log counter, which is
        lock-protected. Metrics are recorded through the thread-safe
        MetricsCollector. No lock is held across a transport call.
    """

    _LOG_INTERVAL = 100  # Log terminal event failures every 100 occurrences

    def __init__(
        self,
        transport: TransportProtocol,
        metrics: MetricsCollector,
        retry_manager: RetryManager,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the engine.

        Args:
            transport: Single-attempt transport
            metrics: Collector receiving every outcome
            retry_manager: Retry policy applied to batch and single sends
            logger: Logger to use. Defaults to this module's logger.
            timer: Clock used to time transport attempts (seconds)
        """
        self._transport = transport
        self._metrics = metrics
        self._retry = retry_manager
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._timer = timer
        self._failure_lock = threading.Lock()
        self._events_failed = 0
        self._last_logged_failure_count = 0

    def send_batch(self, context: DeliveryContext, envelopes: Sequence[Envelope]) -> None:
        """Deliver a batch, falling back to per-event sends on failure.

        Always returns. Outcomes are visible through the metrics only.
        """
        if not envelopes:
            return
        log = self._logger.bind(**context.fields)

        try:
            api_errors = self._with_retry(
                context,
                lambda: self._transport.send_batch(context, envelopes),
                log,
            )
        except Exception as e:
            error = self._classify(e, BATCH_PROCESSING)
            self._metrics.increment_batches_failed(error)
            log.warning(
                "Batch delivery failed",
                batch_size=len(envelopes),
                error_code=error.code,
                error=str(error),
                fallback=len(envelopes) > 1,
            )
            if len(envelopes) == 1:
                self._record_event_failure(envelopes[0], error, log)
                return
            for envelope in envelopes:
                self.send_single(envelope.context, envelope)
            return

        if not api_errors:
            self._metrics.increment_events_processed(len(envelopes))
            self._metrics.increment_batches_processed()
            log.debug("Batch delivered", batch_size=len(envelopes))
            return

        rejected_ids = {api_error.id for api_error in api_errors}
        first = api_errors[0].to_error()
        self._metrics.increment_batches_failed(first)
        accepted = [envelope for envelope in envelopes if str(envelope.id) not in rejected_ids]
        if accepted:
            self._metrics.increment_events_processed(len(accepted))
        log.warning(
            "Batch partially rejected",
            batch_size=len(envelopes),
            rejected=len(envelopes) - len(accepted),
            first_error=str(first),
        )
        for envelope in envelopes:
            if str(envelope.id) in rejected_ids:
                self.send_single(envelope.context, envelope)

    def send_single(self, context: DeliveryContext, envelope: Envelope) -> bool:
        """Deliver one event with retry.

        Returns:
            True if the event was delivered, False if it failed terminally.
        """
        log = self._logger.bind(**context.fields)
        try:
            self._with_retry(context, lambda: self._transport.send(context, envelope), log)
        except Exception as e:
            self._record_event_failure(envelope, self._classify(e, EVENT_PROCESSING), log)
            return False
        self._metrics.increment_events_processed()
        return True

    def _with_retry(
        self,
        context: DeliveryContext,
        call: Callable[[], T],
        log: structlog.stdlib.BoundLogger,
    ) -> T:
        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            log.info(
                "Retrying delivery",
                attempt=attempt,
                delay_seconds=delay,
                error=str(error),
            )

        return self._retry.execute_with_retry(
            lambda: self._attempt(context, call),
            is_retryable=is_retryable,
            on_retry=on_retry,
            sleep=context.sleep,
        )

    def _attempt(self, context: DeliveryContext, call: Callable[[], T]) -> T:
        """One timed transport call. Skipped (not recorded) if the context is done."""
        context.raise_if_done()
        started = self._timer()
        try:
            result = call()
        except (NetworkError, ApiError):
            self._metrics.record_http_request(False, (self._timer() - started) * 1000.0)
            raise
        self._metrics.record_http_request(True, (self._timer() - started) * 1000.0)
        return result

    def _classify(self, error: BaseException, template: IngestionError) -> IngestionError:
        if isinstance(error, RetriesExhaustedError):
            last = wrap_error(error.last_error, template)
            return last.with_details({**last.details, "attempts": error.attempts, "retries_exhausted": True})
        if not isinstance(error, IngestionError):
            self._logger.error(
                "Unexpected error during delivery",
                error=str(error),
                error_type=type(error).__name__,
                exc_info=error,
            )
        return wrap_error(error, template)

    def _record_event_failure(
        self,
        envelope: Envelope,
        error: IngestionError,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        self._metrics.increment_events_failed(error)
        log.debug(
            "Event delivery failed",
            event_id=str(envelope.id),
            event_type=str(envelope.event_type),
            error_code=error.code,
            cancelled=isinstance(error, DeliveryCancelledError),
        )
        with self._failure_lock:
            self._events_failed += 1
            # Aggregate logging: first failure, then every _LOG_INTERVAL
            if self._last_logged_failure_count == 0 or self._events_failed - self._last_logged_failure_count >= self._LOG_INTERVAL:
                log.warning(
                    "Events failed delivery and were dropped",
                    failed_since_last_log=self._events_failed - self._last_logged_failure_count,
                    failed_total=self._events_failed,
                    last_error=str(error),
                )
                self._last_logged_failure_count = self._events_failed
