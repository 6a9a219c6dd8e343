# src/fusebatch/ingestion/service.py
"""IngestionService: the public entry point of the delivery pipeline.

The service owns:
1. The shared bounded EventQueue (producers block while it is full)
2. number_of_event_processor worker threads, each running its own
   BatchAccumulator over the shared queue
3. One DeliveryEngine shared by every worker
4. The MetricsCollector behind get_metrics() and the health checks

Producers call add_event() from any thread. The call validates the event,
assigns an identifier if it has none, enqueues it and returns the
identifier. Delivery is fire-and-forget from then on: failures show up only
in metrics, health and logs.

Shutdown Sequence (stop()):
1. Mark the service stopped so add_event() refuses new events
2. Close the queue, waking every worker blocked on it
3. Each worker keeps draining the closed queue, then flushes its pending
   batch and exits
4. Wait for all workers, bounded by the caller's context
5. Close the transport once every worker has exited

Thread Safety:
    add_event(), stop() and the metric/health reads are safe from any thread.
    Worker threads are non-daemon so an interpreter exit waits for the drain.
"""

from __future__ import annotations

import threading
import uuid
from types import TracebackType
from typing import TYPE_CHECKING

import structlog

from fusebatch.contracts.context import DeliveryContext
from fusebatch.contracts.enums import FlushReason
from fusebatch.contracts.envelope import make_envelope
from fusebatch.contracts.errors import CANCELLED, SERVICE_STOPPED, STOP_TIMEOUT
from fusebatch.ingestion.accumulator import BatchAccumulator
from fusebatch.ingestion.delivery import DeliveryEngine
from fusebatch.ingestion.metrics import HealthStatus, MetricsCollector, MetricsSnapshot
from fusebatch.ingestion.queue import EventQueue, QueueClosed
from fusebatch.ingestion.retry import RetryConfig, RetryManager

if TYPE_CHECKING:
    from fusebatch.contracts.config import RuntimeIngestionConfig
    from fusebatch.contracts.events import IngestionEvent
    from fusebatch.ingestion.protocols import TransportProtocol


class IngestionService:
    """Accepts events from any thread and delivers them in batches.

    Workers start during construction.

    Example:
        >>> service = IngestionService(RuntimeIngestionConfig(batch_size=50), transport)
        >>> event_id = service.add_event(TraceEvent(name="checkout"))
        >>> service.check_health().status
        <ServiceStatus.HEALTHY: 'healthy'>
        >>> service.stop(DeliveryContext.with_timeout(10.0))
    """

    _LOG_INTERVAL = 100  # Log blocked producers every 100 occurrences
    _STARTUP_TIMEOUT = 5.0
    _STOP_POLL_INTERVAL = 0.05

    def __init__(
        self,
        config: RuntimeIngestionConfig,
        transport: TransportProtocol,
        *,
        metrics: MetricsCollector | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Build the pipeline and start the worker threads.

        Args:
            config: Validated runtime configuration
            transport: Single-attempt transport shared by all workers
            metrics: Collector to record into. A fresh one by default.
            logger: Logger for the service and its components
        """
        self._config = config
        self._transport = transport
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

        self._queue = EventQueue(config.queue_capacity)
        self._metrics.update_queue_metrics(0, config.queue_capacity)
        self._engine = DeliveryEngine(
            transport,
            self._metrics,
            RetryManager(RetryConfig.from_runtime(config)),
            logger=self._logger,
        )

        # Lifecycle state
        self._state_lock = threading.Lock()
        self._stopped = False
        self._transport_closed = False
        self._active_processors = 0
        self._all_started = threading.Event()
        self._all_exited = threading.Event()

        # Aggregate logging of producers blocked on a full queue
        self._blocked_lock = threading.Lock()
        self._blocked_puts = 0
        self._last_logged_blocked = 0

        self._workers: list[threading.Thread] = []
        if config.number_of_event_processor == 0:
            self._logger.warning(
                "No event processors configured - queued events will never be delivered",
                number_of_event_processor=0,
            )
            self._all_started.set()
            self._all_exited.set()
            return

        for index in range(config.number_of_event_processor):
            # Non-daemon to ensure the drain completes before interpreter exit
            worker = threading.Thread(
                target=self._worker_loop,
                args=(index,),
                name=f"fusebatch-worker-{index}",
                daemon=False,
            )
            self._workers.append(worker)
            worker.start()
        # Wait for workers to register (health reports them from the start)
        self._all_started.wait(timeout=self._STARTUP_TIMEOUT)
        self._logger.info(
            "Ingestion service started",
            number_of_event_processor=config.number_of_event_processor,
            batch_size=config.batch_size,
            batch_timeout=config.batch_timeout,
            max_retries=config.max_retries,
        )

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    def add_event(self, event: IngestionEvent, context: DeliveryContext | None = None) -> uuid.UUID:
        """Validate and enqueue an event for delivery.

        Blocks while the queue is full. Never reports delivery failures.

        Args:
            event: One of the four ingestion event variants
            context: Cancellation/deadline and log correlation for this
                event's delivery. Defaults to the background context.

        Returns:
            The event's identifier (assigned here if the event had none)

        Raises:
            ValidationError: If the event is not a known variant or is invalid
            ServiceStoppedError: If stop() has been called
        """
        if self._stopped:
            raise SERVICE_STOPPED.with_details({"event_type": type(event).__name__})
        envelope = make_envelope(event, context if context is not None else DeliveryContext.background())

        if self._queue.full():
            self._log_blocked_producer()
        try:
            self._queue.put(envelope)
        except QueueClosed:
            raise SERVICE_STOPPED.with_details({"event_id": str(envelope.id)}) from None

        self._metrics.increment_events_queued()
        self._metrics.update_queue_metrics(self._queue.qsize(), self._queue.capacity)
        return envelope.id

    def _log_blocked_producer(self) -> None:
        with self._blocked_lock:
            self._blocked_puts += 1
            # Aggregate logging: first occurrence, then every _LOG_INTERVAL
            if self._last_logged_blocked == 0 or self._blocked_puts - self._last_logged_blocked >= self._LOG_INTERVAL:
                self._logger.warning(
                    "Event queue full - producers blocked",
                    blocked_since_last_log=self._blocked_puts - self._last_logged_blocked,
                    blocked_total=self._blocked_puts,
                    queue_capacity=self._queue.capacity,
                )
                self._last_logged_blocked = self._blocked_puts

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _worker_loop(self, index: int) -> None:
        """Background thread: accumulate queued envelopes and deliver batches.

        Exits once the queue is closed and drained, after a final flush.
        """
        log = self._logger.bind(worker=index)
        accumulator = BatchAccumulator(
            self._config.batch_size,
            self._config.batch_timeout,
            self._engine.send_batch,
            logger=log,
        )
        self._processor_started()
        try:
            while True:
                try:
                    envelope = self._queue.get(timeout=accumulator.time_until_flush())
                except QueueClosed:
                    break
                try:
                    if envelope is not None:
                        self._metrics.update_queue_metrics(self._queue.qsize(), self._queue.capacity)
                        accumulator.receive(envelope)
                    accumulator.tick()
                except Exception as e:
                    # Log but don't crash - a worker must outlive any single batch
                    log.error("Worker iteration failed unexpectedly", error=str(e), exc_info=e)
            try:
                accumulator.flush(FlushReason.SHUTDOWN)
            except Exception as e:
                log.error("Final flush failed unexpectedly", error=str(e), exc_info=e)
        finally:
            self._processor_exited()
            log.debug("Worker exited")

    def _processor_started(self) -> None:
        with self._state_lock:
            self._active_processors += 1
            self._metrics.update_active_processors(self._active_processors)
            if self._active_processors == self._config.number_of_event_processor:
                self._all_started.set()

    def _processor_exited(self) -> None:
        with self._state_lock:
            self._active_processors -= 1
            self._metrics.update_active_processors(self._active_processors)
            if self._active_processors == 0 and self._stopped:
                self._all_exited.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self, context: DeliveryContext | None = None) -> None:
        """Drain the queue, flush every worker and wait for them to exit.

        Idempotent: a second call waits again for the same workers.

        Args:
            context: Bounds the wait. Defaults to waiting without limit.

        Raises:
            StopTimeoutError: If the context's deadline passed first. Workers
                keep draining in the background.
            DeliveryCancelledError: If the context was cancelled first.
        """
        with self._state_lock:
            first_stop = not self._stopped
            self._stopped = True
            if self._active_processors == 0:
                self._all_exited.set()
        self._queue.close()
        if first_stop:
            self._logger.info("Stopping ingestion service", queued=self._queue.qsize())

        if not self._workers:
            dropped = self._queue.qsize()
            if dropped:
                self._logger.warning("Stopped with no event processors - queued events dropped", dropped=dropped)
            self._close_transport()
            return

        context = context if context is not None else DeliveryContext.background()
        while not self._all_exited.wait(timeout=self._poll_timeout(context)):
            if context.is_cancelled():
                raise CANCELLED.with_details({"active_processors": self.active_processors})
            remaining = context.remaining()
            if remaining is not None and remaining <= 0:
                self._logger.warning(
                    "Stop timed out - workers still draining",
                    active_processors=self.active_processors,
                    queued=self._queue.qsize(),
                )
                raise STOP_TIMEOUT.with_details(
                    {"active_processors": self.active_processors, "queued": self._queue.qsize()}
                )

        self._close_transport()
        self._metrics.update_queue_metrics(0, self._queue.capacity)
        if first_stop:
            self._logger.info("Ingestion service stopped", **self._metrics.get_metrics().to_dict())

    def _poll_timeout(self, context: DeliveryContext) -> float:
        remaining = context.remaining()
        if remaining is None:
            return self._STOP_POLL_INTERVAL
        return min(remaining, self._STOP_POLL_INTERVAL)

    def _close_transport(self) -> None:
        with self._state_lock:
            if self._transport_closed:
                return
            self._transport_closed = True
        try:
            self._transport.close()
        except Exception as e:
            self._logger.warning("Transport close failed", error=str(e))

    def __enter__(self) -> IngestionService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def active_processors(self) -> int:
        with self._state_lock:
            return self._active_processors

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    def get_metrics(self) -> MetricsSnapshot:
        return self._metrics.get_metrics()

    def get_health_status(self) -> HealthStatus:
        """Last computed health status (see check_health)."""
        return self._metrics.get_health_status()

    def check_health(self, context: DeliveryContext | None = None) -> HealthStatus:
        """Recompute and cache the health status from current metrics."""
        self._metrics.update_queue_metrics(self._queue.qsize(), self._queue.capacity)
        return self._metrics.check_health(context)
