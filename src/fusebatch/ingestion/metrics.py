# src/fusebatch/ingestion/metrics.py
"""Pipeline metrics and health classification.

MetricsCollector is the only mutable state shared by every worker besides
the queue. All mutation and reads go through one lock; readers receive
frozen snapshots, never the live counters.

Health Thresholds:
    queue:      size/capacity > 0.9 critical, > 0.7 warning
    processors: 0 active -> critical
    API:        failed/total requests > 0.10 critical, > 0.05 warning,
                unknown before the first request
    Any critical component makes the service unhealthy; any warning, or an
    error recorded within RECENT_ERROR_WINDOW, makes a healthy service
    degraded.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from fusebatch.contracts.context import DeliveryContext
from fusebatch.contracts.enums import ComponentHealth, ServiceStatus

RESPONSE_TIME_WINDOW = 100
RECENT_ERROR_WINDOW = timedelta(minutes=5)

QUEUE_CRITICAL_RATIO = 0.9
QUEUE_WARNING_RATIO = 0.7
API_CRITICAL_FAILURE_RATE = 0.10
API_WARNING_FAILURE_RATE = 0.05


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Point-in-time copy of the pipeline counters.

    Response times are in milliseconds. average/min/max are derived from the
    most recent RESPONSE_TIME_WINDOW requests; total is cumulative. All three
    derived values are 0.0 before the first request.
    """

    events_queued: int = 0
    events_processed: int = 0
    events_failed: int = 0
    batches_processed: int = 0
    batches_failed: int = 0
    http_requests_total: int = 0
    http_requests_success: int = 0
    http_requests_failure: int = 0
    average_response_time_ms: float = 0.0
    min_response_time_ms: float = 0.0
    max_response_time_ms: float = 0.0
    total_response_time_ms: float = 0.0
    active_processors: int = 0
    queue_size: int = 0
    queue_capacity: int = 0
    start_time: datetime = field(default_factory=_utcnow)
    last_event_processed_at: datetime | None = None
    last_error_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Result of a health check.

    Attributes:
        status: Overall classification
        uptime_seconds: Seconds since the collector started (or was reset)
        queue_health: Queue utilization classification
        processor_health: Worker availability classification
        api_health: HTTP failure-rate classification
        last_health_check: When this status was computed
        errors: Reasons for critical classifications
        warnings: Reasons for warning classifications
    """

    status: ServiceStatus
    uptime_seconds: float = 0.0
    queue_health: ComponentHealth = ComponentHealth.UNKNOWN
    processor_health: ComponentHealth = ComponentHealth.UNKNOWN
    api_health: ComponentHealth = ComponentHealth.UNKNOWN
    last_health_check: datetime = field(default_factory=_utcnow)
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class MetricsCollector:
    """Thread-safe counters, gauges and health classification for the pipeline.

    Example:
        collector = MetricsCollector()
        collector.record_http_request(success=True, response_time_ms=42.0)
        snapshot = collector.get_metrics()
        health = collector.check_health()
    """

    def __init__(self, *, now: Callable[[], datetime] | None = None) -> None:
        """Initialize zeroed metrics with a "starting" health status.

        Args:
            now: UTC wall-clock source. Inject a fixed function in tests.
        """
        self._now = now if now is not None else _utcnow
        self._lock = threading.Lock()
        self._init_state()

    def _init_state(self) -> None:
        start = self._now()
        self._start_time = start
        self._events_queued = 0
        self._events_processed = 0
        self._events_failed = 0
        self._batches_processed = 0
        self._batches_failed = 0
        self._http_total = 0
        self._http_success = 0
        self._http_failure = 0
        self._total_response_ms = 0.0
        self._response_times: deque[float] = deque(maxlen=RESPONSE_TIME_WINDOW)
        self._active_processors = 0
        self._queue_size = 0
        self._queue_capacity = 0
        self._last_event_processed_at: datetime | None = None
        self._last_error_at: datetime | None = None
        self._last_error: str | None = None
        self._health = HealthStatus(status=ServiceStatus.STARTING, last_health_check=start)

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def increment_events_queued(self) -> None:
        with self._lock:
            self._events_queued += 1

    def increment_events_processed(self, count: int = 1) -> None:
        with self._lock:
            self._events_processed += count
            self._last_event_processed_at = self._now()

    def increment_events_failed(self, error: BaseException | None = None) -> None:
        with self._lock:
            self._events_failed += 1
            self._record_error(error)

    def increment_batches_processed(self) -> None:
        with self._lock:
            self._batches_processed += 1

    def increment_batches_failed(self, error: BaseException | None = None) -> None:
        with self._lock:
            self._batches_failed += 1
            self._record_error(error)

    def _record_error(self, error: BaseException | None) -> None:
        # Caller holds self._lock
        self._last_error_at = self._now()
        if error is not None:
            self._last_error = str(error)

    def record_http_request(self, success: bool, response_time_ms: float) -> None:
        """Record one transport attempt and its duration."""
        with self._lock:
            self._http_total += 1
            if success:
                self._http_success += 1
            else:
                self._http_failure += 1
            self._total_response_ms += response_time_ms
            self._response_times.append(response_time_ms)

    # ------------------------------------------------------------------
    # Gauges
    # ------------------------------------------------------------------

    def update_queue_metrics(self, size: int, capacity: int) -> None:
        with self._lock:
            self._queue_size = size
            self._queue_capacity = capacity

    def update_active_processors(self, count: int) -> None:
        with self._lock:
            self._active_processors = count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_metrics(self) -> MetricsSnapshot:
        """Return a frozen copy of the current metrics."""
        with self._lock:
            samples = self._response_times
            return MetricsSnapshot(
                events_queued=self._events_queued,
                events_processed=self._events_processed,
                events_failed=self._events_failed,
                batches_processed=self._batches_processed,
                batches_failed=self._batches_failed,
                http_requests_total=self._http_total,
                http_requests_success=self._http_success,
                http_requests_failure=self._http_failure,
                average_response_time_ms=sum(samples) / len(samples) if samples else 0.0,
                min_response_time_ms=min(samples) if samples else 0.0,
                max_response_time_ms=max(samples) if samples else 0.0,
                total_response_time_ms=self._total_response_ms,
                active_processors=self._active_processors,
                queue_size=self._queue_size,
                queue_capacity=self._queue_capacity,
                start_time=self._start_time,
                last_event_processed_at=self._last_event_processed_at,
                last_error_at=self._last_error_at,
                last_error=self._last_error,
            )

    def check_health(self, context: DeliveryContext | None = None) -> HealthStatus:
        """Classify current health and cache the result.

        Args:
            context: Accepted for call-site symmetry with the other
                operations. If it is already done the check is not run.

        Raises:
            DeliveryCancelledError: If context is cancelled or expired.
        """
        if context is not None:
            context.raise_if_done()

        with self._lock:
            now = self._now()
            errors: list[str] = []
            warnings: list[str] = []
            status = ServiceStatus.HEALTHY

            if self._queue_capacity > 0:
                utilization = self._queue_size / self._queue_capacity
            else:
                utilization = 0.0
            if utilization > QUEUE_CRITICAL_RATIO:
                queue_health = ComponentHealth.CRITICAL
                errors.append("Queue utilization critical (>90%)")
                status = ServiceStatus.UNHEALTHY
            elif utilization > QUEUE_WARNING_RATIO:
                queue_health = ComponentHealth.WARNING
                warnings.append("Queue utilization high (>70%)")
                if status is ServiceStatus.HEALTHY:
                    status = ServiceStatus.DEGRADED
            else:
                queue_health = ComponentHealth.HEALTHY

            if self._active_processors == 0:
                processor_health = ComponentHealth.CRITICAL
                errors.append("No active processors")
                status = ServiceStatus.UNHEALTHY
            else:
                processor_health = ComponentHealth.HEALTHY

            if self._http_total > 0:
                failure_rate = self._http_failure / self._http_total
                if failure_rate > API_CRITICAL_FAILURE_RATE:
                    api_health = ComponentHealth.CRITICAL
                    errors.append("High API error rate (>10%)")
                    status = ServiceStatus.UNHEALTHY
                elif failure_rate > API_WARNING_FAILURE_RATE:
                    api_health = ComponentHealth.WARNING
                    warnings.append("Elevated API error rate (>5%)")
                    if status is ServiceStatus.HEALTHY:
                        status = ServiceStatus.DEGRADED
                else:
                    api_health = ComponentHealth.HEALTHY
            else:
                api_health = ComponentHealth.UNKNOWN

            if self._last_error_at is not None and now - self._last_error_at < RECENT_ERROR_WINDOW:
                warnings.append("Recent errors detected")
                if status is ServiceStatus.HEALTHY:
                    status = ServiceStatus.DEGRADED

            self._health = HealthStatus(
                status=status,
                uptime_seconds=(now - self._start_time).total_seconds(),
                queue_health=queue_health,
                processor_health=processor_health,
                api_health=api_health,
                last_health_check=now,
                errors=tuple(errors),
                warnings=tuple(warnings),
            )
            return self._health

    def get_health_status(self) -> HealthStatus:
        """Return the last computed health status without recomputing it."""
        with self._lock:
            return self._health

    def reset(self) -> None:
        """Zero every counter and return health to "starting". For tests."""
        with self._lock:
            self._init_state()
