# tests/unit/ingestion/test_metrics.py
"""Tests for MetricsCollector counters and health classification."""

from datetime import UTC, datetime, timedelta

import pytest

from fusebatch.contracts import ComponentHealth, DeliveryCancelledError, DeliveryContext, ServiceStatus
from fusebatch.ingestion.metrics import RECENT_ERROR_WINDOW, RESPONSE_TIME_WINDOW, MetricsCollector


class FakeNow:
    """Settable UTC wall clock."""

    def __init__(self) -> None:
        self.current = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


@pytest.fixture
def now() -> FakeNow:
    return FakeNow()


@pytest.fixture
def collector(now: FakeNow) -> MetricsCollector:
    collector = MetricsCollector(now=now)
    collector.update_queue_metrics(0, 512)
    collector.update_active_processors(1)
    return collector


# =============================================================================
# Counters
# =============================================================================


class TestCounters:
    def test_initial_snapshot_is_zeroed(self) -> None:
        snapshot = MetricsCollector().get_metrics()

        assert snapshot.events_queued == 0
        assert snapshot.http_requests_total == 0
        assert snapshot.average_response_time_ms == 0.0
        assert snapshot.min_response_time_ms == 0.0
        assert snapshot.max_response_time_ms == 0.0
        assert snapshot.last_error is None

    def test_event_and_batch_counters(self, collector: MetricsCollector, now: FakeNow) -> None:
        collector.increment_events_queued()
        collector.increment_events_queued()
        collector.increment_events_processed(2)
        collector.increment_batches_processed()
        collector.increment_events_failed(RuntimeError("lost"))
        collector.increment_batches_failed()

        snapshot = collector.get_metrics()
        assert snapshot.events_queued == 2
        assert snapshot.events_processed == 2
        assert snapshot.events_failed == 1
        assert snapshot.batches_processed == 1
        assert snapshot.batches_failed == 1
        assert snapshot.last_error == "lost"
        assert snapshot.last_error_at == now.current
        assert snapshot.last_event_processed_at == now.current

    def test_http_request_statistics(self, collector: MetricsCollector) -> None:
        collector.record_http_request(True, 10.0)
        collector.record_http_request(False, 30.0)
        collector.record_http_request(True, 20.0)

        snapshot = collector.get_metrics()
        assert snapshot.http_requests_total == 3
        assert snapshot.http_requests_success == 2
        assert snapshot.http_requests_failure == 1
        assert snapshot.average_response_time_ms == pytest.approx(20.0)
        assert snapshot.min_response_time_ms == 10.0
        assert snapshot.max_response_time_ms == 30.0
        assert snapshot.total_response_time_ms == pytest.approx(60.0)

    def test_response_time_window_is_rolling(self, collector: MetricsCollector) -> None:
        collector.record_http_request(True, 1000.0)
        for _ in range(RESPONSE_TIME_WINDOW):
            collector.record_http_request(True, 5.0)

        snapshot = collector.get_metrics()
        assert snapshot.max_response_time_ms == 5.0
        assert snapshot.average_response_time_ms == pytest.approx(5.0)
        assert snapshot.total_response_time_ms == pytest.approx(1000.0 + 5.0 * RESPONSE_TIME_WINDOW)

    def test_snapshot_is_detached(self, collector: MetricsCollector) -> None:
        snapshot = collector.get_metrics()
        collector.increment_events_queued()

        assert snapshot.events_queued == 0
        assert snapshot.to_dict()["queue_capacity"] == 512

    def test_reset_zeroes_everything(self, collector: MetricsCollector) -> None:
        collector.increment_events_queued()
        collector.record_http_request(False, 1.0)
        collector.check_health()

        collector.reset()

        snapshot = collector.get_metrics()
        assert snapshot.events_queued == 0
        assert snapshot.http_requests_total == 0
        assert snapshot.queue_capacity == 0
        assert collector.get_health_status().status is ServiceStatus.STARTING


# =============================================================================
# Health Classification
# =============================================================================


class TestHealth:
    def test_starting_before_first_check(self) -> None:
        assert MetricsCollector().get_health_status().status is ServiceStatus.STARTING

    def test_healthy_with_no_requests_has_unknown_api(self, collector: MetricsCollector) -> None:
        health = collector.check_health()

        assert health.status is ServiceStatus.HEALTHY
        assert health.queue_health is ComponentHealth.HEALTHY
        assert health.processor_health is ComponentHealth.HEALTHY
        assert health.api_health is ComponentHealth.UNKNOWN
        assert health.errors == ()
        assert health.warnings == ()

    @pytest.mark.parametrize(
        ("size", "expected_queue", "expected_status"),
        [
            (358, ComponentHealth.HEALTHY, ServiceStatus.HEALTHY),  # 69.9%
            (359, ComponentHealth.WARNING, ServiceStatus.DEGRADED),  # 70.1%
            (460, ComponentHealth.WARNING, ServiceStatus.DEGRADED),  # 89.8%
            (461, ComponentHealth.CRITICAL, ServiceStatus.UNHEALTHY),  # 90.04%
        ],
    )
    def test_queue_thresholds(
        self,
        collector: MetricsCollector,
        size: int,
        expected_queue: ComponentHealth,
        expected_status: ServiceStatus,
    ) -> None:
        collector.update_queue_metrics(size, 512)

        health = collector.check_health()

        assert health.queue_health is expected_queue
        assert health.status is expected_status

    def test_zero_capacity_counts_as_empty(self, collector: MetricsCollector) -> None:
        collector.update_queue_metrics(5, 0)

        assert collector.check_health().queue_health is ComponentHealth.HEALTHY

    def test_no_processors_is_unhealthy(self, collector: MetricsCollector) -> None:
        collector.update_active_processors(0)

        health = collector.check_health()

        assert health.status is ServiceStatus.UNHEALTHY
        assert health.processor_health is ComponentHealth.CRITICAL
        assert "No active processors" in health.errors

    @pytest.mark.parametrize(
        ("failures", "expected_api", "expected_status"),
        [
            (5, ComponentHealth.HEALTHY, ServiceStatus.HEALTHY),  # exactly 5%
            (6, ComponentHealth.WARNING, ServiceStatus.DEGRADED),
            (10, ComponentHealth.WARNING, ServiceStatus.DEGRADED),  # exactly 10%
            (11, ComponentHealth.CRITICAL, ServiceStatus.UNHEALTHY),
        ],
    )
    def test_api_failure_rate_thresholds(
        self,
        collector: MetricsCollector,
        now: FakeNow,
        failures: int,
        expected_api: ComponentHealth,
        expected_status: ServiceStatus,
    ) -> None:
        for index in range(100):
            collector.record_http_request(index >= failures, 1.0)

        health = collector.check_health()

        assert health.api_health is expected_api
        assert health.status is expected_status

    def test_recent_error_degrades_healthy_service(self, collector: MetricsCollector, now: FakeNow) -> None:
        collector.increment_events_failed(RuntimeError("lost"))

        health = collector.check_health()

        assert health.status is ServiceStatus.DEGRADED
        assert "Recent errors detected" in health.warnings

    def test_old_error_no_longer_degrades(self, collector: MetricsCollector, now: FakeNow) -> None:
        collector.increment_events_failed(RuntimeError("lost"))
        now.advance(RECENT_ERROR_WINDOW + timedelta(seconds=1))

        assert collector.check_health().status is ServiceStatus.HEALTHY

    def test_recent_error_does_not_mask_unhealthy(self, collector: MetricsCollector) -> None:
        collector.update_active_processors(0)
        collector.increment_batches_failed(RuntimeError("down"))

        assert collector.check_health().status is ServiceStatus.UNHEALTHY

    def test_uptime_from_start(self, collector: MetricsCollector, now: FakeNow) -> None:
        now.advance(timedelta(seconds=42))

        assert collector.check_health().uptime_seconds == 42.0

    def test_check_caches_result(self, collector: MetricsCollector) -> None:
        checked = collector.check_health()
        collector.update_active_processors(0)

        assert collector.get_health_status() is checked

    def test_done_context_skips_check(self, collector: MetricsCollector) -> None:
        context = DeliveryContext()
        context.cancel()

        with pytest.raises(DeliveryCancelledError):
            collector.check_health(context)

        assert collector.get_health_status().status is ServiceStatus.STARTING
