# src/fusebatch/ingestion/__init__.py
"""Event batching and delivery pipeline.

IngestionService is the entry point; the other classes are exported for
composition and testing.
"""

from fusebatch.ingestion.accumulator import BatchAccumulator
from fusebatch.ingestion.delivery import DeliveryEngine
from fusebatch.ingestion.factory import create_service, validate_connection_settings
from fusebatch.ingestion.metrics import HealthStatus, MetricsCollector, MetricsSnapshot
from fusebatch.ingestion.protocols import TransportProtocol
from fusebatch.ingestion.queue import EventQueue, QueueClosed
from fusebatch.ingestion.retry import RetriesExhaustedError, RetryConfig, RetryManager
from fusebatch.ingestion.service import IngestionService

__all__ = [
    "BatchAccumulator",
    "DeliveryEngine",
    "EventQueue",
    "HealthStatus",
    "IngestionService",
    "MetricsCollector",
    "MetricsSnapshot",
    "QueueClosed",
    "RetriesExhaustedError",
    "RetryConfig",
    "RetryManager",
    "TransportProtocol",
    "create_service",
    "validate_connection_settings",
]
