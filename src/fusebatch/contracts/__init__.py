"""Contracts shared across the fusebatch subsystems.

Leaf package: imports nothing from fusebatch outside contracts at module
level, so every other subsystem can depend on it.
"""

from fusebatch.contracts.config import QUEUE_CAPACITY, RuntimeIngestionConfig
from fusebatch.contracts.context import DeliveryContext
from fusebatch.contracts.enums import (
    ComponentHealth,
    ErrorType,
    EventType,
    FlushReason,
    Level,
    ServiceStatus,
    UsageUnit,
)
from fusebatch.contracts.envelope import Envelope, make_envelope
from fusebatch.contracts.errors import (
    ApiError,
    ConfigurationError,
    DeliveryCancelledError,
    IngestionError,
    NetworkError,
    ProcessingError,
    ServiceStoppedError,
    StopTimeoutError,
    ValidationError,
)
from fusebatch.contracts.events import (
    GenerationEvent,
    IngestionEvent,
    ScoreEvent,
    SpanEvent,
    TraceEvent,
    event_type_of,
)
from fusebatch.contracts.results import ApiEventError, ApiEventSuccess, IngestionResponse
from fusebatch.contracts.usage import CostDetail, Usage, UsageDetail

__all__ = [
    "QUEUE_CAPACITY",
    "ApiError",
    "ApiEventError",
    "ApiEventSuccess",
    "ComponentHealth",
    "ConfigurationError",
    "CostDetail",
    "DeliveryCancelledError",
    "DeliveryContext",
    "Envelope",
    "ErrorType",
    "EventType",
    "FlushReason",
    "GenerationEvent",
    "IngestionError",
    "IngestionEvent",
    "IngestionResponse",
    "Level",
    "NetworkError",
    "ProcessingError",
    "RuntimeIngestionConfig",
    "ScoreEvent",
    "ServiceStatus",
    "ServiceStoppedError",
    "SpanEvent",
    "StopTimeoutError",
    "TraceEvent",
    "Usage",
    "UsageDetail",
    "UsageUnit",
    "ValidationError",
    "event_type_of",
    "make_envelope",
]
