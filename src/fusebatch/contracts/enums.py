"""Status codes, tags, and kinds shared across subsystem boundaries."""

from enum import StrEnum


class EventType(StrEnum):
    """Wire tag of an ingestion event.

    Sent as the ``type`` field of every batch item.
    """

    TRACE_CREATE = "trace-create"
    SPAN_CREATE = "span-create"
    GENERATION_CREATE = "generation-create"
    SCORE_CREATE = "score-create"


class Level(StrEnum):
    """Observation log level."""

    DEBUG = "DEBUG"
    DEFAULT = "DEFAULT"
    WARNING = "WARNING"
    ERROR = "ERROR"


class UsageUnit(StrEnum):
    """Unit a model usage is measured in."""

    CHARACTERS = "CHARACTERS"
    TOKENS = "TOKENS"
    MILLISECONDS = "MILLISECONDS"
    SECONDS = "SECONDS"
    IMAGES = "IMAGES"


class ErrorType(StrEnum):
    """Category of an ingestion error.

    Drives retry classification (see IngestionError.retryable).
    """

    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    NETWORK = "NETWORK"
    API = "API"
    PROCESSING = "PROCESSING"


class FlushReason(StrEnum):
    """Why a batch accumulator flushed its pending envelopes.

    Values:
        SIZE: Pending envelopes reached the configured batch size
        TIMEOUT: The batch timer fired
        SHUTDOWN: The worker is stopping and flushes what it holds
    """

    SIZE = "size"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


class ServiceStatus(StrEnum):
    """Overall health of the ingestion service."""

    STARTING = "starting"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class ComponentHealth(StrEnum):
    """Health of a single component (queue, processors, API)."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"
