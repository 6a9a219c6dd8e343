# src/fusebatch/contracts/errors.py
"""Structured ingestion errors.

Every failure the client can observe is an IngestionError carrying a stable
code, a category (ErrorType), and optionally the HTTP status, free-form
details, and the underlying cause. Errors are values: the with_* builders
return new instances and never modify the receiver, so the module-level
templates below can be shared freely.

Retry classification lives on the error itself (IngestionError.retryable):
- NETWORK errors are always retryable
- API errors are retryable for 5xx and 429 only
- CONFIG, VALIDATION and PROCESSING errors are never retried
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, ClassVar

from fusebatch.contracts.enums import ErrorType

_TOO_MANY_REQUESTS = 429


class IngestionError(Exception):
    """Base class for all classified ingestion failures.

    Attributes:
        code: Stable machine-readable code (e.g. "RATE_LIMIT")
        message: Human-readable description
        error_type: Category, fixed per subclass
        status_code: HTTP status when the error came from a response
        details: Read-only mapping of extra context
        cause: Underlying exception, if any
    """

    error_type: ClassVar[ErrorType] = ErrorType.PROCESSING

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int | None = None,
        details: Mapping[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details: Mapping[str, Any] = MappingProxyType(dict(details or {}))
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        if self.cause is not None:
            return f"{self.code}: {self.message} (caused by: {self.cause})"
        return f"{self.code}: {self.message}"

    def _replace(self, **changes: Any) -> IngestionError:
        fields: dict[str, Any] = {
            "status_code": self.status_code,
            "details": self.details,
            "cause": self.cause,
        }
        fields.update(changes)
        return type(self)(self.code, self.message, **fields)

    def with_cause(self, cause: BaseException) -> IngestionError:
        """Return a copy of this error with the given cause attached."""
        return self._replace(cause=cause)

    def with_details(self, details: Mapping[str, Any]) -> IngestionError:
        """Return a copy of this error with details replaced."""
        return self._replace(details=details)

    def with_status_code(self, status_code: int) -> IngestionError:
        """Return a copy of this error with the HTTP status attached."""
        return self._replace(status_code=status_code)

    @property
    def retryable(self) -> bool:
        """Whether a delivery attempt failing with this error may be retried."""
        if self.error_type is ErrorType.NETWORK:
            return True
        if self.error_type is ErrorType.API:
            status = self.status_code or 0
            return status >= 500 or status == _TOO_MANY_REQUESTS
        return False

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class ConfigurationError(IngestionError):
    """Invalid client setup. Raised at construction, before any worker starts."""

    error_type = ErrorType.CONFIG


class ValidationError(IngestionError):
    """Malformed event. Rejected before enqueue or before send, never retried."""

    error_type = ErrorType.VALIDATION


class NetworkError(IngestionError):
    """Transient transport failure (timeout, refused connection, reset)."""

    error_type = ErrorType.NETWORK


class ApiError(IngestionError):
    """Failure status returned by the ingestion API."""

    error_type = ErrorType.API


class ProcessingError(IngestionError):
    """Internal failure while framing, encoding, or decoding a request."""

    error_type = ErrorType.PROCESSING


class DeliveryCancelledError(ProcessingError):
    """The delivery context was cancelled or its deadline passed."""


class StopTimeoutError(ProcessingError):
    """Workers were still running when the stop deadline expired."""


class ServiceStoppedError(ProcessingError):
    """An event was submitted after the service was stopped."""


# Configuration
INVALID_CONFIG = ConfigurationError("INVALID_CONFIG", "invalid langfuse configuration")
MISSING_URL = ConfigurationError("MISSING_URL", "langfuse URL is required")
MISSING_PUBLIC_KEY = ConfigurationError("MISSING_PUBLIC_KEY", "langfuse public key is required")
MISSING_SECRET_KEY = ConfigurationError("MISSING_SECRET_KEY", "langfuse secret key is required")

# Validation
EVENT_VALIDATION = ValidationError("EVENT_VALIDATION", "event validation failed")
UNKNOWN_EVENT_TYPE = ValidationError("UNKNOWN_EVENT_TYPE", "unknown event type")

# Network
NETWORK_TIMEOUT = NetworkError("NETWORK_TIMEOUT", "network request timed out")
CONNECTION_FAILED = NetworkError("CONNECTION_FAILED", "failed to connect to langfuse")
REQUEST_FAILED = NetworkError("REQUEST_FAILED", "HTTP request failed")

# API
UNAUTHORIZED = ApiError("UNAUTHORIZED", "unauthorized access to langfuse API")
FORBIDDEN = ApiError("FORBIDDEN", "forbidden access to langfuse resource")
NOT_FOUND = ApiError("NOT_FOUND", "langfuse resource not found")
RATE_LIMIT = ApiError("RATE_LIMIT", "langfuse API rate limit exceeded")
SERVER_ERROR = ApiError("SERVER_ERROR", "langfuse server error")

# Processing
BATCH_PROCESSING = ProcessingError("BATCH_PROCESSING", "batch processing failed")
EVENT_PROCESSING = ProcessingError("EVENT_PROCESSING", "event processing failed")
SERVICE_STOPPED = ServiceStoppedError("SERVICE_STOPPED", "langfuse service is stopped")
CANCELLED = DeliveryCancelledError("CANCELLED", "delivery context was cancelled")
DEADLINE_EXCEEDED = DeliveryCancelledError("DEADLINE_EXCEEDED", "delivery context deadline exceeded")
STOP_TIMEOUT = StopTimeoutError("STOP_TIMEOUT", "timed out waiting for event processors to stop")

_STATUS_TEMPLATES: dict[int, IngestionError] = {
    401: UNAUTHORIZED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    429: RATE_LIMIT,
    500: SERVER_ERROR,
    502: SERVER_ERROR,
    503: SERVER_ERROR,
}


def error_from_status(status_code: int, message: str) -> IngestionError:
    """Build a classified error from an HTTP status and response body."""
    template = _STATUS_TEMPLATES.get(status_code)
    if template is None:
        if 400 <= status_code < 500:
            template = ApiError("CLIENT_ERROR", "client error")
        elif status_code >= 500:
            template = ApiError("SERVER_ERROR", "server error")
        else:
            template = NetworkError("HTTP_ERROR", "HTTP error")
    return template.with_status_code(status_code).with_details({"response_body": message})


def validation_error(field: str, value: Any, reason: str) -> IngestionError:
    """Build an EVENT_VALIDATION error describing the offending field."""
    return EVENT_VALIDATION.with_details({"field": field, "value": value, "reason": reason})


def config_error(field: str, reason: str) -> IngestionError:
    """Build an INVALID_CONFIG error describing the offending setting."""
    return INVALID_CONFIG.with_details({"field": field, "reason": reason})


def wrap_error(error: BaseException, template: IngestionError) -> IngestionError:
    """Return error unchanged if already classified, else template caused by it."""
    if isinstance(error, IngestionError):
        return error
    return template.with_cause(error)
