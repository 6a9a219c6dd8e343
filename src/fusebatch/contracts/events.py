# src/fusebatch/contracts/events.py
"""Ingestion events: the closed set of payloads the client can deliver.

IngestionEvent is a tagged union of exactly four variants. The tag is the
class-level ``event_type`` and is what the ingestion API receives as the
batch item ``type``:

- TraceEvent       -> trace-create
- SpanEvent        -> span-create
- GenerationEvent  -> generation-create
- ScoreEvent       -> score-create

Events are frozen. An identifier is optional at construction; the service
assigns one on submission via with_id(), which returns a copy.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Self

from fusebatch.contracts.enums import EventType, Level
from fusebatch.contracts.errors import UNKNOWN_EVENT_TYPE, validation_error
from fusebatch.contracts.usage import CostDetail, Usage, UsageDetail


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str | dict | list | tuple) and len(value) == 0


def _encode_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Usage | UsageDetail | CostDetail):
        # Detail records keep their snake_case keys on the wire
        camel = isinstance(value, Usage)
        return {
            (_camel(f.name) if camel else f.name): _encode_value(getattr(value, f.name))
            for f in fields(value)
            if getattr(value, f.name) is not None
        }
    if isinstance(value, dict):
        return {str(key): _encode_value(item) for key, item in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [_encode_value(item) for item in value]
    return value


@dataclass(frozen=True, slots=True, kw_only=True)
class _EventBase:
    """Shared behaviour of the four event variants.

    Subclasses set ``event_type`` and may list field names in
    ``_always_emit`` that are serialized even when empty.
    """

    event_type: ClassVar[EventType]
    _always_emit: ClassVar[frozenset[str]] = frozenset({"id"})

    id: uuid.UUID | None = None

    def with_id(self, event_id: uuid.UUID) -> Self:
        """Return a copy of this event carrying the given identifier."""
        return replace(self, id=event_id)

    def validate(self) -> None:
        """Raise ValidationError if the event cannot be ingested."""
        if self.id is not None and not isinstance(self.id, uuid.UUID):
            raise validation_error("id", self.id, "must be a UUID")

    def to_body(self) -> dict[str, Any]:
        """Wire body of the event: camelCase keys, empty optionals dropped."""
        body: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if _is_empty(value) and f.name not in self._always_emit:
                continue
            body[_camel(f.name)] = _encode_value(value)
        return body


@dataclass(frozen=True, slots=True, kw_only=True)
class TraceEvent(_EventBase):
    """A trace: the root of an LLM application request.

    Attributes:
        name: Trace name
        user_id: Maps traces to individual users
        session_id: Maps traces to a session
        release: Application release the trace belongs to
        version: Application version
        metadata: Arbitrary JSON metadata
        tags: Tags attached to the trace
        public: Trace visibility, private unless set
        input: Input to the LLM application
        output: Output of the LLM application
        environment: Deployment environment, e.g. "production"
    """

    event_type: ClassVar[EventType] = EventType.TRACE_CREATE
    _always_emit: ClassVar[frozenset[str]] = frozenset({"id", "public"})

    name: str = ""
    user_id: str | None = None
    session_id: str | None = None
    release: str | None = None
    version: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: tuple[str, ...] = ()
    public: bool = False
    input: Any = None
    output: Any = None
    environment: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SpanEvent(_EventBase):
    """A span: the duration of a unit of work within a trace.

    If trace_id is not provided the API creates a trace just for this span.
    Nest within another observation with parent_observation_id.
    """

    event_type: ClassVar[EventType] = EventType.SPAN_CREATE
    _always_emit: ClassVar[frozenset[str]] = frozenset({"id", "trace_id"})

    trace_id: uuid.UUID | None = None
    parent_observation_id: uuid.UUID | None = None
    name: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    level: Level | None = None
    status_message: str | None = None
    input: Any = None
    output: Any = None
    version: str | None = None
    environment: str | None = None

    def end(self) -> Self:
        """Return a copy ended now (UTC)."""
        return replace(self, end_time=datetime.now(tz=UTC))

    def error(self, status_message: str) -> Self:
        """Return an ended copy at ERROR level carrying the status message."""
        return replace(self, status_message=status_message, level=Level.ERROR, end_time=datetime.now(tz=UTC))


@dataclass(frozen=True, slots=True, kw_only=True)
class GenerationEvent(SpanEvent):
    """A generation: a span that records a model call."""

    event_type: ClassVar[EventType] = EventType.GENERATION_CREATE

    completion_start_time: datetime | None = None
    model: str | None = None
    model_parameters: dict[str, Any] = field(default_factory=dict)
    usage: Usage | None = None
    usage_details: UsageDetail | None = None
    cost_details: CostDetail | None = None
    prompt_name: str | None = None
    prompt_version: int | None = None

    def validate(self) -> None:
        SpanEvent.validate(self)
        if self.usage is not None:
            self.usage.validate()
        if self.usage_details is not None:
            self.usage_details.validate()


@dataclass(frozen=True, slots=True, kw_only=True)
class ScoreEvent(_EventBase):
    """A score attached to a trace and optionally to an observation.

    name and value are required.
    """

    event_type: ClassVar[EventType] = EventType.SCORE_CREATE
    _always_emit: ClassVar[frozenset[str]] = frozenset({"id", "name", "value", "trace_id"})

    name: str = ""
    value: float | None = None
    trace_id: str | None = None
    session_id: str | None = None
    observation_id: str | None = None
    comment: str | None = None
    dataset_run_id: str | None = None
    environment: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        _EventBase.validate(self)
        if not self.name.strip():
            raise validation_error("name", self.name, "non zero value required")
        if self.value is None:
            raise validation_error("value", self.value, "non zero value required")


IngestionEvent = TraceEvent | SpanEvent | GenerationEvent | ScoreEvent

INGESTION_EVENT_TYPES: tuple[type[_EventBase], ...] = (TraceEvent, SpanEvent, GenerationEvent, ScoreEvent)


def event_type_of(event: object) -> EventType:
    """Return the wire tag of an event, rejecting anything outside the union.

    Raises:
        ValidationError: If event is not one of the four ingestion variants.
    """
    if not isinstance(event, INGESTION_EVENT_TYPES):
        raise UNKNOWN_EVENT_TYPE.with_details({"type": type(event).__name__})
    return event.event_type
