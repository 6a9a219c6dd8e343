# tests/unit/contracts/test_events.py
"""Tests for ingestion events, usage records and envelopes."""

import uuid
from datetime import UTC, datetime

import pytest

from fusebatch.contracts import (
    DeliveryContext,
    EventType,
    GenerationEvent,
    Level,
    ScoreEvent,
    SpanEvent,
    TraceEvent,
    Usage,
    UsageDetail,
    UsageUnit,
    ValidationError,
    event_type_of,
    make_envelope,
)

EVENT_ID = uuid.UUID("6f1c2a8e-8b0e-4b6e-9a57-3d1f5c1e2b40")
TRACE_ID = uuid.UUID("0b4c7d7e-1f2a-4c3d-8e9f-a0b1c2d3e4f5")


class TestEventTags:
    @pytest.mark.parametrize(
        ("event", "expected"),
        [
            (TraceEvent(name="t"), EventType.TRACE_CREATE),
            (SpanEvent(name="s"), EventType.SPAN_CREATE),
            (GenerationEvent(name="g"), EventType.GENERATION_CREATE),
            (ScoreEvent(name="s", value=1.0), EventType.SCORE_CREATE),
        ],
    )
    def test_event_type_of_returns_variant_tag(self, event: object, expected: EventType) -> None:
        assert event_type_of(event) is expected

    def test_event_type_of_rejects_unknown_variant(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            event_type_of({"name": "not an event"})

        assert exc_info.value.code == "UNKNOWN_EVENT_TYPE"
        assert exc_info.value.details == {"type": "dict"}


class TestToBody:
    def test_trace_body_uses_camel_case_and_drops_empty_fields(self) -> None:
        trace = TraceEvent(id=EVENT_ID, name="checkout", user_id="u-1", tags=("a", "b"))

        assert trace.to_body() == {
            "id": str(EVENT_ID),
            "name": "checkout",
            "userId": "u-1",
            "tags": ["a", "b"],
            "public": False,
        }

    def test_span_body_always_carries_trace_id(self) -> None:
        span = SpanEvent(id=EVENT_ID, name="step")

        body = span.to_body()

        assert "traceId" in body
        assert body["traceId"] is None

    def test_generation_body_encodes_usage_and_datetimes(self) -> None:
        started = datetime(2026, 1, 30, 12, 0, tzinfo=UTC)
        generation = GenerationEvent(
            id=EVENT_ID,
            trace_id=TRACE_ID,
            name="llm",
            start_time=started,
            model="gpt-4o",
            usage=Usage.from_tokens(10, 5),
            usage_details=UsageDetail(input=10, output=5),
            level=Level.WARNING,
        )

        body = generation.to_body()

        assert body["traceId"] == str(TRACE_ID)
        assert body["startTime"] == "2026-01-30T12:00:00+00:00"
        assert body["level"] == "WARNING"
        assert body["usage"] == {
            "input": 10,
            "output": 5,
            "total": 15,
            "unit": "TOKENS",
            "promptTokens": 10,
            "completionTokens": 5,
            "totalTokens": 15,
        }
        # Detail records keep snake_case keys
        assert body["usageDetails"] == {"input": 10, "output": 5}

    def test_nested_free_form_values_are_encoded(self) -> None:
        request_id = uuid.UUID("00000000-0000-4000-8000-00000000abcd")
        at = datetime(2026, 1, 30, 12, 0, tzinfo=UTC)
        trace = TraceEvent(
            id=EVENT_ID,
            name="checkout",
            input={"request_id": request_id, "steps": [{"at": at}]},
            metadata={"at": at, "level": Level.ERROR, "ids": (request_id,)},
        )

        body = trace.to_body()

        assert body["input"] == {
            "request_id": str(request_id),
            "steps": [{"at": "2026-01-30T12:00:00+00:00"}],
        }
        assert body["metadata"] == {
            "at": "2026-01-30T12:00:00+00:00",
            "level": "ERROR",
            "ids": [str(request_id)],
        }

    def test_score_body_always_carries_name_and_value(self) -> None:
        score = ScoreEvent(id=EVENT_ID, name="accuracy", value=0.0)

        assert score.to_body() == {"id": str(EVENT_ID), "name": "accuracy", "value": 0.0, "traceId": None}


class TestValidation:
    def test_score_requires_name(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ScoreEvent(name=" ", value=1.0).validate()

        assert exc_info.value.details["field"] == "name"

    def test_score_requires_value(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ScoreEvent(name="accuracy").validate()

        assert exc_info.value.details["field"] == "value"

    def test_generation_validates_usage_range(self) -> None:
        generation = GenerationEvent(name="llm", usage=Usage(input=10_000_000))

        with pytest.raises(ValidationError) as exc_info:
            generation.validate()

        assert exc_info.value.details["field"] == "usage.input"

    def test_generation_validates_cost_range(self) -> None:
        usage = Usage.from_tokens(1, 1).with_costs(1_000_000.0, 0.0)

        with pytest.raises(ValidationError):
            GenerationEvent(name="llm", usage=usage).validate()

    def test_negative_usage_detail_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GenerationEvent(name="llm", usage_details=UsageDetail(output=-1)).validate()

    def test_valid_events_pass(self) -> None:
        TraceEvent(name="t").validate()
        SpanEvent(name="s").validate()
        GenerationEvent(name="g", usage=Usage.from_characters(100, 20)).validate()
        ScoreEvent(name="s", value=0.5).validate()


class TestImmutableBuilders:
    def test_with_id_returns_copy(self) -> None:
        trace = TraceEvent(name="t")
        stamped = trace.with_id(EVENT_ID)

        assert stamped.id == EVENT_ID
        assert trace.id is None

    def test_span_error_ends_span_at_error_level(self) -> None:
        span = SpanEvent(name="s")
        failed = span.error("boom")

        assert failed.level is Level.ERROR
        assert failed.status_message == "boom"
        assert failed.end_time is not None
        assert span.end_time is None

    def test_generation_end_keeps_variant(self) -> None:
        ended = GenerationEvent(name="g").end()

        assert isinstance(ended, GenerationEvent)
        assert ended.end_time is not None

    def test_usage_builders(self) -> None:
        usage = Usage.from_characters(3, 4).with_costs(0.25, 0.5)

        assert usage.total == 7
        assert usage.total_cost == 0.75
        assert usage.unit is UsageUnit.CHARACTERS


class TestMakeEnvelope:
    def test_assigns_identifier_when_missing(self) -> None:
        envelope = make_envelope(TraceEvent(name="t"), DeliveryContext.background())

        assert isinstance(envelope.id, uuid.UUID)
        assert envelope.event.id == envelope.id
        assert envelope.event_type is EventType.TRACE_CREATE

    def test_keeps_caller_identifier(self) -> None:
        envelope = make_envelope(TraceEvent(id=EVENT_ID, name="t"), DeliveryContext.background())

        assert envelope.id == EVENT_ID

    def test_rejects_invalid_event(self) -> None:
        with pytest.raises(ValidationError):
            make_envelope(ScoreEvent(name="s"), DeliveryContext.background())

    def test_keeps_context(self) -> None:
        context = DeliveryContext.with_timeout(5.0, request_id="r-1")

        envelope = make_envelope(TraceEvent(name="t"), context)

        assert envelope.context is context
        assert envelope.submitted_at.tzinfo is UTC
