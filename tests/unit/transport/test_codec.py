# tests/unit/transport/test_codec.py
"""Tests for ingestion request/response framing."""

import gzip
import json
import uuid
from datetime import UTC, datetime

import pytest

from fusebatch.contracts import ProcessingError
from fusebatch.transport.codec import batch_item, decode_response, encode_batch, maybe_compress
from tests.fixtures import make_envelope_for, make_score, make_trace


class TestEncodeBatch:
    def test_batch_item_shape(self) -> None:
        envelope = make_envelope_for(make_trace(name="checkout", user_id="u-1"))

        item = batch_item(envelope)

        assert item["id"] == str(envelope.id)
        assert item["type"] == "trace-create"
        assert item["timestamp"] == envelope.submitted_at.isoformat()
        assert item["body"]["id"] == str(envelope.id)
        assert item["body"]["name"] == "checkout"
        assert item["body"]["userId"] == "u-1"

    def test_encodes_compact_json_in_order(self) -> None:
        envelopes = [make_envelope_for(), make_envelope_for(make_score())]

        body = encode_batch(envelopes)

        assert b": " not in body
        payload = json.loads(body)
        assert [item["id"] for item in payload["batch"]] == [str(envelope.id) for envelope in envelopes]
        assert [item["type"] for item in payload["batch"]] == ["trace-create", "score-create"]

    def test_nested_datetimes_and_uuids_are_serialized(self) -> None:
        request_id = uuid.uuid4()
        at = datetime(2026, 1, 30, 12, 0, tzinfo=UTC)
        envelope = make_envelope_for(make_trace(metadata={"at": at}, input={"request_id": request_id}))

        payload = json.loads(encode_batch([envelope]))

        body = payload["batch"][0]["body"]
        assert body["metadata"] == {"at": "2026-01-30T12:00:00+00:00"}
        assert body["input"] == {"request_id": str(request_id)}

    def test_unserializable_body_is_processing_error(self) -> None:
        envelope = make_envelope_for(make_trace(metadata={"ratio": float("nan")}))

        with pytest.raises(ProcessingError) as exc_info:
            encode_batch([envelope])

        assert exc_info.value.code == "BATCH_PROCESSING"
        assert exc_info.value.cause is not None


class TestMaybeCompress:
    def test_small_body_untouched(self) -> None:
        assert maybe_compress(b"x" * 1024, 1024) == (b"x" * 1024, None)

    def test_large_body_gzipped(self) -> None:
        body = b"x" * 1025

        compressed, encoding = maybe_compress(body, 1024)

        assert encoding == "gzip"
        assert gzip.decompress(compressed) == body


class TestDecodeResponse:
    def test_empty_body_has_no_errors(self) -> None:
        response = decode_response(b"")

        assert response.errors == ()
        assert response.successes == ()

    def test_parses_errors(self) -> None:
        response = decode_response(b'{"successes":[],"errors":[{"id":"a","status":400,"message":"bad"}]}')

        assert response.errors[0].id == "a"
        assert response.errors[0].status == 400

    @pytest.mark.parametrize("content", [b"not json", b"[1, 2]", b'{"errors": [{"id": "a"}]}'])
    def test_malformed_body_is_processing_error(self, content: bytes) -> None:
        with pytest.raises(ProcessingError) as exc_info:
            decode_response(content)

        assert exc_info.value.code == "RESPONSE_DECODE"
