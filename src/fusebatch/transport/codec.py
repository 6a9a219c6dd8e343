# src/fusebatch/transport/codec.py
"""Wire framing for the Langfuse ingestion endpoint.

Request:
    {"batch": [{"id": ..., "type": ..., "timestamp": ..., "body": {...}}, ...]}

Response (HTTP 200/207):
    {"successes": [{"id": ..., "status": 201}, ...],
     "errors": [{"id": ..., "status": 400, "message": ..., "error": ...}, ...]}
"""

from __future__ import annotations

import gzip
import json
from collections.abc import Sequence
from typing import Any

from fusebatch.contracts.envelope import Envelope
from fusebatch.contracts.errors import BATCH_PROCESSING, ProcessingError
from fusebatch.contracts.results import IngestionResponse

RESPONSE_DECODE = ProcessingError("RESPONSE_DECODE", "failed to decode ingestion response")


def batch_item(envelope: Envelope) -> dict[str, Any]:
    """One element of the request's ``batch`` list."""
    return {
        "id": str(envelope.id),
        "type": str(envelope.event_type),
        "timestamp": envelope.submitted_at.isoformat(),
        "body": envelope.event.to_body(),
    }


def encode_batch(envelopes: Sequence[Envelope]) -> bytes:
    """Serialize envelopes into an ingestion request body.

    Raises:
        ProcessingError: If an event body is not JSON-serializable.
    """
    try:
        payload = {"batch": [batch_item(envelope) for envelope in envelopes]}
        return json.dumps(payload, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise BATCH_PROCESSING.with_cause(e).with_details({"batch_size": len(envelopes)}) from e


def maybe_compress(body: bytes, threshold: int) -> tuple[bytes, str | None]:
    """Gzip bodies larger than threshold bytes.

    Returns:
        (body to send, Content-Encoding value or None)
    """
    if len(body) <= threshold:
        return body, None
    return gzip.compress(body), "gzip"


def decode_response(content: bytes) -> IngestionResponse:
    """Parse an ingestion response body.

    An empty body is treated as a response with no per-event errors.

    Raises:
        ProcessingError: If the body is not a well-formed ingestion response.
    """
    if not content.strip():
        return IngestionResponse()
    try:
        return IngestionResponse.from_json(json.loads(content))
    except (KeyError, TypeError, ValueError) as e:
        raise RESPONSE_DECODE.with_cause(e).with_details({"body_preview": content[:200].decode("utf-8", "replace")}) from e
