# src/fusebatch/contracts/results.py
"""Outcome records returned by the ingestion API.

The API answers a batch with per-item successes and errors. A transport call
can succeed at the HTTP level while still reporting individual items as
rejected; those are surfaced as ApiEventError values, not exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fusebatch.contracts.errors import IngestionError, error_from_status


@dataclass(frozen=True, slots=True)
class ApiEventSuccess:
    id: str
    status: int


@dataclass(frozen=True, slots=True)
class ApiEventError:
    """An item the API refused.

    Attributes:
        id: Identifier of the rejected event (string form of its UUID)
        status: Per-item HTTP-like status
        message: Human-readable reason
        error: Raw error payload rendered as text
    """

    id: str
    status: int
    message: str = ""
    error: str = ""

    def to_error(self) -> IngestionError:
        """Classify this item failure like an HTTP response with its status."""
        return error_from_status(self.status, self.message or self.error).with_details(
            {"event_id": self.id, "message": self.message, "error": self.error}
        )


@dataclass(frozen=True, slots=True)
class IngestionResponse:
    successes: tuple[ApiEventSuccess, ...] = ()
    errors: tuple[ApiEventError, ...] = ()

    @classmethod
    def from_json(cls, payload: Any) -> IngestionResponse:
        """Parse the decoded JSON body of an ingestion response.

        Missing lists are treated as empty. Raises KeyError/TypeError/ValueError
        on structurally invalid items; the transport maps those to a
        processing error.
        """
        if not isinstance(payload, dict):
            raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
        successes = tuple(ApiEventSuccess(id=str(item["id"]), status=int(item["status"])) for item in payload.get("successes") or ())
        errors = tuple(
            ApiEventError(
                id=str(item["id"]),
                status=int(item["status"]),
                message=str(item.get("message") or ""),
                error=_render_error(item.get("error")),
            )
            for item in payload.get("errors") or ()
        )
        return cls(successes=successes, errors=errors)


def _render_error(raw: Any) -> str:
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else repr(raw)
