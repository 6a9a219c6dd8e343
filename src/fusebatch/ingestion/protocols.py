# src/fusebatch/ingestion/protocols.py
"""Protocol definitions for the delivery pipeline's collaborators.

The pipeline depends on its transport only through TransportProtocol, so
tests substitute in-memory fakes and production wires in HttpTransport.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from fusebatch.contracts.context import DeliveryContext
    from fusebatch.contracts.envelope import Envelope
    from fusebatch.contracts.results import ApiEventError


@runtime_checkable
class TransportProtocol(Protocol):
    """Sends envelopes to the ingestion API.

    A transport makes exactly one attempt per call. Retry and backoff are the
    delivery engine's job.

    Failure Contract:
        Transport-level failures are raised as classified IngestionError
        subclasses: NetworkError (retryable), ApiError (retryable for 5xx and
        429), ProcessingError (never retried), DeliveryCancelledError when
        the context is done. Per-event rejections in an otherwise successful
        response are returned, not raised.

    Thread Safety:
        Called concurrently from every worker thread. Implementations must be
        safe for concurrent use.
    """

    def send_batch(self, context: DeliveryContext, envelopes: Sequence[Envelope]) -> list[ApiEventError]:
        """Send a batch in one request.

        Returns:
            API-reported per-event errors (empty when every event was accepted)

        Raises:
            IngestionError: If the request as a whole failed
        """
        ...

    def send(self, context: DeliveryContext, envelope: Envelope) -> None:
        """Send a single event.

        Raises:
            IngestionError: If the request failed or the API rejected the event
        """
        ...

    def close(self) -> None:
        """Release connections. Called once when the service stops."""
        ...
