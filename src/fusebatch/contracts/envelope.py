# src/fusebatch/contracts/envelope.py
"""Envelope: an ingestion event plus its delivery metadata.

Created by IngestionService.add_event() and owned by the pipeline from the
moment it is enqueued until its delivery outcome has been recorded.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fusebatch.contracts.enums import EventType
from fusebatch.contracts.events import event_type_of

if TYPE_CHECKING:
    from fusebatch.contracts.context import DeliveryContext
    from fusebatch.contracts.events import IngestionEvent


@dataclass(frozen=True, slots=True)
class Envelope:
    """A validated event ready for delivery.

    Attributes:
        id: Event identifier, caller-supplied or generated on submission
        event_type: Wire tag derived from the event variant
        event: The event payload, always carrying ``id``
        context: Submission context (cancellation, deadline, log fields)
        submitted_at: UTC time of submission, sent as the item timestamp
    """

    id: uuid.UUID
    event_type: EventType
    event: IngestionEvent
    context: DeliveryContext
    submitted_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


def make_envelope(event: IngestionEvent, context: DeliveryContext) -> Envelope:
    """Validate an event and wrap it for delivery.

    Assigns a fresh UUID4 when the event has no identifier. A caller-supplied
    identifier is kept as is.

    Raises:
        ValidationError: If the event is not one of the ingestion variants or
            fails its own validation.
    """
    event_type = event_type_of(event)
    event.validate()
    if event.id is None:
        event = event.with_id(uuid.uuid4())
    assert event.id is not None
    return Envelope(id=event.id, event_type=event_type, event=event, context=context)
