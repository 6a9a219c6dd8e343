# tests/fixtures/__init__.py
"""Shared test doubles and factories for fusebatch tests.

Available helpers:
- RecordingTransport: scriptable in-memory TransportProtocol
- make_trace / make_envelope_for: event and envelope factories
"""

from tests.fixtures.events import make_envelope_for, make_score, make_trace
from tests.fixtures.transports import RecordingTransport

__all__ = [
    "RecordingTransport",
    "make_envelope_for",
    "make_score",
    "make_trace",
]
