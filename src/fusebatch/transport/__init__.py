"""Transports for the Langfuse ingestion API."""

from fusebatch.transport.http import INGESTION_PATH, HttpTransport

__all__ = ["INGESTION_PATH", "HttpTransport"]
