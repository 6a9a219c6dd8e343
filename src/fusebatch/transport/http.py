# src/fusebatch/transport/http.py
"""HTTP transport for the Langfuse ingestion API.

Makes exactly one POST per call; retry is the delivery engine's job. Every
failure leaves this module as a classified IngestionError:

- httpx.TimeoutException -> NETWORK_TIMEOUT (retryable)
- httpx.ConnectError -> CONNECTION_FAILED (retryable)
- any other httpx.TransportError -> REQUEST_FAILED (retryable)
- HTTP status >= 400 -> error_from_status (retryable for 5xx and 429)
- unserializable request / undecodable response -> ProcessingError

If the delivery context's deadline passes during a request, the context's
own error is raised instead of a network error, so the attempt is not
retried.

A context that is already done stops the call before anything is sent.
Cancelling the context while the request is in flight does not abort it; the
response is still read and classified.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx
import structlog

from fusebatch.contracts.errors import (
    CONNECTION_FAILED,
    NETWORK_TIMEOUT,
    REQUEST_FAILED,
    error_from_status,
)
from fusebatch.contracts.results import ApiEventError, IngestionResponse
from fusebatch.transport.codec import decode_response, encode_batch, maybe_compress

if TYPE_CHECKING:
    from fusebatch.contracts.context import DeliveryContext
    from fusebatch.contracts.envelope import Envelope
    from fusebatch.core.config import LangfuseSettings

logger = structlog.get_logger(__name__)

INGESTION_PATH = "/api/public/ingestion"


class HttpTransport:
    """Posts ingestion batches over a pooled httpx client.

    Example:
        transport = HttpTransport(
            "https://cloud.langfuse.com",
            public_key="pk-lf-...",
            secret_key="sk-lf-...",
        )
        api_errors = transport.send_batch(context, envelopes)
        transport.close()
    """

    def __init__(
        self,
        url: str,
        *,
        public_key: str,
        secret_key: str,
        timeout: float = 30.0,
        max_connections: int = 100,
        max_keepalive_connections: int = 10,
        keepalive_expiry: float = 90.0,
        compression_threshold: int = 1024,
    ) -> None:
        """Initialize the transport.

        Args:
            url: Langfuse base URL (the ingestion path is appended)
            public_key: Basic-auth username
            secret_key: Basic-auth password
            timeout: Per-request timeout in seconds
            max_connections: Pool size
            max_keepalive_connections: Idle connections kept open
            keepalive_expiry: Seconds an idle connection is kept
            compression_threshold: Gzip request bodies larger than this many bytes
        """
        self._endpoint = url.rstrip("/") + INGESTION_PATH
        self._timeout = timeout
        self._compression_threshold = compression_threshold
        # httpx.Client is thread-safe; the internal pool handles concurrency.
        # Per-request timeouts override the default via timeout= kwarg.
        self._client = httpx.Client(
            auth=httpx.BasicAuth(public_key, secret_key),
            timeout=timeout,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
                keepalive_expiry=keepalive_expiry,
            ),
            headers={
                "Content-Type": "application/json",
                "Accept-Encoding": "gzip",
            },
        )

    @classmethod
    def from_settings(cls, settings: LangfuseSettings) -> HttpTransport:
        """Factory from LangfuseSettings.

        Field Mapping:
            settings.timeout_seconds -> timeout
            settings.max_idle_conns -> max_connections
            settings.max_idle_conns_per_host -> max_keepalive_connections
            settings.idle_conn_timeout_seconds -> keepalive_expiry
            settings.compression_threshold_bytes -> compression_threshold
        """
        return cls(
            settings.url,
            public_key=settings.public_key,
            secret_key=settings.secret_key,
            timeout=settings.timeout_seconds,
            max_connections=settings.max_idle_conns,
            max_keepalive_connections=settings.max_idle_conns_per_host,
            keepalive_expiry=settings.idle_conn_timeout_seconds,
            compression_threshold=settings.compression_threshold_bytes,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def send_batch(self, context: DeliveryContext, envelopes: Sequence[Envelope]) -> list[ApiEventError]:
        """POST a batch and return the API's per-event errors."""
        response = self._post(context, envelopes)
        return list(response.errors)

    def send(self, context: DeliveryContext, envelope: Envelope) -> None:
        """POST a single event.

        Raises:
            IngestionError: If the request failed or the API rejected the event.
        """
        response = self._post(context, [envelope])
        if response.errors:
            raise response.errors[0].to_error()

    def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        self._client.close()

    def _request_timeout(self, context: DeliveryContext) -> float:
        remaining = context.remaining()
        if remaining is None:
            return self._timeout
        return min(self._timeout, remaining)

    def _post(self, context: DeliveryContext, envelopes: Sequence[Envelope]) -> IngestionResponse:
        context.raise_if_done()
        body, encoding = maybe_compress(encode_batch(envelopes), self._compression_threshold)
        headers = {"Content-Encoding": encoding} if encoding is not None else None

        start = time.perf_counter()
        try:
            response = self._client.post(
                self._endpoint,
                content=body,
                headers=headers,
                timeout=self._request_timeout(context),
            )
        except httpx.TimeoutException as e:
            # A deadline hit mid-request is the context's failure, not the network's
            context.raise_if_done()
            raise NETWORK_TIMEOUT.with_cause(e) from e
        except httpx.ConnectError as e:
            raise CONNECTION_FAILED.with_cause(e) from e
        except httpx.TransportError as e:
            raise REQUEST_FAILED.with_cause(e) from e
        latency_ms = (time.perf_counter() - start) * 1000

        logger.bind(**context.fields).debug(
            "Ingestion request completed",
            status_code=response.status_code,
            batch_size=len(envelopes),
            request_bytes=len(body),
            compressed=encoding is not None,
            latency_ms=round(latency_ms, 2),
        )

        if response.status_code >= 400:
            raise error_from_status(response.status_code, response.text)
        return decode_response(response.content)
