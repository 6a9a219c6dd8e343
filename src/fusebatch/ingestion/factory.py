# src/fusebatch/ingestion/factory.py
"""Factory for building an IngestionService from settings.

Connection settings are checked here, before any thread or connection
pool exists, so a misconfigured client fails at construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from fusebatch.contracts.config import RuntimeIngestionConfig
from fusebatch.contracts.errors import MISSING_PUBLIC_KEY, MISSING_SECRET_KEY, MISSING_URL, config_error
from fusebatch.ingestion.service import IngestionService
from fusebatch.transport.http import HttpTransport

if TYPE_CHECKING:
    from fusebatch.core.config import LangfuseSettings
    from fusebatch.ingestion.metrics import MetricsCollector
    from fusebatch.ingestion.protocols import TransportProtocol

logger = structlog.get_logger(__name__)


def validate_connection_settings(settings: LangfuseSettings) -> None:
    """Check the settings an HTTP transport cannot run without.

    Raises:
        ConfigurationError: If url, public_key or secret_key is missing,
            or url is not an http(s) URL.
    """
    if not settings.url:
        raise MISSING_URL.with_details({"field": "url"})
    if not settings.url.startswith(("http://", "https://")):
        raise config_error("url", f"must start with http:// or https://, got {settings.url!r}")
    if not settings.public_key:
        raise MISSING_PUBLIC_KEY.with_details({"field": "public_key"})
    if not settings.secret_key:
        raise MISSING_SECRET_KEY.with_details({"field": "secret_key"})


def create_service(
    settings: LangfuseSettings,
    *,
    transport: TransportProtocol | None = None,
    metrics: MetricsCollector | None = None,
) -> IngestionService:
    """Create a running IngestionService from settings.

    Args:
        settings: Validated settings (see load_settings)
        transport: Transport to use instead of an HttpTransport built from
            settings. Connection settings are only checked when this is None.
        metrics: Optional collector to record into

    Returns:
        A started IngestionService

    Raises:
        ConfigurationError: If connection or pipeline settings are invalid.
    """
    config = RuntimeIngestionConfig.from_settings(settings)
    if transport is None:
        validate_connection_settings(settings)
        transport = HttpTransport.from_settings(settings)
        logger.debug("Created HTTP transport", endpoint=transport.endpoint)
    return IngestionService(config, transport, metrics=metrics)
