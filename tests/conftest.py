# tests/conftest.py
"""Shared test fixtures and Hypothesis configuration.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from fusebatch.contracts import DeliveryContext, RuntimeIngestionConfig
from fusebatch.ingestion import IngestionService, MetricsCollector
from tests.fixtures import RecordingTransport

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep structlog configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def stop_context() -> DeliveryContext:
    """Generous stop deadline so a hung drain fails the test instead of hanging it."""
    return DeliveryContext.with_timeout(10.0)


@pytest.fixture
def make_service(
    transport: RecordingTransport,
    metrics: MetricsCollector,
) -> Iterator[object]:
    """Factory for started services; every service is stopped at teardown."""
    services: list[IngestionService] = []

    def _make(config: RuntimeIngestionConfig | None = None, **overrides: object) -> IngestionService:
        if config is None:
            config = RuntimeIngestionConfig(**overrides)  # type: ignore[arg-type]
        service = IngestionService(config, transport, metrics=metrics)
        services.append(service)
        return service

    yield _make

    for service in services:
        service.stop(DeliveryContext.with_timeout(10.0))
