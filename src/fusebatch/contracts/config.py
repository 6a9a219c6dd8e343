# src/fusebatch/contracts/config.py
"""Runtime configuration consumed by the ingestion pipeline.

RuntimeIngestionConfig is frozen: the pipeline never changes its
configuration after construction. It is normally built from validated
LangfuseSettings via from_settings(), but tests construct it directly.

Field Origins:
- Settings fields: number_of_event_processor, batch_size, batch_timeout,
  max_retries, retry_delay (from LangfuseSettings)
- Internal fields: queue_capacity (QUEUE_CAPACITY, not user-configurable)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fusebatch.contracts.errors import config_error

if TYPE_CHECKING:
    from fusebatch.core.config import LangfuseSettings

# Capacity of the shared event queue. Independent of worker count.
QUEUE_CAPACITY = 512


@dataclass(frozen=True, slots=True)
class RuntimeIngestionConfig:
    """Values the worker pool, accumulators and delivery engine run with.

    Durations are in seconds.

    Fail-Fast Behavior:
        __post_init__ raises ConfigurationError for values the pipeline cannot
        run with, so a bad configuration never starts a worker. Zero
        processors is accepted (the service warns and runs none).
    """

    number_of_event_processor: int = 1
    batch_size: int = 100
    batch_timeout: float = 5.0
    max_retries: int = 3
    retry_delay: float = 1.0
    queue_capacity: int = QUEUE_CAPACITY

    def __post_init__(self) -> None:
        if self.number_of_event_processor < 0:
            raise config_error("number_of_event_processor", f"must be >= 0, got {self.number_of_event_processor}")
        if self.batch_size < 1:
            raise config_error("batch_size", f"must be >= 1, got {self.batch_size}")
        if not (self.batch_timeout > 0 and math.isfinite(self.batch_timeout)):
            raise config_error("batch_timeout", f"must be a positive finite duration, got {self.batch_timeout}")
        if self.max_retries < 0:
            raise config_error("max_retries", f"must be >= 0, got {self.max_retries}")
        if not (self.retry_delay >= 0 and math.isfinite(self.retry_delay)):
            raise config_error("retry_delay", f"must be a non-negative finite duration, got {self.retry_delay}")
        if self.queue_capacity < 1:
            raise config_error("queue_capacity", f"must be >= 1, got {self.queue_capacity}")

    @classmethod
    def default(cls) -> RuntimeIngestionConfig:
        return cls()

    @classmethod
    def from_settings(cls, settings: LangfuseSettings) -> RuntimeIngestionConfig:
        """Factory from LangfuseSettings config model.

        Field Mapping:
            settings.number_of_event_processor -> number_of_event_processor
            settings.batch_size -> batch_size
            settings.batch_timeout_seconds -> batch_timeout
            settings.max_retries -> max_retries
            settings.retry_delay_seconds -> retry_delay
        """
        return cls(
            number_of_event_processor=settings.number_of_event_processor,
            batch_size=settings.batch_size,
            batch_timeout=settings.batch_timeout_seconds,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_seconds,
            queue_capacity=QUEUE_CAPACITY,
        )
