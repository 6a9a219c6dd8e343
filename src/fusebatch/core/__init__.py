"""Core infrastructure: configuration, logging and clocks."""

from fusebatch.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from fusebatch.core.config import LangfuseSettings, load_settings
from fusebatch.core.logging import configure_logging, get_logger

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "LangfuseSettings",
    "MockClock",
    "SystemClock",
    "configure_logging",
    "get_logger",
    "load_settings",
]
