"""Utility functions and helpers.

This module provides various utilities for baseline-lens:
- async_helpers: Exception taxonomy, retries, cancellation tokens
- logging: Structured logging setup and event names
- metrics: Application metrics collection
"""

from baseline_lens.utils.async_helpers import (
    AnalysisCancelledError,
    BaselineLensError,
    CancellationToken,
    ConfigurationError,
    DataLoadError,
    FileSizeError,
    ParsingError,
)
from baseline_lens.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_from_config,
    configure_logging,
    unbind_context,
)
from baseline_lens.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)

__all__ = [
    # Errors
    "AnalysisCancelledError",
    "BaselineLensError",
    "CancellationToken",
    "ConfigurationError",
    # Metrics
    "Counter",
    "DataLoadError",
    "FileSizeError",
    "Gauge",
    "Histogram",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    "ParsingError",
    "Timer",
    "bind_context",
    "clear_context",
    "configure_from_config",
    "configure_logging",
    "get_metrics",
    "unbind_context",
]
