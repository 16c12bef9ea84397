"""Structured logging configuration.

Every module logs through ``structlog.get_logger()`` with snake_case event
names from ``LogEventNames``. This module wires structlog to the standard
library so that:
- output is JSON (for CI) or colored console lines (for development)
- document contents never flood a log line, since long values are truncated
- the file name and language id of the document being analyzed are attached
  to every entry through context variables
- logs go to stderr, and optionally to a file, so stdout stays free for reports
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import structlog

if TYPE_CHECKING:
    from ..config.schema import LoggingConfig

# Longest string value emitted as-is in a log entry
MAX_LOG_VALUE_LENGTH = 500

EventDict = MutableMapping[str, Any]


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def truncate_log_value(value: Any, limit: int = MAX_LOG_VALUE_LENGTH) -> Any:
    """Shorten long strings, descending into dicts, lists and tuples.

    A cut string keeps its first ``limit`` characters followed by
    ``...[N more chars]``.
    """
    if isinstance(value, str):
        if len(value) <= limit:
            return value
        return f"{value[:limit]}...[{len(value) - limit} more chars]"
    if isinstance(value, dict):
        return {k: truncate_log_value(v, limit) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(truncate_log_value(v, limit) for v in value)
    return value


def value_truncator(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Structlog processor applying ``truncate_log_value`` to the whole event."""
    return cast(EventDict, truncate_log_value(event_dict))


def add_context_processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Structlog processor adding the service name and version."""
    from baseline_lens._version import __version__

    event_dict["service"] = "baseline-lens"
    event_dict["version"] = __version__
    return event_dict


def build_processors(log_format: LogFormat) -> list[Any]:
    """Processor chain ending in the renderer for ``log_format``."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        value_truncator,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(), exception_formatter=structlog.dev.plain_traceback
            )
        )
    return processors


def _handlers(numeric_level: int, file_path: Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path is not None:
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(file_path, encoding="utf-8"))
        except OSError as e:
            logging.getLogger("baseline_lens.logging").warning(
                "Could not create log file %s: %s", file_path, e
            )
    for handler in handlers:
        handler.setLevel(numeric_level)
    return handlers


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, any case
        log_format: ``json`` or ``console``, any case
        file_path: Log file, used when ``file_enabled`` is set
        file_enabled: Also write entries to ``file_path``

    Example:
        configure_logging(level="DEBUG", log_format="console")
    """
    level = LogLevel(str(level).upper())
    log_format = LogFormat(str(log_format).lower())
    numeric_level = getattr(logging, level.value)

    structlog.configure(
        processors=build_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    target = Path(file_path) if file_enabled and file_path else None
    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=_handlers(numeric_level, target),
        force=True,
    )


def configure_from_config(config: LoggingConfig) -> None:
    """Apply the ``logging`` section of the application configuration."""
    configure_logging(
        level=config.level,
        log_format=config.format,
        file_path=config.file.path,
        file_enabled=config.file.enabled,
    )


def bind_context(**kwargs: Any) -> None:
    """Attach key-value pairs to every following log entry in this context.

    Example:
        bind_context(file_name="app.css", language_id="css")
        log.info("document_analysis_start")  # carries both fields
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogEventNames:
    """Standard log event names for consistency."""

    # Dataset lifecycle
    DATASET_LOADING = "dataset_loading"
    DATASET_LOADED = "dataset_loaded"
    DATASET_SOURCE_FAILED = "dataset_source_failed"
    DATASET_FALLBACK = "dataset_fallback"
    DATASET_UPGRADED = "dataset_upgraded"
    DATASET_CACHE_CLEARED = "dataset_cache_cleared"

    # Document analysis
    DOCUMENT_ANALYSIS_START = "document_analysis_start"
    DOCUMENT_ANALYSIS_COMPLETE = "document_analysis_complete"
    DOCUMENT_SKIPPED = "document_skipped"
    ANALYZER_FAILED = "analyzer_failed"

    # Parsing
    PARSE_FAILED = "parse_failed"
    PARSE_RECOVERED = "parse_recovered"
    FALLBACK_ANALYSIS = "fallback_analysis"
    FALLBACK_FAILED = "fallback_failed"
    EMBEDDED_REGION_FAILED = "embedded_region_failed"

    # Guard
    TASK_STARTED = "analysis_task_started"
    TASK_COMPLETED = "analysis_task_completed"
    TASK_TIMED_OUT = "analysis_task_timed_out"
    TASK_CANCELLED = "analysis_task_cancelled"

    # Error normalizer
    ERROR_RECORDED = "analysis_error_recorded"
    ERROR_LOG_CLEARED = "analysis_error_log_cleared"

    # Command line
    FILE_READ_FAILED = "file_read_failed"
    CONFIGURATION_INVALID = "configuration_invalid"
    DATASET_UNAVAILABLE = "dataset_unavailable"
