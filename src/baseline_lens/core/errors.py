"""Error normalization.

Every failure that reaches the engine boundary is converted into an
``AnalysisError`` record here, logged with its context, and counted by
kind. Nothing in this module raises.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from ..models.analysis import AnalysisError, ErrorKind
from ..utils.async_helpers import (
    AnalysisCancelledError,
    ConfigurationError,
    DataLoadError,
    FileSizeError,
    ParsingError,
    TimeoutError,
)
from ..utils.logging import LogEventNames
from ..utils.metrics import MetricsRegistry, get_metrics

log = structlog.get_logger()

_LINE_PATTERN = re.compile(r"line (\d+)", re.IGNORECASE)
_COLUMN_PATTERN = re.compile(r"column (\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class ErrorContext:
    """Where a failure happened."""

    file_name: str | None = None
    language_id: str | None = None
    file_size: int | None = None
    operation: str = "analysis"
    extra: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "file_name": self.file_name,
            "language_id": self.language_id,
            "file_size": self.file_size,
            "operation": self.operation,
        }
        fields.update(self.extra)
        return fields


@dataclass(frozen=True)
class ErrorLogEntry:
    """One normalized failure kept for diagnostics."""

    timestamp: datetime
    kind: ErrorKind
    message: str
    context: ErrorContext


def extract_message(error: object) -> str:
    """Human-readable message of an arbitrary error object."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if message is not None:
        return str(message)
    return "Unknown error occurred"


def extract_line(error: object) -> int | None:
    """Line number carried by an error, or mentioned in its message."""
    line = getattr(error, "line", None)
    if isinstance(line, int):
        return line
    match = _LINE_PATTERN.search(extract_message(error))
    return int(match.group(1)) if match else None


def extract_column(error: object) -> int | None:
    """Column number carried by an error, or mentioned in its message."""
    column = getattr(error, "column", None)
    if isinstance(column, int):
        return column
    match = _COLUMN_PATTERN.search(extract_message(error))
    return int(match.group(1)) if match else None


class ErrorNormalizer:
    """Converts failures into AnalysisError records and keeps counts.

    Counts live in the metrics registry's error counter (labelled by kind);
    the most recent entries are kept in a bounded deque.

    Example:
        normalizer = ErrorNormalizer()
        error = normalizer.handle_parsing_error(exc, ErrorContext(file_name="a.css"))
        normalizer.snapshot()  # {"counts_by_kind": {"parsing": 1, ...}}
    """

    def __init__(
        self,
        max_recent_errors: int = 100,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the normalizer.

        Args:
            max_recent_errors: How many entries ``recent_errors`` can return.
            metrics: Registry holding the per-kind counter. Defaults to the global one.
        """
        self._metrics = metrics or get_metrics()
        self._recent: deque[ErrorLogEntry] = deque(maxlen=max_recent_errors)

    def _record(self, kind: ErrorKind, message: str, context: ErrorContext) -> None:
        self._metrics.analysis_errors.inc(labels={"kind": kind.value})
        self._recent.append(
            ErrorLogEntry(
                timestamp=datetime.now(UTC),
                kind=kind,
                message=message,
                context=context,
            )
        )
        log_method = log.error if kind in (ErrorKind.DATA_LOAD, ErrorKind.UNKNOWN) else log.warning
        log_method(
            LogEventNames.ERROR_RECORDED,
            kind=kind.value,
            message=message,
            **context.to_log_fields(),
        )

    def handle_parsing_error(self, error: object, context: ErrorContext) -> AnalysisError:
        message = extract_message(error)
        self._record(ErrorKind.PARSING, message, context)
        return AnalysisError(
            file=context.file_name or "unknown",
            error=f"Parsing failed: {message}",
            line=extract_line(error),
            column=extract_column(error),
            kind=ErrorKind.PARSING,
        )

    def handle_timeout_error(
        self, context: ErrorContext, error: object | None = None
    ) -> AnalysisError:
        message = "Analysis timeout exceeded for large file"
        self._record(ErrorKind.TIMEOUT, extract_message(error) if error else message, context)
        return AnalysisError(
            file=context.file_name or "unknown",
            error=message,
            kind=ErrorKind.TIMEOUT,
        )

    def handle_cancellation(
        self, context: ErrorContext, error: object | None = None
    ) -> AnalysisError:
        # Aborted tasks count with timeouts; both end a task without a result
        message = "Analysis cancelled"
        self._record(ErrorKind.TIMEOUT, extract_message(error) if error else message, context)
        return AnalysisError(
            file=context.file_name or "unknown",
            error=message,
            kind=ErrorKind.TIMEOUT,
        )

    def handle_data_load_error(self, error: object, context: ErrorContext) -> AnalysisError:
        message = extract_message(error)
        self._record(ErrorKind.DATA_LOAD, message, context)
        return AnalysisError(
            file=context.file_name or "data-service",
            error=f"Data loading failed: {message}",
            kind=ErrorKind.DATA_LOAD,
        )

    def handle_file_size_error(self, context: ErrorContext) -> AnalysisError:
        message = f"File too large for analysis ({context.file_size} bytes)"
        self._record(ErrorKind.FILE_SIZE, message, context)
        return AnalysisError(
            file=context.file_name or "unknown",
            error=message,
            kind=ErrorKind.FILE_SIZE,
        )

    def handle_configuration_error(self, error: object, context: ErrorContext) -> AnalysisError:
        message = extract_message(error)
        self._record(ErrorKind.CONFIGURATION, message, context)
        return AnalysisError(
            file=context.file_name or "configuration",
            error=f"Configuration error: {message}",
            kind=ErrorKind.CONFIGURATION,
        )

    def handle_unknown_error(self, error: object, context: ErrorContext) -> AnalysisError:
        message = extract_message(error)
        self._record(ErrorKind.UNKNOWN, message, context)
        return AnalysisError(
            file=context.file_name or "unknown",
            error=f"Unexpected error: {message}",
            kind=ErrorKind.UNKNOWN,
        )

    def handle(self, error: BaseException, context: ErrorContext) -> AnalysisError:
        """Dispatch an exception to the matching handler by type."""
        if isinstance(error, ParsingError):
            return self.handle_parsing_error(error, context)
        if isinstance(error, TimeoutError):
            return self.handle_timeout_error(context, error)
        if isinstance(error, AnalysisCancelledError):
            return self.handle_cancellation(context, error)
        if isinstance(error, FileSizeError):
            return self.handle_file_size_error(context)
        if isinstance(error, DataLoadError):
            return self.handle_data_load_error(error, context)
        if isinstance(error, ConfigurationError):
            return self.handle_configuration_error(error, context)
        return self.handle_unknown_error(error, context)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def counts_by_kind(self) -> dict[str, int]:
        """Running count of handled errors for every kind."""
        counter = self._metrics.analysis_errors
        return {kind.value: int(counter.get(labels={"kind": kind.value})) for kind in ErrorKind}

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Read-only view for diagnostics tooling."""
        return {"counts_by_kind": self.counts_by_kind()}

    def recent_errors(self, limit: int = 10) -> list[ErrorLogEntry]:
        """Most recent entries, newest last."""
        if limit <= 0:
            return []
        return list(self._recent)[-limit:]

    def clear(self) -> None:
        """Reset counters and the recent-error log."""
        self._metrics.analysis_errors.reset()
        self._recent = deque(maxlen=self._recent.maxlen)
        log.info(LogEventNames.ERROR_LOG_CLEARED)
