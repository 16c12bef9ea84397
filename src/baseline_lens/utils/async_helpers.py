"""Exception hierarchy, download retries and cooperative cancellation.

Every exception raised by the engine derives from ``BaselineLensError`` so
callers can catch the whole family with one clause. Analyzers never let
these escape to the caller of ``analyze_document``; the error normalizer
turns them into ``AnalysisError`` records.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Exceptions
# =============================================================================


class BaselineLensError(Exception):
    """Base exception for all engine errors."""


class ParsingError(BaselineLensError):
    """Source text could not be parsed into a syntax tree.

    Attributes:
        line: One-based line of the first syntax error, if known.
        column: One-based column of the first syntax error, if known.
    """

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class TimeoutError(BaselineLensError):
    """An analysis ran past its deadline."""


class AnalysisCancelledError(BaselineLensError):
    """Analysis was cancelled or ran past its deadline at a checkpoint."""


class DataLoadError(BaselineLensError):
    """Compatibility dataset could not be loaded from any source."""


class ConfigurationError(BaselineLensError):
    """Invalid configuration reached the engine."""


class FileSizeError(BaselineLensError):
    """Input exceeds the configured size ceiling.

    Attributes:
        size: Size of the rejected input in characters.
        limit: Configured ceiling.
    """

    def __init__(self, message: str, size: int, limit: int) -> None:
        super().__init__(message)
        self.size = size
        self.limit = limit


# =============================================================================
# Retries
# =============================================================================

# Connection-level failures; an HTTP error status is a final answer
TRANSIENT_HTTP_ERRORS: tuple[type[Exception], ...] = (httpx.TimeoutException, httpx.NetworkError)


def _log_retry(retry_state: RetryCallState) -> None:
    if retry_state.outcome is None:
        return
    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = TRANSIENT_HTTP_ERRORS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Build a retry decorator with exponential backoff.

    The last exception is re-raised once the attempts are used up.

    Args:
        max_attempts: Total calls, including the first.
        min_wait: Shortest pause between calls (seconds).
        max_wait: Longest pause between calls (seconds).
        retry_on: Exception types worth another attempt.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# Dataset downloads: three attempts on transient transport failures
download_retry = create_retry()


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """Token for cooperative cancellation.

    The flag is a plain attribute so it can be polled from a worker thread
    while the event loop owns the token.

    Example:
        token = CancellationToken()

        def walk(token: CancellationToken):
            for node in nodes:
                token.raise_if_cancelled()
                visit(node)

        # Cancel from elsewhere
        token.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        """Raise AnalysisCancelledError once cancellation was requested."""
        if self._cancelled:
            raise AnalysisCancelledError("Operation was cancelled")
