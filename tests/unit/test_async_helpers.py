"""Tests for async utility functions."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from tenacity import wait_none

from baseline_lens.utils.async_helpers import (
    TRANSIENT_HTTP_ERRORS,
    AnalysisCancelledError,
    BaselineLensError,
    CancellationToken,
    ConfigurationError,
    DataLoadError,
    FileSizeError,
    ParsingError,
    TimeoutError,
    create_retry,
    download_retry,
)


class TestExceptions:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc_type",
        [TimeoutError, AnalysisCancelledError, DataLoadError, ConfigurationError],
    )
    def test_share_a_base(self, exc_type: type[Exception]) -> None:
        """Test every engine error is a BaselineLensError."""
        assert issubclass(exc_type, BaselineLensError)

    def test_timeout_is_not_builtin(self) -> None:
        """Test the engine timeout is distinct from the builtin one."""
        assert not issubclass(TimeoutError, asyncio.TimeoutError)

    def test_parsing_error_location(self) -> None:
        error = ParsingError("Invalid css syntax", line=2, column=7)
        assert str(error) == "Invalid css syntax"
        assert (error.line, error.column) == (2, 7)
        assert ParsingError("x").line is None

    def test_file_size_error(self) -> None:
        error = FileSizeError("too big", size=200, limit=100)
        assert (error.size, error.limit) == (200, 100)


class TestDownloadRetry:
    """Tests for the download retry policy."""

    async def test_retries_transport_errors(self) -> None:
        """Test timeouts and network errors are retried."""
        calls = 0

        @download_retry
        async def fetch() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectTimeout("slow")
            if calls == 2:
                raise httpx.ConnectError("refused")
            return "dataset"

        assert await fetch.retry_with(wait=wait_none())() == "dataset"
        assert calls == 3

    async def test_gives_up_after_three_attempts(self) -> None:
        """Test the last transport error is re-raised."""
        calls = 0

        @download_retry
        async def fetch() -> str:
            nonlocal calls
            calls += 1
            raise httpx.ReadTimeout("slow")

        with pytest.raises(httpx.ReadTimeout):
            await fetch.retry_with(wait=wait_none())()
        assert calls == 3

    async def test_http_status_errors_not_retried(self) -> None:
        """Test server responses are final."""
        calls = 0
        request = httpx.Request("GET", "https://example.test/data.json")

        @download_retry
        async def fetch() -> str:
            nonlocal calls
            calls += 1
            response = httpx.Response(404, request=request)
            response.raise_for_status()
            return "unreachable"

        with pytest.raises(httpx.HTTPStatusError):
            await fetch()
        assert calls == 1

    def test_transient_errors(self) -> None:
        """Test only connection-level failures count as transient."""
        assert issubclass(httpx.ConnectTimeout, TRANSIENT_HTTP_ERRORS)
        assert not issubclass(httpx.RemoteProtocolError, TRANSIENT_HTTP_ERRORS)
        assert not issubclass(httpx.HTTPStatusError, TRANSIENT_HTTP_ERRORS)

    async def test_create_retry(self) -> None:
        """Test a custom policy retries the given exception types."""
        calls = 0

        @create_retry(max_attempts=2, min_wait=0.01, max_wait=0.01, retry_on=(DataLoadError,))
        async def load() -> str:
            nonlocal calls
            calls += 1
            if calls < 2:
                raise DataLoadError("not yet")
            return "loaded"

        assert await load() == "loaded"
        assert calls == 2


class TestCancellationToken:
    """Tests for cooperative cancellation."""

    def test_cancel(self) -> None:
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

        token.cancel()
        assert token.is_cancelled
        with pytest.raises(AnalysisCancelledError, match="cancelled"):
            token.raise_if_cancelled()

    async def test_cancel_seen_from_worker_thread(self) -> None:
        """Test a thread polling the token stops after cancel."""
        token = CancellationToken()
        started = asyncio.Event()
        loop = asyncio.get_running_loop()

        def walk() -> int:
            steps = 0
            loop.call_soon_threadsafe(started.set)
            while not token.is_cancelled:
                steps += 1
            return steps

        worker = asyncio.create_task(asyncio.to_thread(walk))
        await started.wait()
        token.cancel()

        assert await asyncio.wait_for(worker, timeout=1.0) >= 0
