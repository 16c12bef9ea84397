"""Timeout and concurrency guard for analysis invocations.

Every analysis runs as an ``AnalysisTask``: it waits on a global semaphore
(``pending``), runs against a size-derived deadline (``running``), and ends
``completed``, ``timed_out`` or ``cancelled``. Tasks leave the registry as
soon as they resolve.

Worker threads cannot be killed, so cancellation is cooperative: the
analyzer polls ``AnalysisTask.checkpoint()`` while walking, and the guard
abandons the task once its deadline passes. A result that arrives after
that is discarded.
"""

from __future__ import annotations

import asyncio
import builtins
import itertools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

import structlog

from ..config.schema import TimeoutConfig
from ..utils.async_helpers import AnalysisCancelledError, CancellationToken, TimeoutError
from ..utils.logging import LogEventNames
from ..utils.metrics import get_metrics
from .errors import ErrorContext

log = structlog.get_logger()

T = TypeVar("T")


class TaskState(StrEnum):
    """Lifecycle state of an analysis task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.TIMED_OUT, TaskState.CANCELLED)


@dataclass
class AnalysisTask:
    """Handle for one in-flight analysis."""

    id: str
    file_name: str
    operation: str
    timeout: float
    created_at: float = field(default_factory=time.monotonic)
    start_time: float | None = None
    state: TaskState = TaskState.PENDING
    token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def deadline(self) -> float | None:
        """Monotonic deadline, set once the task starts running."""
        if self.start_time is None:
            return None
        return self.start_time + self.timeout

    @property
    def duration(self) -> float:
        """Seconds spent running so far."""
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time

    @property
    def is_expired(self) -> bool:
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    def checkpoint(self) -> None:
        """Cooperative cancellation point.

        Safe to call from a worker thread.

        Raises:
            AnalysisCancelledError: If the task was cancelled
            TimeoutError: If the task is past its deadline
        """
        if self.token.is_cancelled:
            raise AnalysisCancelledError(f"Analysis of {self.file_name} was cancelled")
        if self.is_expired:
            raise TimeoutError(f"Analysis of {self.file_name} exceeded {self.timeout:.2f}s")

    def cancel(self) -> None:
        self.token.cancel()


class AnalysisGuard:
    """Bounds each analysis by a deadline and all analyses by a concurrency ceiling.

    Example:
        guard = AnalysisGuard(TimeoutConfig(max_concurrent=2))
        result = await guard.execute_with_timeout(
            lambda task: run_analysis(task),
            ErrorContext(file_name="app.css", file_size=1200, operation="css_analysis"),
        )
    """

    def __init__(self, config: TimeoutConfig | None = None) -> None:
        self._config = config or TimeoutConfig()
        self._semaphore = asyncio.Semaphore(self._config.max_concurrent)
        self._tasks: dict[str, AnalysisTask] = {}
        self._runners: dict[str, asyncio.Future] = {}
        self._counter = itertools.count(1)

    @property
    def config(self) -> TimeoutConfig:
        return self._config

    def determine_timeout(self, file_size: int) -> float:
        """Deadline in seconds for content of the given size.

        Grows linearly with size and is capped at ``max_timeout``.
        """
        cfg = self._config
        scaled = cfg.base_timeout * (1 + max(file_size, 0) / cfg.large_file_threshold)
        return min(scaled, cfg.max_timeout)

    def _next_id(self) -> str:
        return f"task_{next(self._counter)}_{int(time.time() * 1000)}"

    async def execute_with_timeout(
        self,
        operation: Callable[[AnalysisTask], Awaitable[T]],
        context: ErrorContext,
        timeout: float | None = None,
    ) -> T:
        """Run an operation under a deadline and the concurrency ceiling.

        Args:
            operation: Called with the task handle; returns the awaitable to run
            context: File name, size and operation name for the task
            timeout: Explicit deadline in seconds. Derived from the size when omitted.

        Returns:
            Whatever the operation returns

        Raises:
            TimeoutError: If the deadline passes before the operation finishes
            AnalysisCancelledError: If the task was aborted
        """
        if timeout is None:
            timeout = self.determine_timeout(context.file_size or 0)

        task = AnalysisTask(
            id=self._next_id(),
            file_name=context.file_name or "unknown",
            operation=context.operation,
            timeout=timeout,
        )
        self._tasks[task.id] = task
        metrics = get_metrics()

        try:
            async with self._semaphore:
                task.token.raise_if_cancelled()
                task.state = TaskState.RUNNING
                task.start_time = time.monotonic()
                metrics.active_analyses.inc()
                log.debug(
                    LogEventNames.TASK_STARTED,
                    task_id=task.id,
                    file_name=task.file_name,
                    operation=task.operation,
                    timeout=timeout,
                )
                runner = asyncio.ensure_future(operation(task))
                self._runners[task.id] = runner
                try:
                    result = await asyncio.wait_for(runner, timeout=timeout)
                except builtins.TimeoutError as e:
                    self._timed_out(task)
                    raise TimeoutError(
                        f"Analysis of {task.file_name} exceeded {timeout:.2f}s"
                    ) from e
                except TimeoutError:
                    # Raised by a checkpoint once the deadline passed
                    self._timed_out(task)
                    raise
                except asyncio.CancelledError:
                    current = asyncio.current_task()
                    if task.token.is_cancelled and (current is None or current.cancelling() == 0):
                        task.state = TaskState.CANCELLED
                        log.info(
                            LogEventNames.TASK_CANCELLED, task_id=task.id, file_name=task.file_name
                        )
                        raise AnalysisCancelledError(
                            f"Analysis of {task.file_name} was cancelled"
                        ) from None
                    raise
                except AnalysisCancelledError:
                    task.state = TaskState.CANCELLED
                    log.info(
                        LogEventNames.TASK_CANCELLED, task_id=task.id, file_name=task.file_name
                    )
                    raise
                finally:
                    metrics.active_analyses.dec()

                task.state = TaskState.COMPLETED
                log.debug(
                    LogEventNames.TASK_COMPLETED,
                    task_id=task.id,
                    file_name=task.file_name,
                    duration=round(task.duration, 4),
                )
                return result
        except AnalysisCancelledError:
            if not task.state.is_terminal:
                task.state = TaskState.CANCELLED
            raise
        finally:
            self._tasks.pop(task.id, None)
            self._runners.pop(task.id, None)

    def _timed_out(self, task: AnalysisTask) -> None:
        task.cancel()
        task.state = TaskState.TIMED_OUT
        log.warning(
            LogEventNames.TASK_TIMED_OUT,
            task_id=task.id,
            file_name=task.file_name,
            timeout=task.timeout,
        )

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def abort(self, file_name: str) -> bool:
        """Cancel every active task for a file.

        Returns:
            True if at least one task was cancelled
        """
        aborted = False
        for task in list(self._tasks.values()):
            if task.file_name == file_name:
                self._cancel(task)
                aborted = True
        return aborted

    def abort_all(self) -> None:
        """Cancel every active task."""
        for task in list(self._tasks.values()):
            self._cancel(task)

    def _cancel(self, task: AnalysisTask) -> None:
        task.cancel()
        runner = self._runners.get(task.id)
        if runner is not None and not runner.done():
            runner.cancel()

    @property
    def active_count(self) -> int:
        """Tasks registered and not yet resolved, queued ones included."""
        return len(self._tasks)

    def get_active_stats(self) -> ActiveStats:
        tasks = list(self._tasks.values())
        if not tasks:
            return ActiveStats(active_count=0, longest_running=None, average_duration=0.0)

        durations = [(task, task.duration) for task in tasks]
        longest, longest_duration = max(durations, key=lambda pair: pair[1])
        return ActiveStats(
            active_count=len(tasks),
            longest_running=LongestRunning(
                task_id=longest.id,
                duration=longest_duration,
                file_name=longest.file_name,
            ),
            average_duration=sum(d for _, d in durations) / len(durations),
        )

    def get_task(self, task_id: str) -> AnalysisTask | None:
        return self._tasks.get(task_id)


@dataclass(frozen=True)
class LongestRunning:
    task_id: str
    duration: float
    file_name: str


@dataclass(frozen=True)
class ActiveStats:
    """Snapshot of the active-task registry."""

    active_count: int
    longest_running: LongestRunning | None
    average_duration: float

