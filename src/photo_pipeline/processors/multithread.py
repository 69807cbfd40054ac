"""Multithreaded processor implementation - uses a thread pool for parallelism."""

import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Deque, Iterator, Optional, Sequence

from ..core.exceptions import FileTimeout
from ..core.models import FileTask, TaskStatus
from ..core.protocols import BatchProcessor, StopCheck, TaskHandler
from .common import FileResult, execute_task


class InFlightTask:
    """A submitted task plus the moment a worker actually picked it up."""

    def __init__(self, task: FileTask):
        self.task = task
        self.future: Optional["Future[FileResult]"] = None
        self.started = threading.Event()
        self.started_at = 0.0
        self._deadline_base = 0.0

    def mark_started(self, clock: Callable[[], float]) -> None:
        self.started_at = clock()
        self._deadline_base = time.monotonic()
        self.started.set()

    def seconds_left(self, timeout: float) -> float:
        return max(0.0, self._deadline_base + timeout - time.monotonic())


class ThreadedBatchProcessor(BatchProcessor):
    """
    Runs up to ``workers`` tasks at once and re-emits results in task order.

    Tasks are submitted into a sliding window; the oldest in-flight task is
    always the next one yielded, so callers see the same ordering as the
    serial processor. When ``file_timeout`` is set, a task that has not
    finished within that many seconds of starting on a worker is reported
    as a ``FileTimeout`` failure. Its thread cannot be interrupted and keeps
    running in the background; its result is discarded, and tasks queued
    behind it wait for a free worker before their own timeout starts.

    After ``should_stop`` turns true no new task is submitted, but tasks
    already in flight are waited for and yielded.
    """

    def __init__(
        self,
        workers: int = 4,
        file_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.workers = max(1, workers)
        self.file_timeout = file_timeout
        self._clock = clock

    def _work(self, handler: TaskHandler, entry: InFlightTask) -> FileResult:
        entry.mark_started(self._clock)
        return execute_task(handler, entry.task, self._clock)

    def _collect(self, entry: InFlightTask) -> FileResult:
        if self.file_timeout is None:
            return entry.future.result()

        entry.started.wait()
        try:
            return entry.future.result(timeout=entry.seconds_left(self.file_timeout))
        except FutureTimeout:
            return FileResult(
                task=entry.task,
                error=FileTimeout(f"Timed out after {self.file_timeout:.1f}s"),
                started_at=entry.started_at,
                finished_at=self._clock(),
            )

    def run(
        self,
        tasks: Sequence[FileTask],
        handler: TaskHandler,
        should_stop: StopCheck,
    ) -> Iterator[FileResult]:
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="photo-pipeline")
        pending: Deque[InFlightTask] = deque()
        remaining = iter(tasks)

        try:
            while True:
                while len(pending) < self.workers and not should_stop():
                    task = next(remaining, None)
                    if task is None:
                        break
                    task.status = TaskStatus.PROCESSING
                    entry = InFlightTask(task)
                    entry.future = executor.submit(self._work, handler, entry)
                    pending.append(entry)

                if not pending:
                    return
                yield self._collect(pending.popleft())
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
