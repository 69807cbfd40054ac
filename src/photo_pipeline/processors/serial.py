"""Serial processor implementation - processes files one by one."""

import time
from typing import Callable, Iterator, Sequence

from ..core.models import FileTask, TaskStatus
from ..core.protocols import BatchProcessor, StopCheck, TaskHandler
from .common import FileResult, execute_task


class SerialBatchProcessor(BatchProcessor):
    """
    Processes tasks one at a time in the calling thread.

    The stop check runs before each task starts, so a cancel requested while
    file ``k`` is being handled takes effect before file ``k + 1``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock

    def run(
        self,
        tasks: Sequence[FileTask],
        handler: TaskHandler,
        should_stop: StopCheck,
    ) -> Iterator[FileResult]:
        for task in tasks:
            if should_stop():
                return
            task.status = TaskStatus.PROCESSING
            yield execute_task(handler, task, self._clock)
