"""Tests for the serial batch processor."""

from photo_pipeline.core.exceptions import DecodeFailure
from photo_pipeline.core.models import FileTask, TaskStatus
from photo_pipeline.processors.serial import SerialBatchProcessor
from photo_pipeline.testing.fakes import FakeClock


def _tasks(count):
    return [FileTask(index=i, source_path=f"in/{i}.jpg", output_path=f"out/{i}.jpg") for i in range(count)]


class TestSerialBatchProcessor:
    """Tests for SerialBatchProcessor."""

    def test_processes_in_order(self):
        processor = SerialBatchProcessor(clock=FakeClock())
        results = list(processor.run(_tasks(4), lambda task: task.index * 10, lambda: False))
        assert [r.task.index for r in results] == [0, 1, 2, 3]
        assert [r.outcome for r in results] == [0, 10, 20, 30]
        assert all(r.success for r in results)
        assert all(r.duration > 0 for r in results)

    def test_failure_does_not_stop_batch(self):
        def handler(task):
            if task.index == 1:
                raise DecodeFailure("bad file")
            return "ok"

        results = list(SerialBatchProcessor().run(_tasks(3), handler, lambda: False))
        assert [r.success for r in results] == [True, False, True]
        assert isinstance(results[1].error, DecodeFailure)

    def test_stop_check_runs_before_each_task(self):
        tasks = _tasks(5)
        stop = {"flag": False}

        def handler(task):
            if task.index == 1:
                stop["flag"] = True
            return task.index

        results = list(SerialBatchProcessor().run(tasks, handler, lambda: stop["flag"]))
        assert [r.task.index for r in results] == [0, 1]
        assert tasks[1].status == TaskStatus.PROCESSING
        assert tasks[2].status == TaskStatus.QUEUED

    def test_stopped_before_start(self):
        results = list(SerialBatchProcessor().run(_tasks(3), lambda task: None, lambda: True))
        assert results == []
