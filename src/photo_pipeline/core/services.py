"""Service implementations for the photo pipeline: tasks, per-file work, orchestration."""

import contextlib
import os
import random
import tempfile
import threading
import time
import uuid
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Union

from ..processors.common import FileResult, log_final_statistics, log_job_configuration
from ..processors.serial import SerialBatchProcessor
from .error_handling import BatchOperationContextManager
from .exceptions import (
    ConfigurationError,
    DecodeFailure,
    ImageProcessingError,
    OutputWriteFailure,
    PhotoPipelineError,
    batch_error_handler,
    with_error_handling,
)
from .image_utils import render_output_name
from .metadata import MetadataTransformer
from .models import (
    CompletionEvent,
    CompletionStatus,
    EngineConfig,
    EventStatus,
    FileTask,
    Job,
    ProgressEvent,
    TaskStatus,
)
from .observability import LogContext, MetricsCollector, PerformanceMetrics, StructuredLogger
from .progress import ThroughputEstimator
from .protocols import BatchProcessor, LoggerProtocol, TranscoderProtocol
from .transcoder import ImageTranscoder, TranscodeResult

RunEvent = Union[ProgressEvent, CompletionEvent]


def local_now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


class WorkItemFactory:
    """Factory for creating the file tasks of a job."""

    @staticmethod
    def create_tasks(job: Job) -> List[FileTask]:
        """One task per input path, in job order; duplicates stay independent."""
        tasks = []
        for index, source_path in enumerate(job.input_files):
            name = render_output_name(job.naming, source_path, index, job.format)
            try:
                source_size = os.path.getsize(source_path)
            except OSError:
                source_size = 0
            tasks.append(
                FileTask(
                    index=index,
                    source_path=source_path,
                    output_path=os.path.join(job.output_dir, name),
                    source_size=source_size,
                )
            )
        return tasks


class FileProcessingService:
    """
    Per-file work: read, prepare, rewrite metadata, encode, write.

    ``render`` is pure CPU work and may run on a worker thread. ``write_output``
    is the only filesystem side effect and is called from the control loop.
    """

    def __init__(self, transcoder: TranscoderProtocol, logger: LoggerProtocol):
        self._transcoder = transcoder
        self._logger = logger

    @staticmethod
    def _read_source(path: str) -> bytes:
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as exc:
            raise DecodeFailure(f"Cannot read {path}: {exc}") from exc

    @with_error_handling
    def render(
        self,
        task: FileTask,
        job: Job,
        transformer: MetadataTransformer,
        rng: Optional[random.Random] = None,
    ) -> TranscodeResult:
        source_bytes = self._read_source(task.source_path)
        prepared = self._transcoder.prepare(
            source_bytes,
            job.format,
            job.quality,
            job.resize_max_w,
            job.color_drift,
            job.resize_drift,
            rng,
        )
        metadata = transformer.apply(prepared.metadata, task.index, is_first_file=task.index == 0)
        return self._transcoder.encode(prepared, metadata)

    @with_error_handling
    def write_output(self, output_path: str, data: bytes) -> int:
        """
        Atomically write ``data`` to ``output_path``.

        Raises:
            OutputWriteFailure: If the file cannot be written.
        """
        directory = os.path.dirname(output_path) or "."
        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(prefix=".photo-pipeline-", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(temp_path, output_path)
        except OSError as exc:
            if temp_path is not None:
                with contextlib.suppress(OSError):
                    os.unlink(temp_path)
            raise OutputWriteFailure(f"Cannot write {output_path}: {exc}") from exc
        return len(data)

    def process_file(
        self,
        task: FileTask,
        job: Job,
        transformer: MetadataTransformer,
        rng: Optional[random.Random] = None,
    ) -> TranscodeResult:
        """Render and write one file in a single call."""
        result = self.render(task, job, transformer, rng)
        self.write_output(task.output_path, result.data)
        return result


class BatchOrchestrator:
    """
    Entry point of the engine: validate a job, run it, report progress.

    ``run`` yields one ProgressEvent per finished file in ascending index
    order followed by exactly one CompletionEvent. Per-file failures become
    ``error`` events and never stop the batch. ``cancel`` is cooperative and
    takes effect before the next file starts. All per-run state lives inside
    a single ``run`` call, so the orchestrator can be reused.
    """

    def __init__(
        self,
        transcoder: Optional[TranscoderProtocol] = None,
        processor: Optional[BatchProcessor] = None,
        logger: Optional[LoggerProtocol] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = local_now,
    ):
        self._config = config or EngineConfig()
        self._logger = logger or StructuredLogger("photo-pipeline.orchestrator")
        self._transcoder = transcoder or ImageTranscoder(logger=self._logger)
        self._processor = processor or SerialBatchProcessor(clock=clock)
        self._rng = rng or random.Random()
        self._clock = clock
        self._wall_clock = wall_clock
        self._file_service = FileProcessingService(self._transcoder, self._logger)
        self._cancel_event = threading.Event()
        self._state_lock = threading.Lock()
        self._running = False
        self.last_tasks: List[FileTask] = []

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self) -> None:
        """Request cancellation; the current file finishes, no further file starts."""
        self._cancel_event.set()
        self._logger.info("Cancellation requested")

    def validate_job(self, job: Job) -> None:
        """
        Check a job before any file is touched.

        Raises:
            ConfigurationError: For an empty input list, an output directory
                that cannot be created or written, remove-all combined with
                fake metadata, or a run already in progress.
        """
        if self._running:
            raise ConfigurationError("A run is already in progress")
        if not job.input_files:
            raise ConfigurationError("Job has no input files")

        policy = job.metadata
        if policy.remove_all and policy.fake_enabled:
            raise ConfigurationError("remove_all and fake metadata cannot be combined")

        with batch_error_handler():
            if not os.path.isdir(job.output_dir):
                if not self._config.create_output_dir:
                    raise ConfigurationError(f"Output directory does not exist: {job.output_dir}")
                os.makedirs(job.output_dir, exist_ok=True)
        if not os.access(job.output_dir, os.W_OK | os.X_OK):
            raise ConfigurationError(f"Output directory is not writable: {job.output_dir}")

    def run(self, job: Job) -> Iterator[RunEvent]:
        """
        Validate ``job`` immediately and return the event stream of the run.

        Raises:
            ConfigurationError: If the job is rejected; no event is produced.
        """
        self.validate_job(job)
        self._cancel_event.clear()
        return self._run(job)

    def process(
        self,
        job: Job,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        on_complete: Optional[Callable[[CompletionEvent], None]] = None,
    ) -> CompletionEvent:
        """Drive a run to the end, dispatching events to the callbacks."""
        completion: Optional[CompletionEvent] = None
        for event in self.run(job):
            if isinstance(event, CompletionEvent):
                completion = event
                if on_complete is not None:
                    on_complete(event)
            elif on_progress is not None:
                on_progress(event)
        if completion is None:
            raise PhotoPipelineError("Run ended without a completion event")
        return completion

    def _run(self, job: Job) -> Iterator[RunEvent]:
        with self._state_lock:
            if self._running:
                raise ConfigurationError("A run is already in progress")
            self._running = True
        try:
            yield from self._execute(job)
        finally:
            self._running = False

    def _execute(self, job: Job) -> Iterator[RunEvent]:
        tasks = WorkItemFactory.create_tasks(job)
        self.last_tasks = tasks
        total = len(tasks)

        batch_id = uuid.UUID(int=self._rng.getrandbits(128), version=4)
        seed = self._rng.getrandbits(64)
        file_rngs = [random.Random(self._rng.getrandbits(64)) for _ in tasks]
        transformer = MetadataTransformer(
            job.metadata,
            batch_id,
            self._wall_clock,
            seed=seed,
            tool_identifier=self._config.tool_identifier,
            logger=self._logger,
        )
        estimator = ThroughputEstimator(
            total,
            [task.source_size for task in tasks],
            self._config.throughput_window,
            self._clock,
        )
        metrics = MetricsCollector()
        context = LogContext(
            correlation_id=str(batch_id),
            operation="batch",
            component="orchestrator",
        )

        log_job_configuration(job, self._config, total)
        self._logger.info("Starting run", context, files=total)

        def handler(task: FileTask) -> TranscodeResult:
            return self._file_service.render(task, job, transformer, file_rngs[task.index])

        succeeded = failed = 0
        results = self._processor.run(tasks, handler, self._cancel_event.is_set)
        with BatchOperationContextManager(f"Batch {batch_id}") as batch:
            try:
                for result in results:
                    event = self._finish(result, total, estimator, metrics, context)
                    if event.status == EventStatus.OK:
                        succeeded += 1
                    else:
                        failed += 1
                        kind = event.error_kind.value if event.error_kind else ""
                        batch.add_error(event.error or "", event.source_path, kind)
                    yield event
            finally:
                results.close()

        for task in tasks:
            if not task.is_terminal:
                task.status = TaskStatus.SKIPPED

        processed = succeeded + failed
        status = CompletionStatus.CANCELED if processed < total else CompletionStatus.COMPLETED
        elapsed = estimator.elapsed_seconds
        log_final_statistics(
            elapsed,
            total,
            succeeded,
            failed,
            canceled=status == CompletionStatus.CANCELED,
            file_stats=metrics.get_summary("process_file"),
        )
        self._logger.info("Run finished", context, status=status.value, processed=processed)

        yield CompletionEvent(
            status=status,
            total=total,
            processed=processed,
            succeeded=succeeded,
            failed=failed,
            elapsed_seconds=elapsed,
        )

    def _finish(
        self,
        result: FileResult,
        total: int,
        estimator: ThroughputEstimator,
        metrics: MetricsCollector,
        context: LogContext,
    ) -> ProgressEvent:
        """Commit one rendered file and turn it into a progress event."""
        task = result.task
        task.started_at = result.started_at
        error = result.error

        if error is None:
            rendered: TranscodeResult = result.outcome
            try:
                task.output_size = self._file_service.write_output(task.output_path, rendered.data)
            except ImageProcessingError as exc:
                error = exc
            else:
                task.width = rendered.width
                task.height = rendered.height
                task.quality = rendered.quality

        task.finished_at = self._clock()
        file_context = context.with_operation("process_file").with_metadata(
            index=task.index, source=task.source_path
        )
        if error is None:
            task.status = TaskStatus.DONE
            self._logger.info("File processed", file_context, output=task.output_path)
        else:
            task.status = TaskStatus.FAILED
            task.error = str(error)
            task.error_kind = error.kind
            self._logger.error("File failed", file_context, kind=error.kind.value, error=str(error))

        estimator.record(task.source_size, finished_at=task.finished_at)
        metrics.record_metric(
            PerformanceMetrics(
                operation="process_file",
                start_time=task.started_at,
                end_time=task.finished_at,
                success=error is None,
                bytes_processed=task.source_size,
                error_message=task.error or None,
            )
        )

        return ProgressEvent(
            index=task.index,
            total=total,
            source_path=task.source_path,
            status=EventStatus.OK if error is None else EventStatus.ERROR,
            output_path=task.output_path if error is None else None,
            error=task.error if error is not None else None,
            error_kind=task.error_kind if error is not None else None,
            elapsed_seconds=estimator.elapsed_seconds,
            bytes_per_second=estimator.bytes_per_second(),
            eta_seconds=estimator.eta_seconds(),
            percent=(task.index + 1) / total * 100,
        )
