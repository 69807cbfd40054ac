"""Common functions shared across all processor implementations."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..core.exceptions import ImageProcessingError
from ..core.logging_config import get_logger
from ..core.models import EngineConfig, FileTask, Job


@dataclass
class FileResult:
    """Outcome of running the per-file handler on one task."""

    task: FileTask
    outcome: Any = None
    error: Optional[ImageProcessingError] = None
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def duration(self) -> float:
        return max(0.0, self.finished_at - self.started_at)


def execute_task(
    handler: Callable[[FileTask], Any],
    task: FileTask,
    clock: Callable[[], float] = time.monotonic,
) -> FileResult:
    """
    Run ``handler`` for one task and capture per-file failures.

    Only ``ImageProcessingError`` is captured; anything else is a bug or a
    batch-level problem and propagates. The task itself is not modified
    here, since this may run on a worker thread.
    """
    started_at = clock()
    try:
        outcome = handler(task)
    except ImageProcessingError as exc:
        return FileResult(task=task, error=exc, started_at=started_at, finished_at=clock())
    return FileResult(task=task, outcome=outcome, started_at=started_at, finished_at=clock())


def log_job_configuration(job: Job, config: EngineConfig, total_files: int) -> None:
    """Log the resolved job configuration."""
    logger = get_logger("photo-pipeline.processor")
    policy = job.metadata

    logger.info("=" * 80)
    logger.info(f"{config.processor.upper()} PHOTO PROCESSOR")
    logger.info("=" * 80)

    logger.info("CONFIGURATION:")
    logger.info(f"  Input files:   {total_files}")
    logger.info(f"  Output dir:    {job.output_dir}")
    logger.info(f"  Naming:        {job.naming}")
    logger.info("")

    logger.info("PROCESSING OPTIONS:")
    logger.info(f"  Format:        {job.format.value} (quality {job.quality})")
    logger.info(f"  Drift:         color {job.color_drift}%, resize {job.resize_drift}%")
    logger.info(f"  Max width:     {job.resize_max_w or 'unchanged'}")
    if config.processor == "multithread":
        logger.info(f"  Workers:       {config.workers}")
    if config.file_timeout:
        logger.info(f"  File timeout:  {config.file_timeout:.1f}s")
    logger.info("")

    logger.info("METADATA POLICY:")
    if policy.remove_all:
        mode = "remove all"
    elif policy.fake_enabled:
        mode = f"fake ({policy.fake.profile.value})" if policy.fake else "fake"
    else:
        mode = "retain"
    logger.info(f"  Mode:          {mode}")
    logger.info(f"  Remove GPS:    {policy.remove_gps}")
    logger.info(f"  Dates:         {policy.date_strategy.value} ({policy.date_offset_minutes:+d} min)")
    logger.info(f"  Unique ID:     {policy.unique_id}")
    logger.info(f"  Software tag:  {policy.software_tag}")
    logger.info("=" * 80)


def log_final_statistics(
    total_time: float,
    total_items: int,
    succeeded: int,
    failed: int,
    canceled: bool = False,
    file_stats: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log final processing statistics.

    ``file_stats`` is a ``MetricsCollector.get_summary`` result for the
    per-file operations; when empty only the counts are logged.
    """
    logger = get_logger("photo-pipeline.processor")
    file_stats = file_stats or {}
    processed = succeeded + failed
    total_bytes = file_stats.get("total_bytes", 0)
    overall_rate = processed / total_time if total_time > 0 else 0
    byte_rate = total_bytes / total_time if total_time > 0 else 0

    logger.info("=" * 80)
    logger.info("PROCESSING CANCELED" if canceled else "PROCESSING COMPLETED")
    logger.info("=" * 80)
    logger.info(f"Total execution time: {total_time:.1f}s")
    logger.info(f"Overall processing rate: {overall_rate:.1f} files/sec ({byte_rate / 1024:.1f} KiB/sec)")
    logger.info(f"Successfully processed: {succeeded}")
    logger.info(f"Errors encountered: {failed}")
    if file_stats:
        logger.info(f"Success rate: {file_stats['success_rate'] * 100:.1f}%")
        logger.info(
            f"Per-file time: avg {file_stats['avg_duration']:.2f}s, "
            f"min {file_stats['min_duration']:.2f}s, max {file_stats['max_duration']:.2f}s"
        )
    if canceled:
        logger.info(f"Skipped after cancel: {total_items - processed}")
    logger.info("=" * 80)
