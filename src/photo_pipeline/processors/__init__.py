"""Batch processors with different concurrency strategies."""

from .common import FileResult, execute_task
from .multithread import ThreadedBatchProcessor
from .serial import SerialBatchProcessor

__all__ = [
    "FileResult",
    "execute_task",
    "SerialBatchProcessor",
    "ThreadedBatchProcessor",
]
