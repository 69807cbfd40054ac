"""Protocol definitions for dependency injection and testability."""

import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Protocol, Sequence

from .models import FileTask

if TYPE_CHECKING:
    from ..processors.common import FileResult
    from .metadata import ImageMetadata
    from .transcoder import PreparedImage, TranscodeResult


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class TranscoderProtocol(Protocol):
    """Protocol for the two-phase image transcoder."""

    def ensure_format_supported(self, fmt: Any) -> str:
        ...

    def prepare(
        self,
        source_bytes: bytes,
        fmt: Any,
        quality: int,
        resize_max_w: int = 0,
        color_drift: float = 0.0,
        resize_drift: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> "PreparedImage":
        ...

    def encode(self, prepared: "PreparedImage", metadata: Optional["ImageMetadata"] = None) -> "TranscodeResult":
        ...


TaskHandler = Callable[[FileTask], Any]
StopCheck = Callable[[], bool]


class BatchProcessor(ABC):
    """
    Strategy that runs a handler over the tasks of one run.

    Implementations must yield exactly one result per started task, in task
    order, and must not start a task once ``should_stop`` returns True.
    """

    @abstractmethod
    def run(
        self,
        tasks: Sequence[FileTask],
        handler: TaskHandler,
        should_stop: StopCheck,
    ) -> Iterator["FileResult"]:
        """Process tasks, yielding results in submission order."""
        ...
