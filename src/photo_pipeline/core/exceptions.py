"""Custom exceptions and error handling utilities for the photo pipeline."""

from __future__ import annotations

from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, TypeVar

from .logging_config import get_logger
from .models import ErrorKind


class PhotoPipelineError(Exception):
    """Base exception for all photo pipeline errors."""


class ConfigurationError(PhotoPipelineError):
    """Error raised for an invalid job or engine configuration."""


class ImageProcessingError(PhotoPipelineError):
    """Error raised when processing a single file fails."""

    kind: ErrorKind = ErrorKind.PROCESSING_ERROR


class DecodeFailure(ImageProcessingError):
    """The source could not be read or parsed as an image."""

    kind = ErrorKind.DECODE_FAILURE


class UnsupportedFormat(ImageProcessingError):
    """The requested output format has no available encoder."""

    kind = ErrorKind.UNSUPPORTED_FORMAT


class EncodeFailure(ImageProcessingError):
    """The encoder rejected the image."""

    kind = ErrorKind.ENCODE_FAILURE


class MetadataWriteFailure(ImageProcessingError):
    """The rewritten metadata could not be serialized for the target format."""

    kind = ErrorKind.METADATA_WRITE_FAILURE


class OutputWriteFailure(ImageProcessingError):
    """The encoded file could not be written to the output directory."""

    kind = ErrorKind.OUTPUT_WRITE_FAILURE


class FileTimeout(ImageProcessingError):
    """A single file exceeded the configured per-file timeout."""

    kind = ErrorKind.TIMEOUT


F = TypeVar("F", bound=Callable[..., Any])


def with_error_handling(func: F) -> F:
    """Wrap a function with standardized error handling."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:  # type: ignore[override]
        logger = get_logger("photo-pipeline.processor")
        try:
            return func(*args, **kwargs)
        except PhotoPipelineError:
            logger.debug("Pipeline error in %s", func.__name__, exc_info=True)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Unhandled error in {func.__name__}: {exc}", exc_info=True)
            raise ImageProcessingError(str(exc)) from exc

    return wrapper  # type: ignore[return-value]


@contextmanager
def batch_error_handler() -> Any:
    """Context manager to wrap batch-level operations with error handling."""
    try:
        yield
    except PhotoPipelineError:
        raise
    except OSError as exc:
        raise ConfigurationError(str(exc)) from exc
