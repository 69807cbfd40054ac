"""Core engine and shared components for the photo pipeline."""

from .catalog import (
    GEAR_PROFILES,
    LOCATION_PRESETS,
    DeviceProfile,
    LocationPreset,
    ProfileKind,
    check_gear,
    get_location_preset,
    get_profile,
)
from .exceptions import (
    ConfigurationError,
    DecodeFailure,
    EncodeFailure,
    FileTimeout,
    ImageProcessingError,
    MetadataWriteFailure,
    OutputWriteFailure,
    PhotoPipelineError,
    UnsupportedFormat,
    batch_error_handler,
    with_error_handling,
)
from .fake_metadata import FakeMetadataGenerator, ResolvedFakeRecord, generate_fake_record
from .logging_config import get_logger, set_log_level, setup_logger
from .metadata import ImageMetadata, MetadataTransformer
from .models import (
    CompletionEvent,
    CompletionStatus,
    DateStrategy,
    EngineConfig,
    ErrorKind,
    EventStatus,
    FakeSpec,
    FileTask,
    GpsSpec,
    Job,
    MetadataPolicy,
    OutputFormat,
    ProgressEvent,
    TaskStatus,
)
from .services import BatchOrchestrator, FileProcessingService, WorkItemFactory
from .transcoder import ImageTranscoder, TranscodeResult

__all__ = [
    "GEAR_PROFILES",
    "LOCATION_PRESETS",
    "DeviceProfile",
    "LocationPreset",
    "ProfileKind",
    "check_gear",
    "get_location_preset",
    "get_profile",
    "PhotoPipelineError",
    "ConfigurationError",
    "ImageProcessingError",
    "DecodeFailure",
    "UnsupportedFormat",
    "EncodeFailure",
    "MetadataWriteFailure",
    "OutputWriteFailure",
    "FileTimeout",
    "with_error_handling",
    "batch_error_handler",
    "FakeMetadataGenerator",
    "ResolvedFakeRecord",
    "generate_fake_record",
    "setup_logger",
    "get_logger",
    "set_log_level",
    "ImageMetadata",
    "MetadataTransformer",
    "Job",
    "MetadataPolicy",
    "FakeSpec",
    "GpsSpec",
    "EngineConfig",
    "FileTask",
    "ProgressEvent",
    "CompletionEvent",
    "OutputFormat",
    "DateStrategy",
    "TaskStatus",
    "EventStatus",
    "CompletionStatus",
    "ErrorKind",
    "BatchOrchestrator",
    "FileProcessingService",
    "WorkItemFactory",
    "ImageTranscoder",
    "TranscodeResult",
]
