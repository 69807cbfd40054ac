"""Shared data models for the photo pipeline."""

import os
import re
import string
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .. import __version__
from .catalog import ProfileKind, check_gear, get_location_preset, get_profile

DEFAULT_NAMING = "{name}_{index}.{ext}"
NAMING_TOKENS = frozenset({"name", "index", "ext"})
DEFAULT_TOOL_IDENTIFIER = f"photo-pipeline {__version__}"

_EXPOSURE_TIME_RE = re.compile(r"^\d+(/\d+)?$")


class OutputFormat(str, Enum):
    """Output containers the transcoder can produce."""

    JPG = "jpg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"
    HEIC = "heic"

    @property
    def extension(self) -> str:
        return self.value


class DateStrategy(str, Enum):
    """How capture/modify timestamps are stamped."""

    NOW = "now"
    OFFSET = "offset"


class TaskStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


class EventStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class CompletionStatus(str, Enum):
    COMPLETED = "completed"
    CANCELED = "canceled"


class ErrorKind(str, Enum):
    """Per-file failure categories reported on progress events."""

    DECODE_FAILURE = "DecodeFailure"
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    ENCODE_FAILURE = "EncodeFailure"
    METADATA_WRITE_FAILURE = "MetadataWriteFailure"
    OUTPUT_WRITE_FAILURE = "OutputWriteFailure"
    TIMEOUT = "Timeout"
    PROCESSING_ERROR = "ProcessingError"


class GpsSpec(BaseModel):
    """Requested fake location; a preset fills whatever is left unset."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    preset: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    altitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @field_validator("preset")
    @classmethod
    def _known_preset(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, "", "none"):
            return None
        try:
            get_location_preset(value)
        except KeyError as exc:
            raise ValueError(str(exc.args[0])) from exc
        return value


class FakeSpec(BaseModel):
    """Requested synthetic camera/shot/location metadata."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    profile: ProfileKind = ProfileKind.CAMERA
    make: str = ""
    model: str = ""
    lens: str = ""
    software: str = ""
    serial: str = ""
    gps: GpsSpec = Field(default_factory=GpsSpec)

    iso: Optional[int] = Field(default=None, gt=0)
    exposure_time: Optional[str] = None
    f_number: Optional[float] = Field(default=None, gt=0)
    focal_length: Optional[float] = Field(default=None, gt=0)
    exposure_program: Optional[int] = Field(default=None, ge=0)
    metering_mode: Optional[int] = Field(default=None, ge=0)
    flash: Optional[int] = Field(default=None, ge=0)
    white_balance: Optional[int] = Field(default=None, ge=0)
    color_space: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=0, le=5)
    label: Optional[str] = None
    title: Optional[str] = None

    auto: bool = True
    per_file: bool = True

    @field_validator("exposure_time")
    @classmethod
    def _exposure_ratio(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not _EXPOSURE_TIME_RE.match(value) or value.endswith("/0"):
            raise ValueError(f"Exposure time must look like '1/125' or '2', got '{value}'")
        return value

    @model_validator(mode="after")
    def _gear_matches_catalog(self) -> "FakeSpec":
        check_gear(get_profile(self.profile), self.make, self.model, self.lens)
        return self


class MetadataPolicy(BaseModel):
    """How embedded metadata is rewritten for every file of a job."""

    model_config = ConfigDict(frozen=True)

    remove_gps: bool = True
    date_strategy: DateStrategy = DateStrategy.NOW
    date_offset_minutes: int = 0
    unique_id: bool = True
    remove_all: bool = False
    software_tag: bool = True
    fake: Optional[FakeSpec] = None

    author: str = ""
    description: str = ""
    keywords: Tuple[str, ...] = ()
    copyright: str = ""
    creator_tool: str = ""

    @property
    def fake_enabled(self) -> bool:
        return self.fake is not None and self.fake.enabled

    @field_validator("keywords")
    @classmethod
    def _strip_keywords(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(k.strip() for k in value if k and k.strip())

    @model_validator(mode="after")
    def _exclusive_modes(self) -> "MetadataPolicy":
        if self.remove_all and self.fake_enabled:
            raise ValueError("remove_all and fake metadata are mutually exclusive")
        return self


class Job(BaseModel):
    """A fully resolved batch request. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    input_files: Tuple[str, ...]
    output_dir: str
    format: OutputFormat = OutputFormat.JPG
    quality: int = Field(default=85, ge=1, le=100)
    color_drift: float = Field(default=2.0, ge=0, le=10)
    resize_drift: float = Field(default=2.0, ge=0, le=10)
    resize_max_w: int = Field(default=0, ge=0)
    naming: str = DEFAULT_NAMING
    metadata: MetadataPolicy = Field(default_factory=MetadataPolicy)

    @field_validator("naming")
    @classmethod
    def _known_tokens(cls, value: str) -> str:
        fields = {name for _, name, _, _ in string.Formatter().parse(value) if name is not None}
        unknown = fields - NAMING_TOKENS
        if unknown:
            raise ValueError(f"Unknown naming tokens: {', '.join(sorted(unknown))}")
        if "name" not in fields and "index" not in fields:
            raise ValueError("Naming template needs {name} or {index}")
        separators = {"/", os.sep} | ({os.altsep} if os.altsep else set())
        if any(sep in value for sep in separators) or ".." in value:
            raise ValueError("Naming template must not contain path separators or '..'")
        return value


class EngineConfig(BaseModel):
    """Settings of the processing engine itself, independent of any job."""

    model_config = ConfigDict(frozen=True)

    processor: Literal["serial", "multithread"] = "serial"
    workers: int = Field(default=4, ge=1)
    file_timeout: Optional[float] = Field(default=None, gt=0)
    throughput_window: int = Field(default=5, ge=1)
    tool_identifier: str = DEFAULT_TOOL_IDENTIFIER
    create_output_dir: bool = True


class FileTask(BaseModel):
    """Processing state of one input file within a run."""

    index: int
    source_path: str
    output_path: str
    status: TaskStatus = TaskStatus.QUEUED
    source_size: int = 0
    output_size: Optional[int] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    quality: Optional[int] = None
    error: str = ""
    error_kind: Optional[ErrorKind] = None

    @property
    def duration(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return max(0.0, self.finished_at - self.started_at)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.DONE, TaskStatus.FAILED, TaskStatus.SKIPPED)


class ProgressEvent(BaseModel):
    """Emitted once per finished file, in ascending index order."""

    model_config = ConfigDict(frozen=True)

    index: int
    total: int
    source_path: str
    status: EventStatus
    output_path: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    elapsed_seconds: float = 0.0
    bytes_per_second: float = 0.0
    eta_seconds: float = 0.0
    percent: float = 0.0


class CompletionEvent(BaseModel):
    """Emitted exactly once at the end of a run."""

    model_config = ConfigDict(frozen=True)

    status: CompletionStatus
    total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
