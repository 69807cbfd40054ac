"""Synthetic camera, shot and location metadata built from the gear catalog."""

import random
import threading
from typing import Dict, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict

from .catalog import (
    COLOR_SPACES,
    EXPOSURE_PROGRAMS,
    EXPOSURE_TIMES,
    F_NUMBERS,
    FLASH_MODES,
    FOCAL_LENGTHS,
    ISO_PRESETS,
    LOCATION_PRESETS,
    METERING_MODES,
    RATINGS,
    WHITE_BALANCES,
    DeviceProfile,
    LocationPreset,
    get_location_preset,
    get_profile,
)
from .models import FakeSpec, GpsSpec

T = TypeVar("T")


class ResolvedLocation(BaseModel):
    """Location fields after preset substitution."""

    model_config = ConfigDict(frozen=True)

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    preset: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ResolvedFakeRecord(BaseModel):
    """A fully resolved synthetic record. ``None`` means "write no tag"."""

    model_config = ConfigDict(frozen=True)

    make: Optional[str] = None
    model: Optional[str] = None
    lens: Optional[str] = None
    software: Optional[str] = None
    serial: Optional[str] = None
    iso: Optional[int] = None
    exposure_time: Optional[str] = None
    f_number: Optional[float] = None
    focal_length: Optional[float] = None
    exposure_program: Optional[int] = None
    metering_mode: Optional[int] = None
    flash: Optional[int] = None
    white_balance: Optional[int] = None
    color_space: Optional[str] = None
    rating: Optional[int] = None
    label: Optional[str] = None
    title: Optional[str] = None
    location: Optional[ResolvedLocation] = None


def _pick(explicit: Optional[T], choices: Sequence[T], auto: bool, rng: random.Random) -> Optional[T]:
    if explicit is not None and explicit != "":
        return explicit
    if auto and choices:
        return rng.choice(list(choices))
    return None


def resolve_location(gps: GpsSpec, preset: Optional[LocationPreset] = None) -> ResolvedLocation:
    """
    Merge explicit GPS fields with a location preset.

    Explicit values win field by field; the preset only fills gaps.
    """
    if preset is None and gps.preset:
        preset = get_location_preset(gps.preset)

    def merged(field_name: str) -> Optional[object]:
        value = getattr(gps, field_name)
        if value is None or value == "":
            return getattr(preset, field_name) if preset is not None else None
        return value

    return ResolvedLocation(
        latitude=merged("latitude"),
        longitude=merged("longitude"),
        altitude=merged("altitude"),
        city=merged("city"),
        state=merged("state"),
        country=merged("country"),
        preset=preset.id if preset is not None else None,
    )


def generate_fake_record(
    spec: FakeSpec,
    profile: Optional[DeviceProfile] = None,
    rng: Optional[random.Random] = None,
) -> ResolvedFakeRecord:
    """
    Resolve a FakeSpec into a concrete record.

    Explicit spec fields are used as-is. With ``spec.auto`` every unset field
    is drawn uniformly from the catalog; without it unset fields stay absent.
    Model and lens are only ever drawn from the resolved make's lists, so the
    record never pairs a make with gear it does not offer.
    """
    profile = profile or get_profile(spec.profile)
    rng = rng or random.Random()
    auto = spec.auto

    make: Optional[str] = spec.make or None
    if make is None and (spec.model or spec.lens):
        make = profile.make_for(spec.model, spec.lens)
    if make is None and auto:
        make = rng.choice(list(profile.makes))

    model = _pick(spec.model or None, profile.models_for(make) if make else (), auto, rng)
    lens = _pick(spec.lens or None, profile.lenses_for(make) if make else (), auto, rng)

    serial: Optional[str] = spec.serial or None
    if serial is None and auto:
        serial = str(rng.randrange(10**9, 10**10))

    record: Dict[str, object] = {
        "make": make,
        "model": model,
        "lens": lens,
        "software": spec.software or None,
        "serial": serial,
        "iso": _pick(spec.iso, ISO_PRESETS, auto, rng),
        "exposure_time": _pick(spec.exposure_time, EXPOSURE_TIMES, auto, rng),
        "f_number": _pick(spec.f_number, F_NUMBERS, auto, rng),
        "focal_length": _pick(spec.focal_length, FOCAL_LENGTHS, auto, rng),
        "exposure_program": _pick(spec.exposure_program, tuple(EXPOSURE_PROGRAMS), auto, rng),
        "metering_mode": _pick(spec.metering_mode, tuple(METERING_MODES), auto, rng),
        "flash": _pick(spec.flash, tuple(FLASH_MODES), auto, rng),
        "white_balance": _pick(spec.white_balance, tuple(WHITE_BALANCES), auto, rng),
        "color_space": _pick(spec.color_space, COLOR_SPACES, auto, rng),
        "rating": _pick(spec.rating, RATINGS, auto, rng),
        "label": spec.label or None,
        "title": spec.title or None,
    }

    gps = spec.gps
    if gps.enabled:
        preset = None
        no_coordinates = gps.latitude is None and gps.longitude is None
        if not gps.preset and no_coordinates and auto:
            preset = LOCATION_PRESETS[rng.choice(sorted(LOCATION_PRESETS))]
        record["location"] = resolve_location(gps, preset)

    return ResolvedFakeRecord(**record)


class FakeMetadataGenerator:
    """
    Hand out fake records for the files of one run.

    With ``per_file`` every index gets its own record, seeded from the run
    seed and the index so the result does not depend on processing order.
    Otherwise one record is resolved on first use and shared by all files.
    """

    def __init__(self, spec: FakeSpec, seed: int = 0, profile: Optional[DeviceProfile] = None):
        self.spec = spec
        self.seed = seed
        self.profile = profile or get_profile(spec.profile)
        self._shared: Optional[ResolvedFakeRecord] = None
        self._lock = threading.Lock()

    def record_for(self, file_index: int, is_first_file: bool = False) -> ResolvedFakeRecord:
        if self.spec.per_file:
            rng = random.Random(f"{self.seed}:{file_index}")
            return generate_fake_record(self.spec, self.profile, rng)

        with self._lock:
            if self._shared is None:
                rng = random.Random(f"{self.seed}:batch")
                self._shared = generate_fake_record(self.spec, self.profile, rng)
            return self._shared
