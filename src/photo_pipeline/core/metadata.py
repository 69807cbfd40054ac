"""Rewriting of EXIF and XMP metadata according to a MetadataPolicy."""

import copy
import struct
import uuid
from datetime import datetime, timedelta
from fractions import Fraction
from typing import Any, Callable, Dict, Optional, Tuple

import piexif
from PIL import Image

from .exceptions import MetadataWriteFailure
from .fake_metadata import FakeMetadataGenerator, ResolvedFakeRecord, ResolvedLocation
from .logging_config import get_logger
from .models import DateStrategy, MetadataPolicy
from .xmp import XmpPacket

logger = get_logger("photo-pipeline.metadata")

IFD_NAMES = ("0th", "Exif", "GPS", "Interop", "1st")
_TAG_TABLES = {"0th": "Image", "1st": "Image", "Exif": "Exif", "GPS": "GPS", "Interop": "Interop"}

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# Windows XP tags are stored as UTF-16LE in BYTE arrays.
XP_TITLE = piexif.ImageIFD.XPTitle
XP_AUTHOR = piexif.ImageIFD.XPAuthor
XP_KEYWORDS = piexif.ImageIFD.XPKeywords

RATING = piexif.ImageIFD.Rating
COLOR_SPACE_SRGB = 1
COLOR_SPACE_UNCALIBRATED = 0xFFFF

Clock = Callable[[], datetime]


def empty_exif() -> Dict[str, Any]:
    return {"0th": {}, "Exif": {}, "GPS": {}, "Interop": {}, "1st": {}, "thumbnail": None}


def ascii_value(text: str) -> bytes:
    return text.encode("utf-8")


def xp_value(text: str) -> bytes:
    return text.encode("utf-16-le") + b"\x00\x00"


def to_rational(value: float, max_denominator: int = 1000) -> Tuple[int, int]:
    fraction = Fraction(value).limit_denominator(max_denominator)
    return fraction.numerator, fraction.denominator


def exposure_rational(exposure_time: str) -> Tuple[int, int]:
    """``"1/125"`` -> ``(1, 125)``, ``"2"`` -> ``(2, 1)``."""
    if "/" in exposure_time:
        numerator, denominator = exposure_time.split("/", 1)
        return int(numerator), int(denominator)
    return int(exposure_time), 1


def degrees_to_dms(value: float) -> Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]:
    """Split a coordinate into EXIF rationals; seconds are kept in hundredths."""
    hundredths = round(abs(value) * 360000)
    degrees, hundredths = divmod(hundredths, 360000)
    minutes, seconds = divmod(hundredths, 6000)
    return (degrees, 1), (minutes, 1), (seconds, 100)


def xmp_coordinate(value: float, positive: str, negative: str) -> str:
    """Format a coordinate the way XMP expects: ``DDD,MM.mmmmmmR``."""
    ref = positive if value >= 0 else negative
    micro_minutes = round(abs(value) * 60_000_000)
    degrees, micro_minutes = divmod(micro_minutes, 60_000_000)
    minutes, fraction = divmod(micro_minutes, 1_000_000)
    return f"{degrees},{minutes}.{fraction:06d}{ref}"


class ImageMetadata:
    """EXIF (piexif dict layout) plus an optional XMP packet for one image."""

    def __init__(self, exif: Optional[Dict[str, Any]] = None, xmp: Optional[XmpPacket] = None):
        self.exif = exif if exif is not None else empty_exif()
        for name in IFD_NAMES:
            self.exif.setdefault(name, {})
        self.exif.setdefault("thumbnail", None)
        self.xmp = xmp

    @classmethod
    def from_image(cls, img: Image.Image) -> "ImageMetadata":
        """Read EXIF and XMP from a decoded image's ``info``. Unreadable blocks are dropped."""
        exif = empty_exif()
        raw_exif = img.info.get("exif")
        if raw_exif:
            try:
                exif = piexif.load(raw_exif)
            except (ValueError, OSError, struct.error, IndexError, KeyError) as exc:
                logger.warning(f"Ignoring unreadable EXIF block: {exc}")

        xmp = None
        raw_xmp = img.info.get("xmp") or img.info.get("XML:com.adobe.xmp")
        if raw_xmp:
            try:
                xmp = XmpPacket.from_bytes(raw_xmp)
            except ValueError as exc:
                logger.warning(f"Ignoring unreadable XMP packet: {exc}")
        return cls(exif, xmp)

    def copy(self) -> "ImageMetadata":
        return ImageMetadata(
            copy.deepcopy(self.exif),
            self.xmp.copy() if self.xmp is not None else None,
        )

    def ensure_xmp(self) -> XmpPacket:
        if self.xmp is None:
            self.xmp = XmpPacket()
        return self.xmp

    def has_gps(self) -> bool:
        if self.exif.get("GPS"):
            return True
        if piexif.ImageIFD.GPSTag in self.exif.get("0th", {}):
            return True
        if self.xmp is not None:
            return any(name.startswith("exif:GPS") for name in self.xmp.names())
        return False

    def is_empty(self) -> bool:
        exif_empty = not any(self.exif.get(name) for name in IFD_NAMES)
        return exif_empty and (self.xmp is None or self.xmp.is_empty())

    def _sanitized_exif(self) -> Dict[str, Any]:
        exif = copy.deepcopy(self.exif)
        exif["1st"] = {}
        exif["thumbnail"] = None
        for name in IFD_NAMES:
            table = piexif.TAGS[_TAG_TABLES[name]]
            ifd = exif.get(name) or {}
            cleaned = {}
            for tag, value in ifd.items():
                if tag not in table:
                    continue
                # piexif.load returns some UNDEFINED tags as ints that dump rejects.
                if table[tag]["type"] == piexif.TYPES.Undefined and isinstance(value, int):
                    value = bytes([value & 0xFF])
                cleaned[tag] = value
            exif[name] = cleaned

        zeroth, exif_ifd = exif["0th"], exif["Exif"]
        if not exif["GPS"]:
            zeroth.pop(piexif.ImageIFD.GPSTag, None)
        if not exif["Interop"]:
            exif_ifd.pop(piexif.ExifIFD.InteroperabilityTag, None)
        if not exif_ifd:
            zeroth.pop(piexif.ImageIFD.ExifTag, None)
        return exif

    def exif_bytes(self) -> Optional[bytes]:
        """
        Serialize EXIF for the encoder.

        Returns:
            The EXIF block, or None when there are no tags to write.

        Raises:
            MetadataWriteFailure: If piexif cannot serialize the tags.
        """
        exif = self._sanitized_exif()
        if not any(exif[name] for name in IFD_NAMES):
            return None
        try:
            return piexif.dump(exif)
        except (ValueError, TypeError, struct.error) as exc:
            raise MetadataWriteFailure(f"Cannot serialize EXIF: {exc}") from exc

    def xmp_bytes(self) -> Optional[bytes]:
        if self.xmp is None or self.xmp.is_empty():
            return None
        return self.xmp.to_bytes()


def strip_gps(metadata: ImageMetadata) -> None:
    """Remove the GPS IFD, its pointer and every XMP ``exif:GPS*`` property."""
    metadata.exif["GPS"] = {}
    metadata.exif["0th"].pop(piexif.ImageIFD.GPSTag, None)
    if metadata.xmp is not None:
        metadata.xmp.remove_prefix("exif", "GPS")


def _write_location(metadata: ImageMetadata, location: ResolvedLocation, include_gps: bool) -> None:
    xmp = metadata.ensure_xmp()
    for field_name, prop in (("city", "photoshop:City"), ("state", "photoshop:State"), ("country", "photoshop:Country")):
        value = getattr(location, field_name)
        if value:
            xmp.set(prop, value)

    latitude = location.latitude
    longitude = location.longitude
    if not include_gps or latitude is None or longitude is None:
        return

    gps: Dict[int, Any] = {
        piexif.GPSIFD.GPSVersionID: (2, 3, 0, 0),
        piexif.GPSIFD.GPSLatitudeRef: b"N" if latitude >= 0 else b"S",
        piexif.GPSIFD.GPSLatitude: degrees_to_dms(latitude),
        piexif.GPSIFD.GPSLongitudeRef: b"E" if longitude >= 0 else b"W",
        piexif.GPSIFD.GPSLongitude: degrees_to_dms(longitude),
    }
    if location.altitude is not None:
        gps[piexif.GPSIFD.GPSAltitudeRef] = 0 if location.altitude >= 0 else 1
        gps[piexif.GPSIFD.GPSAltitude] = to_rational(abs(location.altitude), 100)
    metadata.exif["GPS"] = gps

    xmp.set("exif:GPSLatitude", xmp_coordinate(latitude, "N", "S"))
    xmp.set("exif:GPSLongitude", xmp_coordinate(longitude, "E", "W"))


def apply_fake_record(metadata: ImageMetadata, record: ResolvedFakeRecord, include_gps: bool = True) -> None:
    """Overwrite the tags covered by ``record``; unrelated tags stay untouched."""
    zeroth = metadata.exif["0th"]
    exif = metadata.exif["Exif"]
    xmp = metadata.ensure_xmp()

    if record.make:
        zeroth[piexif.ImageIFD.Make] = ascii_value(record.make)
        xmp.set("tiff:Make", record.make)
    if record.model:
        zeroth[piexif.ImageIFD.Model] = ascii_value(record.model)
        xmp.set("tiff:Model", record.model)
    if record.software:
        zeroth[piexif.ImageIFD.Software] = ascii_value(record.software)
        xmp.set("xmp:CreatorTool", record.software)
    if record.serial:
        exif[piexif.ExifIFD.BodySerialNumber] = ascii_value(record.serial)
        xmp.set("aux:SerialNumber", record.serial)
    if record.lens:
        if record.make:
            exif[piexif.ExifIFD.LensMake] = ascii_value(record.make)
        exif[piexif.ExifIFD.LensModel] = ascii_value(record.lens)
        xmp.set("aux:Lens", record.lens)

    if record.iso is not None:
        exif[piexif.ExifIFD.ISOSpeedRatings] = record.iso
    if record.exposure_time:
        exif[piexif.ExifIFD.ExposureTime] = exposure_rational(record.exposure_time)
        xmp.set("exif:ExposureTime", record.exposure_time)
    if record.f_number is not None:
        exif[piexif.ExifIFD.FNumber] = to_rational(record.f_number, 100)
    if record.focal_length is not None:
        exif[piexif.ExifIFD.FocalLength] = to_rational(record.focal_length, 100)
    if record.exposure_program is not None:
        exif[piexif.ExifIFD.ExposureProgram] = record.exposure_program
    if record.metering_mode is not None:
        exif[piexif.ExifIFD.MeteringMode] = record.metering_mode
    if record.flash is not None:
        exif[piexif.ExifIFD.Flash] = record.flash
    if record.white_balance is not None:
        exif[piexif.ExifIFD.WhiteBalance] = record.white_balance
    if record.color_space:
        if record.color_space == "sRGB":
            exif[piexif.ExifIFD.ColorSpace] = COLOR_SPACE_SRGB
        else:
            exif[piexif.ExifIFD.ColorSpace] = COLOR_SPACE_UNCALIBRATED
        xmp.set("photoshop:ICCProfile", record.color_space)

    if record.rating is not None:
        zeroth[RATING] = record.rating
        xmp.set("xmp:Rating", str(record.rating))
    if record.label:
        xmp.set("xmp:Label", record.label)
    if record.title:
        zeroth[XP_TITLE] = xp_value(record.title)
        xmp.set("dc:title", record.title)

    if record.location is not None:
        _write_location(metadata, record.location, include_gps)


class MetadataTransformer:
    """
    Apply one MetadataPolicy to the metadata of every file in a run.

    Rules are applied in a fixed order: GPS removal, remove-all, fake record
    or retention, dates, unique id, software tag, free text. Remove-all
    short-circuits everything after GPS removal.
    """

    def __init__(
        self,
        policy: MetadataPolicy,
        batch_id: uuid.UUID,
        clock: Clock,
        seed: int = 0,
        tool_identifier: str = "",
        generator: Optional[FakeMetadataGenerator] = None,
        logger: Optional[Any] = None,
    ):
        self.policy = policy
        self.batch_id = batch_id
        self.clock = clock
        self.tool_identifier = tool_identifier
        self.logger = logger
        if generator is None and policy.fake is not None and policy.fake_enabled:
            generator = FakeMetadataGenerator(policy.fake, seed)
        self.generator = generator

    def unique_id_for(self, file_index: int) -> uuid.UUID:
        return uuid.uuid5(self.batch_id, str(file_index))

    def stamp_time(self) -> datetime:
        now = self.clock()
        if self.policy.date_strategy == DateStrategy.OFFSET:
            now = now + timedelta(minutes=self.policy.date_offset_minutes)
        return now

    def apply(self, metadata: ImageMetadata, file_index: int, is_first_file: bool = False) -> ImageMetadata:
        policy = self.policy
        result = metadata.copy()

        if policy.remove_gps:
            strip_gps(result)

        if policy.remove_all:
            return ImageMetadata()

        fake_software = None
        if policy.fake_enabled and self.generator is not None:
            record = self.generator.record_for(file_index, is_first_file)
            apply_fake_record(result, record, include_gps=not policy.remove_gps)
            fake_software = record.software
            if self.logger is not None:
                self.logger.debug(
                    "Applied fake metadata",
                    index=file_index,
                    make=record.make,
                    model=record.model,
                )

        self._write_dates(result, self.stamp_time())

        if policy.unique_id:
            self._write_unique_id(result, self.unique_id_for(file_index))

        if policy.software_tag:
            software = fake_software or self.tool_identifier
            if software:
                result.exif["0th"][piexif.ImageIFD.Software] = ascii_value(software)

        self._write_free_text(result)
        return result

    @staticmethod
    def _write_dates(metadata: ImageMetadata, when: datetime) -> None:
        stamp = ascii_value(when.strftime(EXIF_DATE_FORMAT))
        metadata.exif["0th"][piexif.ImageIFD.DateTime] = stamp
        metadata.exif["Exif"][piexif.ExifIFD.DateTimeOriginal] = stamp
        metadata.exif["Exif"][piexif.ExifIFD.DateTimeDigitized] = stamp

        iso = when.isoformat(timespec="seconds")
        xmp = metadata.ensure_xmp()
        for prop in ("xmp:CreateDate", "xmp:ModifyDate", "xmp:MetadataDate"):
            xmp.set(prop, iso)

    @staticmethod
    def _write_unique_id(metadata: ImageMetadata, unique_id: uuid.UUID) -> None:
        metadata.exif["Exif"][piexif.ExifIFD.ImageUniqueID] = ascii_value(unique_id.hex)
        xmp = metadata.ensure_xmp()
        xmp.set("xmpMM:DocumentID", f"xmp.did:{unique_id}")
        xmp.set("xmpMM:InstanceID", f"xmp.iid:{uuid.uuid5(unique_id, 'instance')}")

    def _write_free_text(self, metadata: ImageMetadata) -> None:
        policy = self.policy
        zeroth = metadata.exif["0th"]

        if policy.author:
            zeroth[piexif.ImageIFD.Artist] = ascii_value(policy.author)
            zeroth[XP_AUTHOR] = xp_value(policy.author)
            metadata.ensure_xmp().set("dc:creator", [policy.author])
        if policy.description:
            zeroth[piexif.ImageIFD.ImageDescription] = ascii_value(policy.description)
            metadata.ensure_xmp().set("dc:description", policy.description)
        if policy.keywords:
            zeroth[XP_KEYWORDS] = xp_value("; ".join(policy.keywords))
            metadata.ensure_xmp().set("dc:subject", list(policy.keywords))
        if policy.copyright:
            zeroth[piexif.ImageIFD.Copyright] = ascii_value(policy.copyright)
            metadata.ensure_xmp().set("dc:rights", policy.copyright)
        if policy.creator_tool:
            metadata.ensure_xmp().set("xmp:CreatorTool", policy.creator_tool)
