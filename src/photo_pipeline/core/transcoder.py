"""Decode, resize and re-encode images with bounded random drift."""

import io
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import piexif
from PIL import Image, ImageOps, UnidentifiedImageError
from PIL.PngImagePlugin import PngInfo

from .exceptions import DecodeFailure, EncodeFailure, UnsupportedFormat
from .image_utils import (
    compute_quality,
    compute_target_width,
    png_compress_level,
    prepare_image_for_save,
    resize_to_width,
)
from .metadata import ImageMetadata
from .models import OutputFormat

PILLOW_FORMATS: Dict[OutputFormat, str] = {
    OutputFormat.JPG: "JPEG",
    OutputFormat.PNG: "PNG",
    OutputFormat.WEBP: "WEBP",
    OutputFormat.AVIF: "AVIF",
    OutputFormat.HEIC: "HEIF",
}

DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)

ENCODE_ERRORS = (OSError, ValueError, TypeError, KeyError)


@dataclass
class PreparedImage:
    """A decoded image ready for a single encode pass."""

    image: Image.Image
    format: OutputFormat
    pillow_format: str
    quality: int
    metadata: ImageMetadata
    icc_profile: Optional[bytes] = None
    transparency: Any = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True)
class TranscodeResult:
    data: bytes
    format: OutputFormat
    quality: int
    width: int
    height: int


class ImageTranscoder:
    """
    Turn source bytes into encoded bytes of the requested format.

    Work is split in two phases so the metadata transformer can run between
    them and its output is embedded in the only lossy encode:

    - ``prepare``: decode, read metadata, apply EXIF orientation, jittered
      resize and mode conversion, jittered quality.
    - ``encode``: serialize metadata and save.

    The transcoder never touches the filesystem.
    """

    def __init__(self, rng: Optional[random.Random] = None, logger: Optional[Any] = None):
        self._rng = rng or random.Random()
        self._logger = logger

    def ensure_format_supported(self, fmt: Union[OutputFormat, str]) -> str:
        """
        Return Pillow's format name for ``fmt``.

        Raises:
            UnsupportedFormat: If the format is unknown or no encoder is installed.
        """
        try:
            fmt = OutputFormat(fmt)
        except ValueError:
            raise UnsupportedFormat(f"Unknown output format: {fmt}") from None

        Image.init()
        pillow_format = PILLOW_FORMATS[fmt]
        if pillow_format not in Image.SAVE:
            raise UnsupportedFormat(f"No encoder available for {fmt.value}")
        return pillow_format

    def prepare(
        self,
        source_bytes: bytes,
        fmt: Union[OutputFormat, str],
        quality: int,
        resize_max_w: int = 0,
        color_drift: float = 0.0,
        resize_drift: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> PreparedImage:
        pillow_format = self.ensure_format_supported(fmt)
        fmt = OutputFormat(fmt)
        rng = rng or self._rng

        try:
            with Image.open(io.BytesIO(source_bytes)) as source:
                source.load()
                metadata = ImageMetadata.from_image(source)
                icc_profile = source.info.get("icc_profile")
                img = ImageOps.exif_transpose(source)
        except DECODE_ERRORS as exc:
            raise DecodeFailure(f"Cannot decode image: {exc}") from exc

        if piexif.ImageIFD.Orientation in metadata.exif["0th"]:
            metadata.exif["0th"][piexif.ImageIFD.Orientation] = 1

        target_width = compute_target_width(resize_max_w, resize_drift, rng)
        img = resize_to_width(img, target_width)
        img = prepare_image_for_save(img, fmt)
        effective_quality = compute_quality(quality, color_drift, fmt, rng)

        # Comments and stale EXIF/XMP must not reach the encoder implicitly.
        transparency = img.info.get("transparency") if fmt == OutputFormat.PNG else None
        img.info = {}

        if self._logger is not None:
            self._logger.debug(
                "Prepared image",
                format=fmt.value,
                width=img.width,
                height=img.height,
                quality=effective_quality,
            )
        return PreparedImage(img, fmt, pillow_format, effective_quality, metadata, icc_profile, transparency)

    def _save_params(self, prepared: PreparedImage, exif: Optional[bytes], xmp: Optional[bytes]) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if prepared.icc_profile:
            params["icc_profile"] = prepared.icc_profile
        if exif:
            params["exif"] = exif

        if prepared.format == OutputFormat.PNG:
            params["compress_level"] = png_compress_level(prepared.quality)
            if prepared.transparency is not None:
                params["transparency"] = prepared.transparency
            if xmp:
                pnginfo = PngInfo()
                pnginfo.add_itxt("XML:com.adobe.xmp", xmp.decode("utf-8"))
                params["pnginfo"] = pnginfo
            return params

        params["quality"] = prepared.quality
        if prepared.format == OutputFormat.JPG:
            params["optimize"] = True
        if xmp:
            params["xmp"] = xmp
        return params

    def encode(self, prepared: PreparedImage, metadata: Optional[ImageMetadata] = None) -> TranscodeResult:
        """
        Encode ``prepared`` with ``metadata`` (defaults to the source metadata).

        Raises:
            MetadataWriteFailure: If the metadata cannot be serialized.
            EncodeFailure: If the encoder rejects the image.
        """
        metadata = metadata if metadata is not None else prepared.metadata
        exif = metadata.exif_bytes()
        xmp = metadata.xmp_bytes()
        params = self._save_params(prepared, exif, xmp)

        buffer = io.BytesIO()
        try:
            prepared.image.save(buffer, format=prepared.pillow_format, **params)
        except ENCODE_ERRORS as exc:
            raise EncodeFailure(f"Cannot encode {prepared.format.value}: {exc}") from exc

        return TranscodeResult(
            data=buffer.getvalue(),
            format=prepared.format,
            quality=prepared.quality,
            width=prepared.width,
            height=prepared.height,
        )

    def transcode(
        self,
        source_bytes: bytes,
        fmt: Union[OutputFormat, str],
        quality: int,
        resize_max_w: int = 0,
        color_drift: float = 0.0,
        resize_drift: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> TranscodeResult:
        """Prepare and encode in one call, keeping the source metadata."""
        prepared = self.prepare(
            source_bytes, fmt, quality, resize_max_w, color_drift, resize_drift, rng
        )
        return self.encode(prepared)
