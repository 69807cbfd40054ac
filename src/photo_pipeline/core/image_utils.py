"""Image processing utilities for the photo pipeline."""

import os
import random
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple, Union

import pillow_heif
from PIL import Image
from PIL.ExifTags import GPSTAGS, IFD, TAGS

from .models import OutputFormat

pillow_heif.register_heif_opener()

QUALITY_RANGES: Dict[OutputFormat, Tuple[int, int]] = {
    OutputFormat.JPG: (1, 95),
    OutputFormat.PNG: (1, 100),
    OutputFormat.WEBP: (1, 100),
    OutputFormat.AVIF: (1, 100),
    OutputFormat.HEIC: (1, 100),
}

IMAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".webp", ".avif", ".heic", ".heif",
    ".tif", ".tiff", ".bmp", ".gif",
)


def jitter(value: float, drift_pct: float, rng: random.Random) -> float:
    """Perturb ``value`` by a uniform amount in ``[-drift_pct%, +drift_pct%]``."""
    if drift_pct <= 0:
        return float(value)
    return value * (1 + rng.uniform(-drift_pct, drift_pct) / 100)


def compute_target_width(max_width: int, drift_pct: float, rng: random.Random) -> int:
    """Jittered resize target, or 0 when resizing is disabled."""
    if max_width <= 0:
        return 0
    return max(1, round(jitter(max_width, drift_pct, rng)))


def compute_quality(quality: int, drift_pct: float, fmt: OutputFormat, rng: random.Random) -> int:
    """Jitter the nominal quality and clamp it to the format's valid range."""
    low, high = QUALITY_RANGES[fmt]
    return max(low, min(high, round(jitter(quality, drift_pct, rng))))


def png_compress_level(quality: int) -> int:
    """Map a 1..100 quality to zlib level 0..9 (higher quality, less effort)."""
    return max(0, min(9, round((100 - quality) / 11)))


def resize_to_width(img: Image.Image, target_width: int) -> Image.Image:
    """
    Downscale ``img`` to ``target_width`` keeping the aspect ratio.

    Images that are already narrow enough are returned unchanged; this
    never upscales.
    """
    if target_width <= 0 or img.width <= target_width:
        return img
    height = max(1, round(img.height * target_width / img.width))
    return img.resize((target_width, height), Image.Resampling.LANCZOS)


def prepare_image_for_save(img: Image.Image, fmt: OutputFormat) -> Image.Image:
    """
    Convert ``img`` to a mode the target encoder accepts.

    For JPG, images with an alpha channel are composited onto a white
    background instead of having the alpha dropped.
    """
    mode = img.mode

    if fmt == OutputFormat.JPG:
        if mode == "P":
            img = img.convert("RGBA") if "transparency" in img.info else img.convert("RGB")
            mode = img.mode
        if mode in ("RGBA", "LA", "PA"):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, (0, 0), mask=rgba.split()[-1])
            return background
        if mode not in ("RGB", "L", "CMYK"):
            return img.convert("RGB")
        return img

    if fmt == OutputFormat.PNG:
        if mode in ("CMYK", "YCbCr", "LAB", "HSV", "F"):
            return img.convert("RGB")
        return img

    # WEBP, AVIF and HEIC only take RGB or RGBA.
    if mode in ("RGB", "RGBA"):
        return img
    if mode == "P":
        return img.convert("RGBA") if "transparency" in img.info else img.convert("RGB")
    if mode in ("LA", "PA"):
        return img.convert("RGBA")
    return img.convert("RGB")


def render_output_name(template: str, source_path: str, index: int, fmt: OutputFormat) -> str:
    """Fill the naming template; ``{index}`` is the 1-based number of the 0-based ``index``."""
    name = Path(source_path).stem
    return template.format(name=name, index=index + 1, ext=fmt.extension)


def is_image_path(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def discover_images(paths: Iterable[str], recursive: bool = True) -> List[str]:
    """
    Expand files and directories into a list of image paths.

    Files are kept in the given order (and kept even without a known image
    extension, so a bad input surfaces as a per-file decode error).
    Directories contribute their image files in sorted order.

    Raises:
        FileNotFoundError: If a path does not exist.
    """
    found: List[str] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            found.extend(
                str(child.resolve())
                for child in sorted(path.glob(pattern))
                if child.is_file() and is_image_path(child)
            )
        elif path.is_file():
            found.append(str(path.resolve()))
        else:
            raise FileNotFoundError(f"No such file or directory: {raw}")
    return found


def _printable(value: Any) -> Union[str, int, float]:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8").rstrip("\x00")
        except UnicodeDecodeError:
            return value.hex()
    if isinstance(value, (str, int, float)):
        return value
    return str(value)


def inspect_image(path: str) -> Dict[str, Any]:
    """
    Summarize an image file for display: size, dimensions and metadata.

    Returns:
        Dictionary with basic image info plus ``exif``, ``gps`` and ``xmp`` keys.
    """
    info: Dict[str, Any] = {"path": path, "size_bytes": os.path.getsize(path)}

    with Image.open(path) as img:
        info.update(
            {
                "width": img.width,
                "height": img.height,
                "format": img.format or "unknown",
                "mode": img.mode,
            }
        )

        exif = img.getexif()
        tags: Dict[str, Any] = {}
        for tag_id, value in exif.items():
            tags[str(TAGS.get(tag_id, tag_id))] = _printable(value)
        for tag_id, value in exif.get_ifd(IFD.Exif).items():
            tags[str(TAGS.get(tag_id, tag_id))] = _printable(value)
        tags.pop("ExifOffset", None)
        tags.pop("GPSInfo", None)

        gps = {
            str(GPSTAGS.get(tag_id, tag_id)): _printable(value)
            for tag_id, value in exif.get_ifd(IFD.GPSInfo).items()
        }

        xmp = img.info.get("xmp") or img.info.get("XML:com.adobe.xmp")

    info["exif"] = tags
    info["gps"] = gps
    info["has_gps"] = bool(gps)
    info["xmp"] = xmp.decode("utf-8", errors="replace") if isinstance(xmp, bytes) else xmp
    return info
