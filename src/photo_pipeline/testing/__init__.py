"""Testing utilities and fakes for the photo pipeline."""

from .fakes import (
    CORRUPT_IMAGE_BYTES,
    FakeClock,
    FakeLogger,
    FixedWallClock,
    create_exif,
    create_test_image,
    write_corrupt_image,
    write_test_images,
)

__all__ = [
    "CORRUPT_IMAGE_BYTES",
    "FakeClock",
    "FakeLogger",
    "FixedWallClock",
    "create_exif",
    "create_test_image",
    "write_corrupt_image",
    "write_test_images",
]
