"""Tests for image_utils.py utility functions."""

import os
import random

import pytest
from PIL import Image

from photo_pipeline.core.image_utils import (
    compute_quality,
    compute_target_width,
    discover_images,
    inspect_image,
    jitter,
    png_compress_level,
    prepare_image_for_save,
    render_output_name,
    resize_to_width,
)
from photo_pipeline.core.models import OutputFormat
from photo_pipeline.testing.fakes import create_exif, create_test_image, write_test_images


class TestJitter:
    """Tests for drift helpers."""

    def test_zero_drift_is_identity(self):
        assert jitter(800, 0, random.Random(1)) == 800.0

    def test_drift_stays_within_bounds(self):
        rng = random.Random(123)
        for _ in range(500):
            assert 720 <= jitter(800, 10, rng) <= 880

    def test_target_width_within_bounds(self):
        rng = random.Random(5)
        widths = {compute_target_width(800, 10, rng) for _ in range(500)}
        assert min(widths) >= 720
        assert max(widths) <= 880
        assert len(widths) > 1

    def test_target_width_disabled(self):
        assert compute_target_width(0, 10, random.Random(1)) == 0

    @pytest.mark.parametrize(
        "fmt, quality, expected_max",
        [
            (OutputFormat.JPG, 100, 95),
            (OutputFormat.WEBP, 100, 100),
            (OutputFormat.PNG, 1, 100),
        ],
    )
    def test_quality_clamped_to_format_range(self, fmt, quality, expected_max):
        rng = random.Random(9)
        for _ in range(100):
            value = compute_quality(quality, 10, fmt, rng)
            assert 1 <= value <= expected_max

    def test_quality_without_drift(self):
        assert compute_quality(80, 0, OutputFormat.WEBP, random.Random(1)) == 80

    @pytest.mark.parametrize("quality, level", [(100, 0), (1, 9), (45, 5)])
    def test_png_compress_level(self, quality, level):
        assert png_compress_level(quality) == level


class TestResize:
    def test_downscale_keeps_aspect(self):
        img = Image.new("RGB", (1000, 500))
        resized = resize_to_width(img, 400)
        assert resized.size == (400, 200)

    def test_never_upscales(self):
        img = Image.new("RGB", (300, 200))
        assert resize_to_width(img, 800) is img

    def test_disabled(self):
        img = Image.new("RGB", (300, 200))
        assert resize_to_width(img, 0) is img


class TestPrepareImageForSave:
    """Tests for mode conversion before encoding."""

    def test_jpg_composites_alpha_on_white(self):
        img = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        converted = prepare_image_for_save(img, OutputFormat.JPG)
        assert converted.mode == "RGB"
        assert converted.getpixel((5, 5)) == (255, 255, 255)

    def test_webp_keeps_alpha(self):
        img = Image.new("LA", (10, 10))
        assert prepare_image_for_save(img, OutputFormat.WEBP).mode == "RGBA"

    def test_png_keeps_palette(self):
        img = Image.new("P", (10, 10))
        assert prepare_image_for_save(img, OutputFormat.PNG).mode == "P"

    def test_cmyk_to_webp(self):
        img = Image.new("CMYK", (10, 10))
        assert prepare_image_for_save(img, OutputFormat.WEBP).mode == "RGB"


class TestRenderOutputName:
    def test_default_template(self):
        name = render_output_name("{name}_{index}.{ext}", "/photos/IMG_0001.JPG", 0, OutputFormat.WEBP)
        assert name == "IMG_0001_1.webp"

    def test_index_only(self):
        assert render_output_name("img{index}.{ext}", "a.png", 7, OutputFormat.JPG) == "img8.jpg"


class TestDiscoverImages:
    """Tests for input expansion."""

    def test_directory_is_sorted_and_filtered(self, tmp_path):
        write_test_images(str(tmp_path), count=3)
        (tmp_path / "notes.txt").write_text("not an image")
        found = discover_images([str(tmp_path)])
        assert [os.path.basename(p) for p in found] == ["photo1.jpg", "photo2.jpg", "photo3.jpg"]
        assert all(os.path.isabs(p) for p in found)

    def test_recursive_flag(self, tmp_path):
        write_test_images(str(tmp_path / "nested"), count=1)
        assert len(discover_images([str(tmp_path)])) == 1
        assert discover_images([str(tmp_path)], recursive=False) == []

    def test_explicit_files_keep_order_and_duplicates(self, tmp_path):
        first, second = write_test_images(str(tmp_path), count=2)
        found = discover_images([second, first, second])
        assert [os.path.basename(p) for p in found] == ["photo2.jpg", "photo1.jpg", "photo2.jpg"]

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            discover_images([str(tmp_path / "missing.jpg")])


class TestInspectImage:
    def test_reports_size_and_metadata(self, tmp_path):
        path = tmp_path / "shot.jpg"
        path.write_bytes(create_test_image(64, 48, exif=create_exif(make="Leica")))
        info = inspect_image(str(path))
        assert info["width"] == 64
        assert info["height"] == 48
        assert info["format"] == "JPEG"
        assert info["exif"]["Make"] == "Leica"
        assert info["has_gps"] is True
        assert info["size_bytes"] == path.stat().st_size

    def test_png_without_metadata(self, tmp_path):
        path = tmp_path / "plain.png"
        path.write_bytes(create_test_image(8, 8, fmt="PNG"))
        info = inspect_image(str(path))
        assert info["exif"] == {}
        assert info["has_gps"] is False
        assert info["xmp"] is None
