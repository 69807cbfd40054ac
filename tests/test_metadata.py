"""Tests for EXIF/XMP rewriting."""

import io
import uuid
from datetime import datetime, timedelta, timezone

import piexif
import pytest
from PIL import Image

from photo_pipeline.core.exceptions import MetadataWriteFailure
from photo_pipeline.core.fake_metadata import FakeMetadataGenerator, ResolvedFakeRecord, ResolvedLocation
from photo_pipeline.core.metadata import (
    XP_AUTHOR,
    XP_KEYWORDS,
    ImageMetadata,
    MetadataTransformer,
    apply_fake_record,
    degrees_to_dms,
    exposure_rational,
    strip_gps,
    to_rational,
    xmp_coordinate,
    xp_value,
)
from photo_pipeline.core.models import DateStrategy, FakeSpec, GpsSpec, MetadataPolicy
from photo_pipeline.core.xmp import XmpPacket
from photo_pipeline.testing.fakes import FixedWallClock, create_exif, create_test_image

BATCH_ID = uuid.UUID("12345678-1234-4678-9234-567812345678")


def _metadata_with_gps() -> ImageMetadata:
    exif = piexif.load(create_exif(gps=True, artist="Old Artist"))
    xmp = XmpPacket()
    xmp.set("exif:GPSLatitude", "50,27.6N")
    xmp.set("xmp:Rating", "2")
    return ImageMetadata(exif, xmp)


def _transformer(policy: MetadataPolicy, **kwargs) -> MetadataTransformer:
    return MetadataTransformer(
        policy,
        BATCH_ID,
        FixedWallClock(),
        seed=11,
        tool_identifier="photo-pipeline test",
        **kwargs,
    )


class TestHelpers:
    def test_rationals(self):
        assert to_rational(2.8, 100) == (14, 5)
        assert exposure_rational("1/125") == (1, 125)
        assert exposure_rational("2") == (2, 1)

    def test_degrees_to_dms(self):
        assert degrees_to_dms(-50.5) == ((50, 1), (30, 1), (0, 100))

    def test_degrees_to_dms_carries_rounded_seconds(self):
        assert degrees_to_dms(12.9999999) == ((13, 1), (0, 1), (0, 100))
        assert degrees_to_dms(52.52) == ((52, 1), (31, 1), (1200, 100))

    def test_xmp_coordinate(self):
        assert xmp_coordinate(-0.5, "E", "W") == "0,30.000000W"

    def test_xmp_coordinate_carries_rounded_minutes(self):
        assert xmp_coordinate(12.99999999999, "N", "S") == "13,0.000000N"
        assert xmp_coordinate(52.52, "N", "S") == "52,31.200000N"

    def test_xp_value_is_utf16(self):
        assert xp_value("ab") == b"a\x00b\x00\x00\x00"


class TestImageMetadata:
    """Tests for reading and serializing metadata."""

    def test_from_image_reads_exif(self):
        source = create_test_image(40, 30, exif=create_exif(make="Leica"))
        with Image.open(io.BytesIO(source)) as img:
            metadata = ImageMetadata.from_image(img)
        assert metadata.exif["0th"][piexif.ImageIFD.Make] == b"Leica"
        assert metadata.has_gps()

    def test_from_image_without_metadata(self):
        with Image.open(io.BytesIO(create_test_image(20, 20))) as img:
            metadata = ImageMetadata.from_image(img)
        assert metadata.is_empty()
        assert metadata.exif_bytes() is None
        assert metadata.xmp_bytes() is None

    def test_unreadable_xmp_is_dropped(self):
        img = Image.new("RGB", (4, 4))
        img.info["xmp"] = b"<not xml"
        metadata = ImageMetadata.from_image(img)
        assert metadata.xmp is None

    def test_copy_is_independent(self):
        original = _metadata_with_gps()
        clone = original.copy()
        strip_gps(clone)
        assert original.has_gps()
        assert not clone.has_gps()

    def test_exif_bytes_drops_unknown_tags_and_thumbnail(self):
        metadata = ImageMetadata(piexif.load(create_exif(gps=False)))
        metadata.exif["0th"][0xFFF0] = b"junk"
        metadata.exif["thumbnail"] = b"\xff\xd8"
        loaded = piexif.load(metadata.exif_bytes())
        assert 0xFFF0 not in loaded["0th"]
        assert loaded["thumbnail"] is None
        assert loaded["0th"][piexif.ImageIFD.Make] == b"OldMake"

    def test_unserializable_exif_raises_metadata_write_failure(self):
        metadata = ImageMetadata()
        metadata.exif["0th"][piexif.ImageIFD.Make] = object()
        with pytest.raises(MetadataWriteFailure):
            metadata.exif_bytes()


class TestStripGps:
    def test_removes_exif_and_xmp_gps(self):
        metadata = _metadata_with_gps()
        strip_gps(metadata)
        assert metadata.exif["GPS"] == {}
        assert piexif.ImageIFD.GPSTag not in metadata.exif["0th"]
        assert metadata.xmp.get("exif:GPSLatitude") is None
        assert metadata.xmp.get("xmp:Rating") == "2"


class TestApplyFakeRecord:
    """Tests for apply_fake_record."""

    def test_writes_camera_and_shot_tags(self):
        metadata = ImageMetadata()
        record = ResolvedFakeRecord(
            make="Canon",
            model="EOS R5",
            lens="RF 35mm f/1.8",
            serial="1234567890",
            iso=800,
            exposure_time="1/250",
            f_number=1.8,
            focal_length=35,
            color_space="AdobeRGB",
            rating=4,
            title="Harbour",
        )
        apply_fake_record(metadata, record)
        zeroth, exif = metadata.exif["0th"], metadata.exif["Exif"]
        assert zeroth[piexif.ImageIFD.Make] == b"Canon"
        assert zeroth[piexif.ImageIFD.Model] == b"EOS R5"
        assert exif[piexif.ExifIFD.LensModel] == b"RF 35mm f/1.8"
        assert exif[piexif.ExifIFD.BodySerialNumber] == b"1234567890"
        assert exif[piexif.ExifIFD.ISOSpeedRatings] == 800
        assert exif[piexif.ExifIFD.ExposureTime] == (1, 250)
        assert exif[piexif.ExifIFD.FNumber] == (9, 5)
        assert exif[piexif.ExifIFD.ColorSpace] == 0xFFFF
        assert metadata.xmp.get("photoshop:ICCProfile") == "AdobeRGB"
        assert metadata.xmp.get("xmp:Rating") == "4"
        assert metadata.xmp.get("dc:title") == "Harbour"
        assert piexif.load(metadata.exif_bytes())["0th"][piexif.ImageIFD.Model] == b"EOS R5"

    def test_location_with_gps(self):
        metadata = ImageMetadata()
        location = ResolvedLocation(latitude=-33.5, longitude=18.25, altitude=-3, city="Cape Town")
        apply_fake_record(metadata, ResolvedFakeRecord(location=location))
        gps = metadata.exif["GPS"]
        assert gps[piexif.GPSIFD.GPSLatitudeRef] == b"S"
        assert gps[piexif.GPSIFD.GPSLongitudeRef] == b"E"
        assert gps[piexif.GPSIFD.GPSAltitudeRef] == 1
        assert metadata.xmp.get("photoshop:City") == "Cape Town"
        assert metadata.xmp.get("exif:GPSLatitude") == "33,30.000000S"

    def test_location_without_gps_keeps_address_only(self):
        metadata = ImageMetadata()
        location = ResolvedLocation(latitude=50.0, longitude=30.0, city="Kyiv")
        apply_fake_record(metadata, ResolvedFakeRecord(location=location), include_gps=False)
        assert metadata.exif["GPS"] == {}
        assert not metadata.has_gps()
        assert metadata.xmp.get("photoshop:City") == "Kyiv"


class TestMetadataTransformer:
    """Tests for MetadataTransformer rule ordering and output."""

    def test_default_policy_strips_gps_and_stamps(self):
        result = _transformer(MetadataPolicy()).apply(_metadata_with_gps(), 0)
        assert not result.has_gps()
        stamp = b"2024:05:17 14:30:00"
        assert result.exif["0th"][piexif.ImageIFD.DateTime] == stamp
        assert result.exif["Exif"][piexif.ExifIFD.DateTimeOriginal] == stamp
        assert result.xmp.get("xmp:CreateDate") == "2024-05-17T14:30:00+02:00"
        assert result.exif["0th"][piexif.ImageIFD.Software] == b"photo-pipeline test"
        # Retained tags from the source.
        assert result.exif["0th"][piexif.ImageIFD.Make] == b"OldMake"
        assert result.exif["Exif"][piexif.ExifIFD.ISOSpeedRatings] == 400

    def test_source_metadata_is_not_mutated(self):
        source = _metadata_with_gps()
        _transformer(MetadataPolicy()).apply(source, 0)
        assert source.has_gps()

    def test_keep_gps(self):
        result = _transformer(MetadataPolicy(remove_gps=False)).apply(_metadata_with_gps(), 0)
        assert result.has_gps()

    def test_offset_dates(self):
        policy = MetadataPolicy(date_strategy=DateStrategy.OFFSET, date_offset_minutes=-90)
        transformer = _transformer(policy)
        assert transformer.stamp_time() == datetime(
            2024, 5, 17, 13, 0, 0, tzinfo=timezone(timedelta(hours=2))
        )
        result = transformer.apply(ImageMetadata(), 0)
        assert result.exif["0th"][piexif.ImageIFD.DateTime] == b"2024:05:17 13:00:00"

    def test_unique_ids_differ_per_file(self):
        transformer = _transformer(MetadataPolicy())
        first = transformer.apply(ImageMetadata(), 0)
        second = transformer.apply(ImageMetadata(), 1)
        first_id = first.exif["Exif"][piexif.ExifIFD.ImageUniqueID]
        second_id = second.exif["Exif"][piexif.ExifIFD.ImageUniqueID]
        assert first_id != second_id
        assert first_id == uuid.uuid5(BATCH_ID, "0").hex.encode()
        assert first.xmp.get("xmpMM:DocumentID") == f"xmp.did:{uuid.uuid5(BATCH_ID, '0')}"
        assert first.xmp.get("xmpMM:InstanceID").startswith("xmp.iid:")

    def test_unique_id_disabled(self):
        result = _transformer(MetadataPolicy(unique_id=False)).apply(ImageMetadata(), 0)
        assert piexif.ExifIFD.ImageUniqueID not in result.exif["Exif"]
        assert result.xmp.get("xmpMM:DocumentID") is None

    def test_remove_all_returns_empty_metadata(self):
        result = _transformer(MetadataPolicy(remove_all=True, author="Ann")).apply(_metadata_with_gps(), 0)
        assert result.is_empty()
        assert result.exif_bytes() is None
        assert result.xmp_bytes() is None

    def test_software_tag_disabled(self):
        result = _transformer(MetadataPolicy(software_tag=False)).apply(ImageMetadata(), 0)
        assert piexif.ImageIFD.Software not in result.exif["0th"]

    def test_fake_software_wins_over_tool_identifier(self):
        policy = MetadataPolicy(fake=FakeSpec(software="Lightroom"))
        result = _transformer(policy).apply(ImageMetadata(), 0)
        assert result.exif["0th"][piexif.ImageIFD.Software] == b"Lightroom"

    def test_remove_gps_beats_fake_gps(self):
        policy = MetadataPolicy(remove_gps=True, fake=FakeSpec(gps=GpsSpec(enabled=True, preset="kyiv")))
        result = _transformer(policy).apply(_metadata_with_gps(), 0)
        assert not result.has_gps()
        assert result.xmp.get("photoshop:City") == "Kyiv"

    def test_fake_gps_written_when_kept(self):
        policy = MetadataPolicy(remove_gps=False, fake=FakeSpec(gps=GpsSpec(enabled=True, preset="kyiv")))
        result = _transformer(policy).apply(ImageMetadata(), 0)
        assert result.exif["GPS"][piexif.GPSIFD.GPSLatitudeRef] == b"N"

    def test_fake_once_gives_identical_records(self):
        policy = MetadataPolicy(fake=FakeSpec(make="Nikon", per_file=False))
        transformer = _transformer(policy)
        results = [transformer.apply(ImageMetadata(), i, is_first_file=i == 0) for i in range(3)]
        models = {r.exif["0th"][piexif.ImageIFD.Model] for r in results}
        serials = {r.exif["Exif"][piexif.ExifIFD.BodySerialNumber] for r in results}
        assert len(models) == 1
        assert len(serials) == 1

    def test_injected_generator_is_used(self):
        generator = FakeMetadataGenerator(FakeSpec(make="Sony"), seed=3)
        transformer = _transformer(MetadataPolicy(fake=FakeSpec(make="Canon")), generator=generator)
        result = transformer.apply(ImageMetadata(), 0)
        assert result.exif["0th"][piexif.ImageIFD.Make] == b"Sony"

    def test_free_text_fields(self):
        policy = MetadataPolicy(
            author="Ann",
            description="Harbour at dawn",
            keywords=("sea", "sun"),
            copyright="(c) Ann",
            creator_tool="Darkroom 2",
        )
        result = _transformer(policy).apply(_metadata_with_gps(), 0)
        zeroth = result.exif["0th"]
        assert zeroth[piexif.ImageIFD.Artist] == b"Ann"
        assert zeroth[XP_AUTHOR] == xp_value("Ann")
        assert zeroth[XP_KEYWORDS] == xp_value("sea; sun")
        assert zeroth[piexif.ImageIFD.Copyright] == b"(c) Ann"
        assert result.xmp.get("dc:creator") == ["Ann"]
        assert result.xmp.get("dc:subject") == ["sea", "sun"]
        assert result.xmp.get("dc:description") == "Harbour at dawn"
        assert result.xmp.get("xmp:CreatorTool") == "Darkroom 2"

    def test_output_serializes(self):
        policy = MetadataPolicy(author="Ann", fake=FakeSpec(gps=GpsSpec(enabled=True)), remove_gps=False)
        result = _transformer(policy).apply(_metadata_with_gps(), 4)
        loaded = piexif.load(result.exif_bytes())
        assert loaded["0th"][piexif.ImageIFD.Artist] == b"Ann"
        assert loaded["GPS"]
        assert b"DocumentID" in result.xmp_bytes()
