"""Integration tests for the complete pipeline."""

import os
import random

import pytest
from PIL import Image

from photo_pipeline.core.catalog import get_profile
from photo_pipeline.core.factories import LoggerFactory, ProcessingPipelineFactory, ProcessorFactory
from photo_pipeline.core.models import (
    CompletionStatus,
    EngineConfig,
    ErrorKind,
    EventStatus,
    FakeSpec,
    GpsSpec,
    Job,
    MetadataPolicy,
    ProgressEvent,
)
from photo_pipeline.core.observability import StructuredLogger
from photo_pipeline.core.xmp import XmpPacket
from photo_pipeline.processors.multithread import ThreadedBatchProcessor
from photo_pipeline.processors.serial import SerialBatchProcessor
from photo_pipeline.testing.fakes import (
    FakeLogger,
    FixedWallClock,
    write_corrupt_image,
    write_test_images,
)

GPS_IFD = 0x8825
EXIF_IFD = 0x8769
IMAGE_UNIQUE_ID = 0xA420
MAKE = 0x010F
MODEL = 0x0110
LENS_MODEL = 0xA434


def _read_output(path):
    with Image.open(path) as img:
        img.load()
        exif = img.getexif()
        xmp = img.info.get("xmp") or img.info.get("XML:com.adobe.xmp")
        return img.format, img.size, exif, XmpPacket.from_bytes(xmp) if xmp else None


def _pipeline(processor="serial", seed=1):
    return ProcessingPipelineFactory.create_pipeline(
        config=EngineConfig(processor=processor, workers=2),
        logger=FakeLogger(),
        rng=random.Random(seed),
        wall_clock=FixedWallClock(),
    )


class TestPipelineIntegration:
    """Integration tests for the complete processing pipeline."""

    @pytest.mark.parametrize("processor", ["serial", "multithread"])
    def test_jpeg_to_webp_strips_gps_and_stamps_ids(self, tmp_path, processor):
        """Three JPEGs with GPS become WEBP files without GPS and with distinct ids."""
        inputs = write_test_images(str(tmp_path / "in"), count=3, with_gps=True)
        job = Job(input_files=tuple(inputs), output_dir=str(tmp_path / "out"), format="webp", quality=80)

        completion = _pipeline(processor).process(job)

        assert completion.status == CompletionStatus.COMPLETED
        assert completion.succeeded == 3
        outputs = sorted(os.listdir(job.output_dir))
        assert outputs == ["photo1_1.webp", "photo2_2.webp", "photo3_3.webp"]

        document_ids = set()
        unique_ids = set()
        for name in outputs:
            fmt, _, exif, xmp = _read_output(os.path.join(job.output_dir, name))
            assert fmt == "WEBP"
            assert not exif.get_ifd(GPS_IFD)
            assert xmp is not None
            assert xmp.get("exif:GPSLatitude") is None
            document_ids.add(xmp.get("xmpMM:DocumentID"))
            unique_ids.add(exif.get_ifd(EXIF_IFD)[IMAGE_UNIQUE_ID])
            assert xmp.get("xmp:CreateDate") == "2024-05-17T14:30:00+02:00"
        assert len(document_ids) == 3
        assert len(unique_ids) == 3

    def test_corrupt_second_file(self, tmp_path):
        good = write_test_images(str(tmp_path / "in"), count=2)
        broken = write_corrupt_image(str(tmp_path / "in"), "second.jpg")
        job = Job(input_files=(good[0], broken, good[1]), output_dir=str(tmp_path / "out"))
        events = list(_pipeline().run(job))

        assert len(events) == 4
        assert events[1].status == EventStatus.ERROR
        assert events[1].error_kind == ErrorKind.DECODE_FAILURE
        assert events[2].status == EventStatus.OK
        assert events[-1].status == CompletionStatus.COMPLETED
        assert (events[-1].succeeded, events[-1].failed) == (2, 1)

    def test_resize_with_drift(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=3, width=1200, height=300)
        job = Job(
            input_files=tuple(inputs),
            output_dir=str(tmp_path / "out"),
            resize_max_w=800,
            resize_drift=10,
        )
        for event in _pipeline(seed=33).run(job):
            if isinstance(event, ProgressEvent):
                _, (width, _), _, _ = _read_output(event.output_path)
                assert 720 <= width <= 880

    def test_small_images_are_not_upscaled(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=1, width=300)
        job = Job(input_files=tuple(inputs), output_dir=str(tmp_path / "out"), resize_max_w=800)
        _pipeline().process(job)
        _, (width, _), _, _ = _read_output(os.path.join(job.output_dir, "photo1_1.jpg"))
        assert width == 300

    def test_fake_canon_metadata(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=3)
        policy = MetadataPolicy(fake=FakeSpec(make="Canon"))
        job = Job(input_files=tuple(inputs), output_dir=str(tmp_path / "out"), metadata=policy)
        _pipeline().process(job)

        canon = get_profile("camera")
        for name in os.listdir(job.output_dir):
            _, _, exif, xmp = _read_output(os.path.join(job.output_dir, name))
            assert exif[MAKE] == "Canon"
            assert exif[MODEL] in canon.models_for("Canon")
            assert exif.get_ifd(EXIF_IFD)[LENS_MODEL] in canon.lenses_for("Canon")
            assert xmp.get("tiff:Make") == "Canon"

    def test_fake_gps_is_dropped_when_removing_gps(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=1)
        fake = FakeSpec(gps=GpsSpec(enabled=True, preset="warsaw"))
        job = Job(
            input_files=tuple(inputs),
            output_dir=str(tmp_path / "out"),
            format="png",
            metadata=MetadataPolicy(remove_gps=True, fake=fake),
        )
        _pipeline().process(job)
        _, _, exif, xmp = _read_output(os.path.join(job.output_dir, "photo1_1.png"))
        assert not exif.get_ifd(GPS_IFD)
        assert xmp.get("photoshop:City") == "Warsaw"

    def test_fake_gps_written_when_kept(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=1, with_gps=False)
        fake = FakeSpec(gps=GpsSpec(enabled=True, preset="warsaw"))
        job = Job(
            input_files=tuple(inputs),
            output_dir=str(tmp_path / "out"),
            metadata=MetadataPolicy(remove_gps=False, fake=fake),
        )
        _pipeline().process(job)
        _, _, exif, _ = _read_output(os.path.join(job.output_dir, "photo1_1.jpg"))
        assert exif.get_ifd(GPS_IFD)

    def test_fake_once_shares_one_record(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=3)
        policy = MetadataPolicy(fake=FakeSpec(per_file=False))
        job = Job(input_files=tuple(inputs), output_dir=str(tmp_path / "out"), metadata=policy)
        _pipeline(processor="multithread").process(job)

        records = set()
        for name in os.listdir(job.output_dir):
            _, _, exif, _ = _read_output(os.path.join(job.output_dir, name))
            records.add((exif[MAKE], exif[MODEL]))
        assert len(records) == 1

    def test_remove_all(self, tmp_path):
        inputs = write_test_images(str(tmp_path / "in"), count=1)
        job = Job(
            input_files=tuple(inputs),
            output_dir=str(tmp_path / "out"),
            metadata=MetadataPolicy(remove_all=True),
        )
        _pipeline().process(job)
        _, _, exif, xmp = _read_output(os.path.join(job.output_dir, "photo1_1.jpg"))
        assert len(exif) == 0
        assert xmp is None


class TestFactories:
    """Tests for the factory helpers."""

    def test_logger_factory(self):
        logger = LoggerFactory.create_logger("photo-pipeline.test-factory")
        assert isinstance(logger, StructuredLogger)
        assert logger.name == "photo-pipeline.test-factory"

    def test_processor_factory(self):
        assert isinstance(ProcessorFactory.create_processor(EngineConfig()), SerialBatchProcessor)
        threaded = ProcessorFactory.create_processor(
            EngineConfig(processor="multithread", workers=3, file_timeout=2.5)
        )
        assert isinstance(threaded, ThreadedBatchProcessor)
        assert threaded.workers == 3
        assert threaded.file_timeout == 2.5

    def test_pipeline_factory_defaults(self):
        pipeline = ProcessingPipelineFactory.create_pipeline()
        assert pipeline.config == EngineConfig()
        assert not pipeline.is_running
