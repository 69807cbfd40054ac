"""Main module for the photo pipeline CLI."""

import argparse
import json
import random
import signal
import sys
from typing import Any, List, Optional

from pydantic import ValidationError

from . import __version__
from .core.catalog import GEAR_PROFILES, LOCATION_PRESETS, ProfileKind
from .core.exceptions import ConfigurationError, batch_error_handler
from .core.factories import ProcessingPipelineFactory
from .core.image_utils import discover_images, inspect_image
from .core.logging_config import get_logger, set_log_level
from .core.models import (
    DEFAULT_NAMING,
    CompletionEvent,
    CompletionStatus,
    DateStrategy,
    EngineConfig,
    FakeSpec,
    GpsSpec,
    Job,
    MetadataPolicy,
    OutputFormat,
    ProgressEvent,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2
EXIT_CANCELED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photo-pipeline",
        description="Photo Pipeline - batch re-encoding with metadata rewriting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Re-encode a folder to WEBP, strip GPS, stamp fresh dates and ids
  photo-pipeline process ~/photos -o ~/out --format webp --quality 80

  # Fake camera metadata, one record per file, located in Berlin
  photo-pipeline process a.jpg b.jpg -o out --fake --fake-make Canon \\
                         --fake-gps --fake-location berlin --keep-gps

  # Look at what ended up in a file
  photo-pipeline inspect out/a_1.jpg
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process = subparsers.add_parser("process", help="Re-encode files and rewrite their metadata")
    process.add_argument("inputs", nargs="+", help="Image files or directories")
    process.add_argument("-o", "--output-dir", required=True, help="Output directory")
    process.add_argument(
        "--format",
        default=OutputFormat.JPG.value,
        choices=[fmt.value for fmt in OutputFormat],
        help="Output format (default: jpg)",
    )
    process.add_argument("--quality", type=int, default=85, help="Nominal quality 1-100 (default: 85)")
    process.add_argument("--color-drift", type=float, default=2.0, help="Quality jitter in percent, 0-10")
    process.add_argument("--resize-drift", type=float, default=2.0, help="Width jitter in percent, 0-10")
    process.add_argument("--max-width", type=int, default=0, help="Downscale to this width (0 = keep)")
    process.add_argument("--naming", default=DEFAULT_NAMING, help="Output name template; {index} counts from 1")
    process.add_argument("--no-recursive", action="store_true", help="Do not descend into subdirectories")

    meta = process.add_argument_group("metadata")
    meta.add_argument("--keep-gps", action="store_true", help="Do not strip existing GPS data")
    meta.add_argument("--date-offset", type=int, default=None, metavar="MINUTES", help="Shift stamped dates by MINUTES")
    meta.add_argument("--no-unique-id", action="store_true", help="Do not write per-file unique ids")
    meta.add_argument("--no-software-tag", action="store_true", help="Do not write the Software tag")
    meta.add_argument("--remove-all", action="store_true", help="Strip all metadata")
    meta.add_argument("--author", default="")
    meta.add_argument("--description", default="")
    meta.add_argument("--keywords", default="", help="Comma-separated keywords")
    meta.add_argument("--copyright", default="")
    meta.add_argument("--creator-tool", default="")

    fake = process.add_argument_group("fake metadata")
    fake.add_argument("--fake", action="store_true", help="Write synthetic camera metadata")
    fake.add_argument(
        "--fake-profile",
        default=ProfileKind.CAMERA.value,
        choices=[kind.value for kind in ProfileKind],
    )
    fake.add_argument("--fake-make", default="")
    fake.add_argument("--fake-model", default="")
    fake.add_argument("--fake-lens", default="")
    fake.add_argument("--fake-software", default="")
    fake.add_argument("--fake-serial", default="")
    fake.add_argument("--fake-iso", type=int, default=None)
    fake.add_argument("--fake-exposure", default=None, help="Exposure time such as 1/125")
    fake.add_argument("--fake-fnumber", type=float, default=None)
    fake.add_argument("--fake-focal-length", type=float, default=None)
    fake.add_argument("--fake-color-space", default=None)
    fake.add_argument("--fake-rating", type=int, default=None)
    fake.add_argument("--fake-label", default=None)
    fake.add_argument("--fake-title", default=None)
    fake.add_argument("--fake-gps", action="store_true", help="Include a fake location")
    fake.add_argument("--fake-location", default=None, choices=sorted(LOCATION_PRESETS))
    fake.add_argument("--fake-lat", type=float, default=None)
    fake.add_argument("--fake-lon", type=float, default=None)
    fake.add_argument("--fake-alt", type=float, default=None)
    fake.add_argument("--no-fake-auto", action="store_true", help="Leave unset fake fields empty")
    fake.add_argument("--fake-once", action="store_true", help="Reuse one fake record for every file")

    engine = process.add_argument_group("engine")
    engine.add_argument("--processor", default="serial", choices=["serial", "multithread"])
    engine.add_argument("--workers", type=int, default=4)
    engine.add_argument("--file-timeout", type=float, default=None, help="Per-file timeout in seconds")
    engine.add_argument("--seed", type=int, default=None, help="Seed for reproducible drift and fakes")
    engine.add_argument("--debug", action="store_true", help="Enable debug logging")

    inspect = subparsers.add_parser("inspect", help="Show size and metadata of image files")
    inspect.add_argument("paths", nargs="+")

    catalog = subparsers.add_parser("catalog", help="List known gear and location presets")
    catalog.add_argument("--profile", default=None, choices=[kind.value for kind in ProfileKind])

    subparsers.add_parser("version", help="Show version information")
    return parser


def build_fake_spec(args: argparse.Namespace) -> Optional[FakeSpec]:
    if not args.fake:
        return None
    gps = GpsSpec(
        enabled=args.fake_gps,
        preset=args.fake_location,
        latitude=args.fake_lat,
        longitude=args.fake_lon,
        altitude=args.fake_alt,
    )
    return FakeSpec(
        profile=args.fake_profile,
        make=args.fake_make,
        model=args.fake_model,
        lens=args.fake_lens,
        software=args.fake_software,
        serial=args.fake_serial,
        gps=gps,
        iso=args.fake_iso,
        exposure_time=args.fake_exposure,
        f_number=args.fake_fnumber,
        focal_length=args.fake_focal_length,
        color_space=args.fake_color_space,
        rating=args.fake_rating,
        label=args.fake_label,
        title=args.fake_title,
        auto=not args.no_fake_auto,
        per_file=not args.fake_once,
    )


def build_job(args: argparse.Namespace) -> Job:
    """
    Turn parsed ``process`` arguments into a Job.

    Raises:
        ConfigurationError: If an input path does not exist.
        ValidationError: If a value is out of range.
    """
    with batch_error_handler():
        input_files = discover_images(args.inputs, recursive=not args.no_recursive)

    keywords = tuple(k for k in args.keywords.split(",")) if args.keywords else ()
    policy = MetadataPolicy(
        remove_gps=not args.keep_gps,
        date_strategy=DateStrategy.OFFSET if args.date_offset is not None else DateStrategy.NOW,
        date_offset_minutes=args.date_offset or 0,
        unique_id=not args.no_unique_id,
        remove_all=args.remove_all,
        software_tag=not args.no_software_tag,
        fake=build_fake_spec(args),
        author=args.author,
        description=args.description,
        keywords=keywords,
        copyright=args.copyright,
        creator_tool=args.creator_tool,
    )
    return Job(
        input_files=tuple(input_files),
        output_dir=args.output_dir,
        format=args.format,
        quality=args.quality,
        color_drift=args.color_drift,
        resize_drift=args.resize_drift,
        resize_max_w=args.max_width,
        naming=args.naming,
        metadata=policy,
    )


def build_engine_config(args: argparse.Namespace) -> EngineConfig:
    return EngineConfig(
        processor=args.processor,
        workers=args.workers,
        file_timeout=args.file_timeout,
    )


def _print_progress(event: ProgressEvent) -> None:
    prefix = f"[{event.index + 1}/{event.total}] {event.percent:5.1f}%"
    speed = f"{event.bytes_per_second / 1024:.1f} KiB/s, ETA {event.eta_seconds:.1f}s"
    if event.output_path:
        print(f"{prefix} ok    {event.source_path} -> {event.output_path} ({speed})")
    else:
        kind = event.error_kind.value if event.error_kind else "Error"
        print(f"{prefix} error {event.source_path}: {kind}: {event.error} ({speed})")


def _exit_code(completion: CompletionEvent) -> int:
    if completion.status == CompletionStatus.CANCELED:
        return EXIT_CANCELED
    if completion.failed:
        return EXIT_PARTIAL
    return EXIT_OK


def run_process(args: argparse.Namespace) -> int:
    """Run the ``process`` command and return the exit code."""
    logger = get_logger("photo-pipeline.cli")
    if args.debug:
        set_log_level("DEBUG")

    try:
        job = build_job(args)
        config = build_engine_config(args)
    except (ConfigurationError, ValidationError) as exc:
        logger.error(f"Invalid configuration: {exc}")
        return EXIT_ERROR

    rng = random.Random(args.seed) if args.seed is not None else None
    orchestrator = ProcessingPipelineFactory.create_pipeline(config=config, rng=rng)

    def on_interrupt(signum: int, frame: Any) -> None:
        if orchestrator.is_running:
            logger.warning("Interrupt received, finishing the current file before stopping")
            orchestrator.cancel()
        else:
            raise KeyboardInterrupt

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        completion = orchestrator.process(job, on_progress=_print_progress)
    except ConfigurationError as exc:
        logger.error(f"Job rejected: {exc}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user.")
        return EXIT_CANCELED
    finally:
        signal.signal(signal.SIGINT, previous)

    print(
        f"{completion.status.value}: {completion.succeeded} ok, {completion.failed} failed, "
        f"{completion.total - completion.processed} skipped in {completion.elapsed_seconds:.1f}s"
    )
    return _exit_code(completion)


def run_inspect(paths: List[str]) -> int:
    code = EXIT_OK
    for path in paths:
        try:
            info = inspect_image(path)
        except OSError as exc:
            print(f"{path}: {exc}", file=sys.stderr)
            code = EXIT_ERROR
            continue
        print(json.dumps(info, indent=2, default=str))
    return code


def run_catalog(profile: Optional[str]) -> int:
    kinds = [ProfileKind(profile)] if profile else list(ProfileKind)
    for kind in kinds:
        device = GEAR_PROFILES[kind]
        print(f"{kind.value}:")
        for make in device.makes:
            print(f"  {make}")
            print(f"    models: {', '.join(device.models_for(make))}")
            print(f"    lenses: {', '.join(device.lenses_for(make))}")
    print("locations:")
    for preset in LOCATION_PRESETS.values():
        print(f"  {preset.id}: {preset.label} ({preset.latitude}, {preset.longitude})")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the photo pipeline command-line interface.

    Commands: ``process`` runs a batch, ``inspect`` shows file metadata,
    ``catalog`` lists gear presets and ``version`` prints the version.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "process":
        sys.exit(run_process(args))
    elif args.command == "inspect":
        sys.exit(run_inspect(args.paths))
    elif args.command == "catalog":
        sys.exit(run_catalog(args.profile))
    elif args.command == "version":
        print("Photo Pipeline CLI")
        print(f"Version {__version__}")
        print("Batch re-encoding with EXIF/XMP metadata rewriting")
        sys.exit(EXIT_OK)
    else:
        parser.print_help()
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
