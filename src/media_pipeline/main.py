"""Main module for the media pipeline CLI."""

import argparse
import json
import mimetypes
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .core import (
    ManifestOptions,
    MediaPipelineError,
    PipelineFactory,
    SourceAsset,
    get_logger,
)
from .core.logging_config import set_level
from .core.catalog import Category, parse_output_format

logger = get_logger("media-pipeline.cli")

EXIT_SERVER_ERROR = 1
EXIT_CLIENT_ERROR = 2


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for every subcommand."""
    parser = argparse.ArgumentParser(
        prog="media-pipeline",
        description="Media Pipeline - responsive image variants for uploaded files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate the responsive set for a project image
  media-pipeline process hero.jpg --category projects

  # Only two presets, encoded one after the other
  media-pipeline process hero.jpg --category blog --presets small medium --serial

  # Compress a team photo to fit a 100KB budget
  media-pipeline process avatar.png --category team --target-size-kb 100

  # Remove staging leftovers older than 6 hours
  media-pipeline cleanup --hours 6
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--uploads-dir", default=None, help="Root directory for stored variants"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser(
        "process", help="Generate variants for one image and print the manifest"
    )
    process_parser.add_argument("file", help="Path of the image to process")
    process_parser.add_argument(
        "--category",
        required=True,
        choices=[category.value for category in Category],
        help="Content category the upload belongs to",
    )
    process_parser.add_argument(
        "--mime-type",
        default=None,
        help="Declared content type (guessed from the file name when omitted)",
    )
    process_parser.add_argument(
        "--presets", nargs="+", default=None, help="Subset of size presets to generate"
    )
    process_parser.add_argument(
        "--formats",
        nargs=2,
        default=None,
        metavar=("MODERN", "FALLBACK"),
        help="Delivery formats (default: webp jpeg)",
    )
    process_parser.add_argument(
        "--target-size-kb",
        type=_positive_int,
        default=None,
        help="Byte budget in KB; switches to size-bounded compression",
    )
    process_parser.add_argument(
        "--compress",
        action="store_true",
        help="Compress to the category's configured budget",
    )
    process_parser.add_argument(
        "--no-original",
        action="store_true",
        help="Skip the full-size variant",
    )
    process_parser.add_argument(
        "--serial",
        action="store_true",
        help="Encode variants one after the other instead of on the thread pool",
    )

    cleanup_parser = subparsers.add_parser(
        "cleanup", help="Delete stale files from the temp area"
    )
    cleanup_parser.add_argument(
        "--hours", type=float, default=None, help="Age threshold (default: 24)"
    )

    subparsers.add_parser("stats", help="Show disk usage per category")
    subparsers.add_parser("version", help="Show version information")

    return parser


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.uploads_dir:
        overrides["uploads_dir"] = Path(args.uploads_dir)
    if getattr(args, "serial", False):
        overrides["fanout"] = "serial"
    return overrides


def _print_error(exc: MediaPipelineError) -> int:
    print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
    return EXIT_CLIENT_ERROR if exc.client_error else EXIT_SERVER_ERROR


def run_process(args: argparse.Namespace) -> int:
    """Process one file and print its manifest as JSON."""
    path = Path(args.file)
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.error(f"Cannot read {path}: {exc}")
        return EXIT_CLIENT_ERROR

    mime_type = args.mime_type or mimetypes.guess_type(path.name)[0] or ""
    asset = SourceAsset.from_bytes(data, path.name, mime_type)

    try:
        options = ManifestOptions(
            presets=args.presets,
            formats=(
                tuple(parse_output_format(f) for f in args.formats)
                if args.formats
                else None
            ),
            include_original=not args.no_original,
            target_size_kb=args.target_size_kb,
            compress=args.compress,
        )
        with PipelineFactory.create_pipeline(
            config_overrides=_config_overrides(args)
        ) as pipeline:
            manifest = pipeline.generate_manifest(asset, args.category, options)
    except MediaPipelineError as exc:
        return _print_error(exc)

    print(manifest.model_dump_json(indent=2))
    return 0


def run_cleanup(args: argparse.Namespace) -> int:
    try:
        with PipelineFactory.create_pipeline(
            config_overrides=_config_overrides(args)
        ) as pipeline:
            removed = pipeline.cleanup(args.hours)
    except MediaPipelineError as exc:
        return _print_error(exc)

    print(f"Removed {removed} temporary file(s)")
    return 0


def run_stats(args: argparse.Namespace) -> int:
    try:
        with PipelineFactory.create_pipeline(
            config_overrides=_config_overrides(args)
        ) as pipeline:
            stats = pipeline.storage_stats()
    except MediaPipelineError as exc:
        return _print_error(exc)

    print(f"Total: {stats.total_size_formatted}")
    for name, category in stats.categories.items():
        print(f"  {name}: {category.file_count} file(s), {category.size_formatted}")
    return 0


def main(argv: Optional[list] = None) -> None:
    """
    Entry point for the ``media-pipeline`` command.

    Exit codes: 0 on success, 2 when the input is rejected (validation or
    decode errors), 1 for server-side failures (encode or storage errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        set_level("DEBUG")

    if args.command == "process":
        sys.exit(run_process(args))
    elif args.command == "cleanup":
        sys.exit(run_cleanup(args))
    elif args.command == "stats":
        sys.exit(run_stats(args))
    elif args.command == "version":
        print("Media Pipeline CLI")
        print(f"Version {__version__}")
        print("Responsive image variants with multiple concurrency strategies")
        sys.exit(0)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
