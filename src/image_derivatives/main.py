"""Main module for the image derivatives CLI."""

import sys
import json
import asyncio
import argparse
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core import DerivationError, ServiceConfig
from .core.exceptions import ConfigurationError
from .service import ImageDerivationService, ServiceFactory, batch_items


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser for the unified command-line interface.

    Global options configure the service; each subcommand maps to one
    service operation.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="image-derivatives",
        description="Image derivatives - optimize, thumbnail, convert and publish uploaded images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Derive artifacts for one upload
  image-derivatives process ./photo.jpg

  # Derive a batch, three at a time
  image-derivatives --concurrency 3 batch ./a.jpg ./b.png ./c.jpg

  # Remove derived files older than two weeks
  image-derivatives sweep --max-age-days 14

  # Responsive CDN URLs for a published asset
  image-derivatives urls images/photo_optimized --base-url https://example.com/photo.jpg
        """,
    )
    parser.add_argument(
        "--uploads-dir", type=Path, default=None, help="Root directory for derived artifacts"
    )
    parser.add_argument(
        "--concurrency", type=int, default=None, help="Maximum images derived at once (default: 3)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    process_parser = subparsers.add_parser("process", help="Derive artifacts for one image")
    process_parser.add_argument("file", type=Path, help="Uploaded image file")
    process_parser.add_argument("--name", default=None, help="Original filename (default: file name)")
    process_parser.add_argument("--base-name", default=None, help="Remote naming base for CDN assets")

    batch_parser = subparsers.add_parser("batch", help="Derive artifacts for many images")
    batch_parser.add_argument("files", type=Path, nargs="+", help="Uploaded image files")

    sweep_parser = subparsers.add_parser("sweep", help="Delete derived files past the retention window")
    sweep_parser.add_argument(
        "--max-age-days", type=float, default=None, help="Retention window in days (default: 7)"
    )

    subparsers.add_parser("health", help="Probe codecs, directories and CDN")

    urls_parser = subparsers.add_parser("urls", help="Build CDN delivery URLs for a published asset")
    urls_parser.add_argument("public_id", help="Remote asset identifier")
    urls_parser.add_argument("--base-url", required=True, help="URL returned when the asset was published")
    urls_parser.add_argument("--preset", default=None, help="Named variant preset, e.g. gallery_image")

    subparsers.add_parser("stats", help="Show service configuration")
    subparsers.add_parser("version", help="Show version information")

    return parser


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def run_command(args: argparse.Namespace, service: ImageDerivationService) -> int:
    """Execute a parsed subcommand against ``service``; returns the exit code."""
    if args.command == "process":
        try:
            result = asyncio.run(
                service.process_upload(args.file, args.name or args.file.name, args.base_name)
            )
        except DerivationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        _emit(result.model_dump(mode="json"))
        return 0

    if args.command == "batch":
        batch_result = asyncio.run(service.process_batch(batch_items(args.files)))
        _emit(batch_result.model_dump(mode="json"))
        return 0 if batch_result.error_count == 0 else 1

    if args.command == "sweep":
        max_age = timedelta(days=args.max_age_days) if args.max_age_days is not None else None
        deleted = asyncio.run(service.cleanup_old_files(max_age))
        _emit({"deleted": deleted})
        return 0

    if args.command == "health":
        report = asyncio.run(service.health_check())
        _emit(report.model_dump(mode="json"))
        return 0 if report.status == "healthy" else 1

    if args.command == "urls":
        if args.preset:
            try:
                variants = service.generate_preset_variants(args.public_id, args.preset)
            except ConfigurationError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 2
            _emit({suffix: v.model_dump(mode="json") for suffix, v in variants.items()})
        else:
            _emit(service.generate_responsive_urls(args.base_url, args.public_id).model_dump(mode="json"))
        return 0

    if args.command == "stats":
        _emit(service.get_stats())
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``image-derivatives`` command."""
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.command == "version":
        print("Image Derivatives CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = ServiceConfig.from_env(
        uploads_dir=args.uploads_dir,
        concurrency=args.concurrency,
        debug=args.debug or None,
    )
    service = ServiceFactory.create_service(config=config)
    sys.exit(run_command(args, service))


if __name__ == "__main__":
    main()
