#!/usr/bin/env python3
"""
Location Photo Migration CLI

Copy location photos from Google Places into Cloud Storage from the command
line (cron, one-off backfills, debugging a single location).

Usage:
    # Every location that doesn't have stored photos yet
    python scripts/migrate_photos.py

    # Specific locations
    python scripts/migrate_photos.py --location-ids ChIJxxx ChIJyyy

    # Re-ingest everything and record the run as scheduled
    python scripts/migrate_photos.py --force --scheduled
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from photo_pipeline.database import SessionLocal
from photo_pipeline.config.pipeline_config import PipelineSettings
from photo_pipeline.services import (
    MigrationReport,
    Outcome,
    RunType,
    LocationSnapshot,
    LocationNotFoundError,
    StorageUnavailableError,
    build_pipeline,
)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Copy location photos from Google Places into durable storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Migrate the whole catalog (locations with stored photos are skipped)
  python scripts/migrate_photos.py

  # Re-ingest one location even if it already has stored photos
  python scripts/migrate_photos.py --location-ids ChIJxxx --force

  # Save a JSON report
  python scripts/migrate_photos.py --output results.json
        """
    )

    parser.add_argument(
        "--location-ids",
        type=str,
        nargs="+",
        help="Specific location ids to process (default: whole catalog)"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Re-ingest locations that already have stored photos"
    )
    parser.add_argument(
        "--scheduled",
        action="store_true",
        help="Record the run as scheduled instead of manual"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Locations processed concurrently (1-10, default from PHOTO_BATCH_SIZE or 3)"
    )
    parser.add_argument(
        "--no-time-limit",
        action="store_true",
        help="Disable the wall-clock budget (useful outside serverless limits)"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Path to save JSON results"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    return parser.parse_args(argv)


def load_settings(args) -> PipelineSettings:
    """Environment settings with CLI overrides applied."""
    settings = PipelineSettings.from_env()
    if args.batch_size is not None:
        settings = replace(settings, batch_size=args.batch_size)
    if args.no_time_limit:
        settings.max_processing_seconds = None
    return settings


def load_locations(pipeline, location_ids):
    """Snapshots for the requested ids; unknown ids are still attempted."""
    locations = []
    for location_id in location_ids:
        try:
            locations.append(pipeline.repository.get_location(location_id))
        except LocationNotFoundError:
            print(f"Warning: location {location_id} not found in database")
            locations.append(LocationSnapshot(id=location_id, name=location_id))
    return locations


def print_summary(report: MigrationReport):
    """Print a summary of the run."""
    print("\n" + "=" * 60)
    print(f"MIGRATION {report.completeness.value.upper()}")
    print("=" * 60)

    print(f"\nTotal locations: {report.total}")
    print(f"  Processed: {report.processed}")
    print(f"  Success:   {report.success} ({report.degraded} without stored photos)")
    print(f"  Skipped:   {report.skipped}")
    print(f"  Failed:    {report.failed}")
    print(f"  Photos stored: {report.stored_photos}")
    print(f"\nDuration: {report.duration_seconds:.1f} seconds")

    if report.api_calls:
        print(f"\nEstimated API cost: ${report.total_cost:.4f} ({report.api_calls} calls)")
        for api, calls in report.calls_by_api.items():
            print(f"  {api}: {calls} calls")

    failures = [r for r in report.results if r.outcome == Outcome.FAILED]
    if failures:
        print(f"\nFailed locations ({len(failures)}):")
        for f in failures[:10]:
            print(f"  - {f.name} [{f.reason}]: {f.error or ''}")
        if len(failures) > 10:
            print(f"  ... and {len(failures) - 10} more")

    print()


def save_results(report: MigrationReport, output_path: str):
    """Save results to a JSON file."""
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, default=str)
    print(f"\nResults saved to: {output_path}")


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = load_settings(args)
    except ValueError as e:
        print(f"Invalid settings: {e}")
        return 1

    try:
        pipeline = build_pipeline(settings, SessionLocal)
    except StorageUnavailableError as e:
        print(f"Storage is not available: {e}")
        return 1

    run_type = RunType.SCHEDULED if args.scheduled else RunType.MANUAL
    locations = load_locations(pipeline, args.location_ids) if args.location_ids else None

    print(f"Run type: {run_type.value}")
    print(f"Force: {args.force}")
    print(f"Batch size: {settings.batch_size}")
    print("\nStarting migration...\n")

    orchestrator = pipeline.new_orchestrator()
    try:
        report = asyncio.run(
            orchestrator.run_catalog(run_type, force=args.force, locations=locations)
        )
    except KeyboardInterrupt:
        print("\n\nMigration interrupted by user.")
        return 1

    print_summary(report)

    if args.output:
        save_results(report, args.output)

    return 0 if report.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
