#!/usr/bin/env python
"""Back up Directus content collections to JSON, or export one as CSV."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from directus_ops.backup import backup_collections, export_csv
from directus_ops.cli import add_api_arguments, add_output_arguments, configure_logging, connect_client, print_header
from directus_ops.collections import all_collection_names, resolve_collections
from directus_ops.config import backup_directory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Write every item of the content collections to timestamped JSON files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Back up all content collections and their translations into ./backups
  python backup_collections.py

  # Back up a single collection into another directory
  python backup_collections.py -c map_locations --output /tmp/backups

  # Export a collection as CSV for the Directus import dialog
  python backup_collections.py --csv map_locations.csv -c map_locations
        """,
    )
    add_api_arguments(parser)
    parser.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(),
        help="Collection to back up (repeatable; default: all content collections)",
    )
    parser.add_argument(
        "--skip-translations",
        action="store_true",
        help="Do not back up the <collection>_translations tables",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Backup directory (default: BACKUP_DIR env var or ./backups)",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        default=None,
        help="Export the single selected collection to this CSV file instead",
    )
    add_output_arguments(parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if args.csv and (not args.collections or len(args.collections) != 1):
        print("✗ --csv needs exactly one --collection", file=sys.stderr)
        return 1

    print_header("Directus Backup")
    client = connect_client(args)
    if client is None:
        return 1

    try:
        if args.csv:
            rows = export_csv(client, args.collections[0], args.csv)
            print(f"\n✓ Wrote {rows} rows to {args.csv}")
            return 0

        names: list[str] = []
        for spec in resolve_collections(args.collections):
            names.append(spec.name)
            if not args.skip_translations:
                names.append(spec.translations)

        directory = args.output or backup_directory()
        results = backup_collections(client, names, directory=directory)
    except Exception as e:
        print(f"\n✗ Backup failed: {e}", file=sys.stderr)
        return 1

    total = 0
    failures = 0
    print()
    for result in results:
        if result.ok:
            total += result.records
            print(f"  ✓ {result.collection}: {result.records} records → {result.path}")
        else:
            failures += 1
            print(f"  ✗ {result.collection}: {result.error}", file=sys.stderr)

    print(f"\nTotal records backed up: {total}")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
