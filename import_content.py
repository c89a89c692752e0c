#!/usr/bin/env python
"""Import bilingual content from JSON/YAML data files or restore a backup."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from directus_ops.backup import latest_backup
from directus_ops.cli import add_api_arguments, add_output_arguments, configure_logging, connect_client, print_header
from directus_ops.collections import LANGUAGE_FIELD, all_collection_names, get_collection_spec
from directus_ops.config import backup_directory
from directus_ops.importer import ImportReport, import_records, load_records, restore_backup


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create or update Directus items (and their English translations) from data files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import agenda events from a YAML file
  python import_content.py agenda_events data/agenda-events.yaml

  # Only create new items, never update existing slugs
  python import_content.py umkm_lokal data/umkm.json --no-upsert

  # Restore the newest backup of a collection
  python import_content.py map_locations --restore
        """,
    )
    add_api_arguments(parser)
    parser.add_argument(
        "collection",
        choices=all_collection_names(include_translations=True),
        help="Target collection",
    )
    parser.add_argument(
        "file",
        nargs="?",
        type=Path,
        help="Data file (.json, .yaml or .yml); with --restore a backup file (default: newest backup)",
    )
    parser.add_argument(
        "--restore",
        action="store_true",
        help="Treat the file as a backup and write records back with their ids",
    )
    parser.add_argument(
        "--no-upsert",
        dest="upsert",
        action="store_false",
        help="Always create items instead of updating those with the same slug",
    )
    parser.add_argument(
        "--no-link-locations",
        dest="link_locations",
        action="store_false",
        help="Do not link items to the map location with the same slug",
    )
    parser.add_argument(
        "--language-field",
        default=LANGUAGE_FIELD,
        help=f"Language column of the translations table (default: {LANGUAGE_FIELD})",
    )
    add_output_arguments(parser)
    return parser


def print_report(report: ImportReport, verbose: bool) -> None:
    if verbose:
        for slug in report.created:
            print(f"  ✓ Created {report.collection}/{slug}")
        for slug in report.updated:
            print(f"  ✓ Updated {report.collection}/{slug}")
    for slug, message in report.failed.items():
        print(f"  ✗ {report.collection}/{slug}: {message}", file=sys.stderr)
    print(
        f"\n{report.collection}: {len(report.created)} created, "
        f"{len(report.updated)} updated, {len(report.failed)} failed"
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if not args.restore and args.collection not in all_collection_names():
        print(f"✗ {args.collection} can only be restored from a backup", file=sys.stderr)
        return 1

    path = args.file
    if args.restore and path is None:
        path = latest_backup(backup_directory(), args.collection)
        if path is None:
            print(f"✗ No backup found for {args.collection} in {backup_directory()}", file=sys.stderr)
            return 1
    if path is None:
        print("✗ A data file is required unless --restore is used", file=sys.stderr)
        return 1

    print_header(f"Import into {args.collection}")
    print(f"\nSource: {path}")

    try:
        records = None if args.restore else load_records(path)
    except (OSError, ValueError) as e:
        print(f"✗ Could not read {path}: {e}", file=sys.stderr)
        return 1

    client = connect_client(args)
    if client is None:
        return 1

    try:
        if args.restore:
            report = restore_backup(client, args.collection, path)
        else:
            report = import_records(
                client,
                get_collection_spec(args.collection),
                records,
                upsert=args.upsert,
                link_map_locations=args.link_locations,
                language_field=args.language_field,
            )
    except Exception as e:
        print(f"\n✗ Import failed: {e}", file=sys.stderr)
        return 1

    print_report(report, args.verbose)
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
