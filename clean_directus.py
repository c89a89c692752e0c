#!/usr/bin/env python
"""Script to empty the Directus content collections and their translations."""

from __future__ import annotations

import argparse
import sys

from directus_ops.cleanup import clean_collections, delete_collections
from directus_ops.cli import (
    add_api_arguments,
    add_output_arguments,
    configure_logging,
    confirm,
    connect_client,
    print_header,
)
from directus_ops.collections import all_collection_names, resolve_collections


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Delete all items from the Directus content collections.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Empty every content collection using credentials from .env
  python clean_directus.py

  # Empty only two collections, keeping their translation rows
  python clean_directus.py -c umkm_lokal -c spot_nongkrong --keep-translations

  # Drop collections that are no longer used
  python clean_directus.py --drop-collection old_locations --yes
        """,
    )
    add_api_arguments(parser)
    parser.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(),
        help="Collection to clean (repeatable; default: all content collections)",
    )
    parser.add_argument(
        "--keep-translations",
        action="store_true",
        help="Do not delete rows from the <collection>_translations tables",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Number of items fetched per request (default: 100)",
    )
    parser.add_argument(
        "--drop-collection",
        dest="drop",
        action="append",
        default=[],
        help="Delete a whole collection instead of its items (repeatable)",
    )
    add_output_arguments(parser, confirm=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the cleanup script."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    print_header("Directus Cleanup Script")
    if args.drop:
        print("\nCollections to drop:")
        for name in args.drop:
            print(f"  ✓ {name}")
    else:
        specs = resolve_collections(args.collections)
        print("\nCollections to clean:")
        for spec in specs:
            suffix = "" if args.keep_translations else f" (+ {spec.translations})"
            print(f"  ✓ {spec.name}{suffix}")

    if not confirm(
        "This will permanently delete all data from the selected collections!",
        assume_yes=args.yes,
    ):
        return 0

    client = connect_client(args)
    if client is None:
        return 1

    try:
        if args.drop:
            deleted = delete_collections(client, args.drop)
            print(f"\nDropped {len(deleted)} collection(s)")
            return 0

        results = clean_collections(
            client,
            args.collections,
            include_translations=not args.keep_translations,
            batch_size=args.batch_size,
            verbose=args.verbose,
        )

        print("\n" + "=" * 60)
        print("Cleanup Complete")
        print("=" * 60)
        total = sum(results.values())
        print(f"\nTotal items deleted: {total}")
        for collection, count in results.items():
            print(f"  {collection}: {count}")

        return 0

    except Exception as e:
        print(f"\n✗ Cleanup failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
