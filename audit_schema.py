#!/usr/bin/env python
"""Report item counts, field shapes and schema issues of the content collections."""

from __future__ import annotations

import argparse
import sys

from directus_ops.audit import audit_schema, check_server, describe_field, describe_tables, format_summary
from directus_ops.cli import (
    add_api_arguments,
    add_database_arguments,
    add_output_arguments,
    configure_logging,
    connect_client,
    database_settings,
    print_header,
)
from directus_ops.collections import all_collection_names, resolve_collections
from directus_ops.database import connect


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Audit the Directus content schema.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Audit every content collection
  python audit_schema.py

  # Show the fields of one collection
  python audit_schema.py -c map_locations --verbose

  # List database tables grouped by kind
  python audit_schema.py --tables
        """,
    )
    add_api_arguments(parser)
    add_database_arguments(parser)
    parser.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(),
        help="Collection to audit (repeatable; default: all content collections)",
    )
    parser.add_argument(
        "--tables",
        action="store_true",
        help="List the database tables instead of auditing through the API",
    )
    add_output_arguments(parser)
    return parser


def list_tables(args: argparse.Namespace) -> int:
    try:
        with connect(database_settings(args)) as conn:
            groups = describe_tables(conn)
    except Exception as e:
        print(f"✗ Could not list tables: {e}", file=sys.stderr)
        return 1
    icons = {"system": "⚙️ ", "translations": "🌍", "content": "📦"}
    for group, names in groups.items():
        print(f"\n{icons[group]} {group.title()} ({len(names)})")
        for name in names:
            print(f"   - {name}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    print_header("Directus Schema Audit")
    if args.tables:
        return list_tables(args)

    client = connect_client(args)
    if client is None:
        return 1

    try:
        server = check_server(client)
        print(f"\nDirectus {server['version'] or 'unknown version'} ({server['project'] or 'no project name'})")
        audits = audit_schema(client, resolve_collections(args.collections))
    except Exception as e:
        print(f"\n✗ Audit failed: {e}", file=sys.stderr)
        return 1

    for audit in audits:
        print(f"\n📦 {audit.collection} [{audit.structure}]")
        if args.verbose:
            for item in audit.fields:
                print(f"   - {describe_field(item)}")
        if audit.ok:
            print("   ✓ No issues")
        for issue in audit.issues:
            print(f"   ⚠ {issue}")

    print()
    print(format_summary(audits))
    return 0


if __name__ == "__main__":
    sys.exit(main())
