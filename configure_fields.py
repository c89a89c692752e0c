#!/usr/bin/env python
"""Adjust how content fields appear and validate in the Directus Data Studio."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from directus_ops import fields
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

DEFAULT_LAYOUT = Path(__file__).resolve().parent / "layouts" / "content_fields.yaml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Configure Directus field metadata for the content collections.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Apply the bundled layout through the API
  python configure_fields.py layout

  # Apply a custom layout straight to directus_fields
  python configure_fields.py layout my-layout.yaml --db

  # Make contact fields optional on map_locations
  python configure_fields.py optional map_locations

  # Configure the translations interface on every collection
  python configure_fields.py translations
        """,
    )
    common = argparse.ArgumentParser(add_help=False)
    add_api_arguments(common)
    add_output_arguments(common)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("layout", parents=[common], help="Apply a YAML field layout")
    p.add_argument("path", nargs="?", type=Path, default=DEFAULT_LAYOUT)
    p.add_argument("--db", action="store_true", help="Write directus_fields directly")
    add_database_arguments(p)

    p = sub.add_parser("optional", parents=[common], help="Make fields optional")
    p.add_argument("collection", choices=all_collection_names(include_translations=True))
    p.add_argument(
        "-f", "--field",
        dest="fields",
        action="append",
        help=f"Field to relax (repeatable; default: {', '.join(fields.CONTACT_FIELDS)})",
    )

    p = sub.add_parser("remove-validation", parents=[common], help="Drop required/validation from a field")
    p.add_argument("collection", choices=all_collection_names(include_translations=True))
    p.add_argument("field")

    p = sub.add_parser("fix-id", parents=[common], help="Reset the id field interface")
    p.add_argument("collection", choices=all_collection_names(include_translations=True))
    p.add_argument("--editable", action="store_true", help="Show the id as a required text input")

    p = sub.add_parser("translations", parents=[common], help="Configure the translations interface")
    p.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(),
        help="Collection (repeatable; default: all content collections)",
    )
    p.add_argument("--language-field", default="code")

    return parser


def print_result(result: fields.LayoutResult, verbose: bool) -> None:
    print(f"  ✓ {result.collection}: {len(result.updated)} field(s) updated")
    if verbose and result.updated:
        print(f"     {', '.join(result.updated)}")
    if result.missing:
        print(f"  ⚠ {result.collection}: missing {', '.join(result.missing)}")
    for name, message in result.failed.items():
        print(f"  ✗ {result.collection}.{name}: {message}", file=sys.stderr)


def run_layout(args: argparse.Namespace) -> int:
    layouts = fields.load_layout(args.path)
    print(f"\nLayout: {args.path} ({len(layouts)} collection(s))\n")

    results = []
    if args.db:
        with connect(database_settings(args)) as conn:
            for layout in layouts.values():
                results.append(fields.apply_layout_db(conn, layout))
    else:
        client = connect_client(args)
        if client is None:
            return 1
        for layout in layouts.values():
            results.append(fields.apply_layout(client, layout))

    for result in results:
        print_result(result, args.verbose)
    return 1 if any(result.failed for result in results) else 0


def run_api(args: argparse.Namespace) -> int:
    client = connect_client(args)
    if client is None:
        return 1

    command = args.command
    if command == "optional":
        result = fields.make_fields_optional(client, args.collection, args.fields or fields.CONTACT_FIELDS)
        print_result(result, args.verbose)
        return 1 if result.failed else 0
    if command == "remove-validation":
        fields.remove_validation(client, args.collection, args.field)
        print(f"  ✓ {args.collection}.{args.field}: validation removed")
        return 0
    if command == "fix-id":
        fields.fix_id_field_meta(client, args.collection, editable=args.editable)
        print(f"  ✓ {args.collection}.id: {'editable' if args.editable else 'read-only'}")
        return 0
    if command == "translations":
        for spec in resolve_collections(args.collections):
            fields.configure_translations_field(client, spec.name, language_field=args.language_field)
            print(f"  ✓ {spec.name}.translations configured")
        return 0
    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    print_header(f"Field configuration: {args.command}")
    try:
        if args.command == "layout":
            return run_layout(args)
        return run_api(args)
    except Exception as e:
        print(f"\n✗ Field configuration failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
