#!/usr/bin/env python
"""SQL schema migrations for the Directus content database.

Every sub-command runs in one transaction: it commits when the command
finishes and rolls back on the first error. Restart Directus afterwards
so it reloads the schema.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict

from directus_ops import schema
from directus_ops.cli import (
    add_database_arguments,
    add_output_arguments,
    configure_logging,
    confirm,
    database_settings,
    print_header,
)
from directus_ops.collections import all_collection_names, resolve_collections
from directus_ops.database import connect

# Sub-commands that rewrite data or drop columns.
DESTRUCTIVE = {"drop-column", "id-to-varchar", "id-to-integer", "rename-language-column"}


def _parse_sort(values: list[str]) -> Dict[str, int]:
    order: Dict[str, int] = {}
    for value in values:
        name, sep, position = value.partition("=")
        if not sep or not position.isdigit():
            raise argparse.ArgumentTypeError(f"Expected FIELD=POSITION, got {value!r}")
        order[name] = int(position)
    return order


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run SQL schema migrations against the Directus database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python migrate_schema.py add-column map_locations subcategory "VARCHAR(100)" --register
  python migrate_schema.py id-to-integer map_locations --yes
  python migrate_schema.py create-tables -c trending_articles
  python migrate_schema.py m2o agenda_events map_location_id map_locations
  python migrate_schema.py field-sort map_locations slug=1 name=2 category=3
        """,
    )
    common = argparse.ArgumentParser(add_help=False)
    add_database_arguments(common)
    add_output_arguments(common, confirm=True)
    sub = parser.add_subparsers(dest="command", required=True)

    def collections_option(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-c", "--collection",
            dest="collections",
            action="append",
            choices=all_collection_names(),
            help="Content collection (repeatable; default: all)",
        )

    p = sub.add_parser("add-column", parents=[common], help="Add a column if it does not exist")
    p.add_argument("table")
    p.add_argument("column")
    p.add_argument("sql_type", help='Column type, e.g. "VARCHAR(255)"')
    p.add_argument("--not-null", action="store_true")
    p.add_argument("--register", action="store_true", help="Also create the directus_fields row")

    p = sub.add_parser("drop-column", parents=[common], help="Drop a column and its field metadata")
    p.add_argument("table")
    p.add_argument("column")

    p = sub.add_parser("id-to-varchar", parents=[common], help="Turn an integer id into VARCHAR")
    p.add_argument("table")
    p.add_argument("--length", type=int, default=255)

    p = sub.add_parser("id-to-integer", parents=[common], help="Turn a VARCHAR id into SERIAL and keep the old id as slug")
    p.add_argument("table", nargs="?", default="map_locations")

    p = sub.add_parser("create-tables", parents=[common], help="Create content and translations tables")
    collections_option(p)

    sub.add_parser("setup-languages", parents=[common], help="Create the languages table and its rows")
    sub.add_parser("dedupe-relations", parents=[common], help="Delete duplicate directus_relations rows")
    sub.add_parser("fix-special", parents=[common], help="Normalise directus_fields.special values")

    p = sub.add_parser("visibility", parents=[common], help="Show content collections, hide translations")
    collections_option(p)

    p = sub.add_parser("slug-translations", parents=[common], help="Add slug columns to translations tables")
    collections_option(p)

    p = sub.add_parser("translations-alias", parents=[common], help="Register the translations alias field")
    collections_option(p)

    p = sub.add_parser("rename-language-column", parents=[common], help="Rename languages_code to code")
    collections_option(p)

    p = sub.add_parser("m2o", parents=[common], help="Register a many-to-one relation and its field metadata")
    p.add_argument("collection")
    p.add_argument("field")
    p.add_argument("related", help="Target collection, e.g. map_locations or directus_files")
    p.add_argument("--interface", help="Field interface (default: file-image or select-dropdown-m2o)")

    p = sub.add_parser("field-sort", parents=[common], help="Set the form order of fields")
    p.add_argument("collection")
    p.add_argument("order", nargs="+", metavar="FIELD=POSITION")

    return parser


def run(conn: Any, args: argparse.Namespace) -> str:
    """Execute one sub-command and return a summary line."""

    command = args.command
    if command == "add-column":
        created = schema.add_column(
            conn,
            args.table,
            args.column,
            args.sql_type,
            nullable=not args.not_null,
            register_field=args.register,
        )
        return f"{args.table}.{args.column} {'added' if created else 'already exists'}"
    if command == "drop-column":
        dropped = schema.drop_column(conn, args.table, args.column)
        return f"{args.table}.{args.column} {'dropped' if dropped else 'does not exist'}"
    if command == "id-to-varchar":
        columns = schema.change_id_to_varchar(conn, args.table, length=args.length)
        kind = columns[0]["data_type"] if columns else "unknown"
        return f"{args.table}.id is now {kind}"
    if command == "id-to-integer":
        result = schema.migrate_id_to_integer(conn, args.table)
        remapped = ", ".join(f"{name}: {count}" for name, count in result.remapped.items()) or "none"
        return f"{result.rows} rows migrated; foreign keys remapped ({remapped})"
    if command == "create-tables":
        specs = resolve_collections(args.collections)
        for spec in specs:
            schema.create_collection_tables(conn, spec)
            if args.verbose:
                print(f"  ✓ {spec.name} + {spec.translations}")
        return f"{len(specs)} collection(s) created or already present"
    if command == "setup-languages":
        created = schema.setup_languages(conn)
        return f"languages added: {', '.join(created) or 'none'}"
    if command == "dedupe-relations":
        deleted = schema.cleanup_duplicate_relations(conn)
        return f"{len(deleted)} duplicate relation(s) deleted"
    if command == "fix-special":
        translations, m2o = schema.fix_special_encoding(conn)
        return f"{translations} translations field(s) and {m2o} m2o field(s) updated"
    if command == "visibility":
        specs = resolve_collections(args.collections)
        schema.set_collection_visibility(conn, specs)
        return f"visibility updated for {len(specs)} collection(s)"
    if command == "slug-translations":
        changed = schema.add_slug_to_translations(conn, resolve_collections(args.collections))
        return f"slug added to: {', '.join(changed) or 'none'}"
    if command == "translations-alias":
        specs = resolve_collections(args.collections)
        added = [spec.name for spec in specs if schema.ensure_translations_alias(conn, spec)]
        return f"translations field registered on: {', '.join(added) or 'none'}"
    if command == "rename-language-column":
        renamed = schema.rename_languages_code_column(conn, resolve_collections(args.collections))
        return f"renamed in: {', '.join(renamed) or 'none'}"
    if command == "m2o":
        inserted = schema.register_m2o_relation(
            conn, args.collection, args.field, args.related, interface=args.interface
        )
        state = "registered" if inserted else "already registered, field metadata refreshed"
        return f"{args.collection}.{args.field} -> {args.related} {state}"
    if command == "field-sort":
        updated = schema.set_field_sort(conn, args.collection, _parse_sort(args.order))
        return f"{updated} field(s) reordered"
    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    settings = database_settings(args)
    print_header(f"Schema migration: {args.command}")
    print(f"\nDatabase: {settings.user}@{settings.host}:{settings.port}/{settings.name}")

    if args.command in DESTRUCTIVE and not confirm(
        "This migration rewrites table data. Take a backup first!",
        assume_yes=args.yes,
    ):
        return 0

    try:
        with connect(settings) as conn:
            summary = run(conn, args)
    except schema.MigrationAborted as e:
        print(f"\n⚠ Migration aborted: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"\n✗ Migration failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    print(f"\n✓ {summary}")
    print("🔄 Restart Directus to reload the schema.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
