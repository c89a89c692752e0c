#!/usr/bin/env python
"""Repair administrator permissions on the content collections."""

from __future__ import annotations

import argparse
import sys
from typing import List

from directus_ops import permissions
from directus_ops.cli import (
    add_api_arguments,
    add_database_arguments,
    add_output_arguments,
    configure_logging,
    confirm,
    connect_client,
    database_settings,
    print_header,
)
from directus_ops.collections import all_collection_names, resolve_collections
from directus_ops.database import connect
from directus_ops.directus_client import DirectusAPIError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create missing CRUD permissions for the administrator policy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create missing permissions through the API
  python fix_permissions.py

  # Recreate the permissions of one collection
  python fix_permissions.py -c map_locations --replace --yes

  # Work directly on the database when the API refuses access
  python fix_permissions.py --db --fix-null --admin-access
        """,
    )
    add_api_arguments(parser)
    add_database_arguments(parser)
    parser.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(include_translations=True),
        help="Collection to fix (repeatable; default: all content and translations collections)",
    )
    parser.add_argument("--policy", default=None, help="Policy id (default: the admin_access policy)")
    parser.add_argument("--db", action="store_true", help="Write directus_permissions directly")
    parser.add_argument("--replace", action="store_true", help="Delete existing permissions first (API mode)")
    parser.add_argument("--fix-null", action="store_true", help="Replace NULL permissions/fields (database mode)")
    parser.add_argument(
        "--delete-explicit",
        action="store_true",
        help="Delete explicit permissions and rely on admin_access (database mode)",
    )
    parser.add_argument(
        "--admin-access",
        action="store_true",
        help="Make sure the Administrator has admin_access and app_access",
    )
    add_output_arguments(parser, confirm=True)
    return parser


def target_collections(names: List[str] | None) -> List[str]:
    if names:
        return names
    targets: List[str] = []
    for spec in resolve_collections(None):
        targets.extend([spec.name, spec.translations])
    return targets


def print_report(report: permissions.PermissionReport, verbose: bool) -> None:
    if report.created:
        print(f"  ✓ {report.collection}: created {', '.join(report.created)}")
    elif verbose:
        print(f"  ✓ {report.collection}: nothing to create")
    for action, message in report.failed.items():
        print(f"  ✗ {report.collection} {action}: {message}", file=sys.stderr)


def run_api(args: argparse.Namespace, collections: List[str]) -> int:
    client = connect_client(args)
    if client is None:
        return 1

    try:
        if args.admin_access:
            role = permissions.ensure_admin_access(client)
            print(f"✓ Admin access enabled on role {role.get('name')}")

        policy = args.policy
        role_id = None
        if policy is None:
            try:
                policy = permissions.find_admin_policy(client)["id"]
            except (LookupError, DirectusAPIError):
                # Directus < 11 has no policies
                role_id = permissions.find_admin_role(client)["id"]
        print(f"\nTarget: {'policy ' + str(policy) if policy else 'role ' + str(role_id)}\n")

        reports = [
            permissions.ensure_crud_permissions(
                client, name, policy=policy, role=role_id, replace=args.replace
            )
            for name in collections
        ]
    except Exception as e:
        print(f"\n✗ Permission repair failed: {e}", file=sys.stderr)
        return 1

    for report in reports:
        print_report(report, args.verbose)
    totals = permissions.summarize(reports)
    print(f"\nCreated {totals['created']}, already present {totals['skipped']}, failed {totals['failed']}")
    return 1 if totals["failed"] else 0


def run_db(args: argparse.Namespace, collections: List[str]) -> int:
    try:
        with connect(database_settings(args)) as conn:
            if args.admin_access:
                rows = permissions.ensure_admin_access_db(conn)
                print(f"✓ admin_access set on {len(rows)} row(s)")

            policy = args.policy or permissions.find_admin_policy_db(conn)
            print(f"\nTarget: policy {policy}\n")

            for name in collections:
                if args.delete_explicit:
                    deleted = permissions.delete_explicit_permissions(conn, name, policy)
                    print(f"  🗑️  {name}: {deleted} permission(s) deleted")
                    continue
                if args.fix_null:
                    fixed = permissions.fix_null_permissions(conn, name, policy)
                    if fixed or args.verbose:
                        print(f"  ✓ {name}: {fixed} NULL permission(s) fixed")
                print_report(permissions.ensure_crud_permissions_db(conn, name, policy), args.verbose)
    except Exception as e:
        print(f"\n✗ Permission repair failed: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if (args.fix_null or args.delete_explicit) and not args.db:
        print("✗ --fix-null and --delete-explicit need --db", file=sys.stderr)
        return 1

    print_header("Directus Permission Repair")
    collections = target_collections(args.collections)

    destructive = args.replace or args.delete_explicit
    if destructive and not confirm(
        "Existing permissions of the selected collections will be deleted!",
        assume_yes=args.yes,
    ):
        return 0

    if args.db:
        return run_db(args, collections)
    return run_api(args, collections)


if __name__ == "__main__":
    sys.exit(main())
