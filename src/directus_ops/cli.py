"""Argument and session plumbing shared by the root scripts."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional

from .config import DatabaseSettings
from .directus_client import DirectusRESTClient


def add_api_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--url",
        dest="base_url",
        default=None,
        help="Directus base URL (default: from DIRECTUS_URL/PUBLIC_URL env var or http://localhost:8055)",
    )
    parser.add_argument(
        "--email",
        default=None,
        help="Login email (default: from ADMIN_EMAIL env var)",
    )
    parser.add_argument(
        "--password",
        default=None,
        help="Login password (default: from ADMIN_PASSWORD env var)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Static access token; skips the login request (default: from DIRECTUS_TOKEN env var)",
    )


def add_database_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--db-host", default=None, help="Database host (default: DB_HOST or 127.0.0.1)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: DB_PORT or 5432)")
    parser.add_argument("--db-name", default=None, help="Database name (default: DB_DATABASE)")
    parser.add_argument("--db-user", default=None, help="Database user (default: DB_USER or postgres)")


def add_output_arguments(parser: argparse.ArgumentParser, *, confirm: bool = False) -> None:
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show detailed progress",
    )
    if confirm:
        parser.add_argument(
            "-y", "--yes",
            action="store_true",
            help="Skip confirmation prompt",
        )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def print_header(title: str) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)


def confirm(message: str, *, assume_yes: bool = False) -> bool:
    """Ask before a destructive step; ``assume_yes`` answers for the user."""

    if assume_yes:
        return True
    print(f"\n⚠️  WARNING: {message}")
    response = input("Are you sure you want to continue? (yes/no): ")
    if response.lower() not in ("yes", "y"):
        print("Cancelled.")
        return False
    return True


def connect_client(args: argparse.Namespace) -> Optional[DirectusRESTClient]:
    """Build and authenticate a client from parsed arguments.

    Prints the outcome and returns ``None`` when authentication fails.
    """

    print("\n🔐 Authenticating...")
    try:
        client = DirectusRESTClient.from_env(base_url=args.base_url)
        if args.token:
            client.token = args.token
        if args.email or args.password or not client.token:
            client.login(email=args.email, password=args.password)
        print(f"✓ Authenticated against {client.base_url}")
    except Exception as e:
        print(f"✗ Authentication failed: {e}", file=sys.stderr)
        return None
    return client


def database_settings(args: argparse.Namespace) -> DatabaseSettings:
    """Environment settings with any ``--db-*`` flags applied on top."""

    settings = DatabaseSettings.from_env()
    overrides = {
        "host": args.db_host,
        "port": args.db_port,
        "name": args.db_name,
        "user": args.db_user,
    }
    return replace(settings, **{key: value for key, value in overrides.items() if value is not None})
