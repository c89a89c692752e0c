#!/usr/bin/env python
"""Fill English translation rows with LibreTranslate drafts."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from directus_ops.cli import add_api_arguments, add_output_arguments, configure_logging, connect_client, print_header
from directus_ops.collections import LANGUAGE_FIELD, all_collection_names, resolve_collections
from directus_ops.config import TranslatorSettings
from directus_ops.translations import (
    LibreTranslateClient,
    create_auto_translate_flow,
    handle_flow_event,
    translate_missing,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Translate Indonesian content into English translation rows.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Translate every item that has no English row yet
  python translate_content.py missing

  # Re-translate one collection, replacing existing English rows
  python translate_content.py missing -c agenda_events --overwrite

  # Create Directus Flows that call a translation webhook
  python translate_content.py flows --webhook-url http://127.0.0.1:8001/webhook/auto-translate

  # Process a Flow request body saved to a file (or - for stdin)
  python translate_content.py event body.json
        """,
    )
    common = argparse.ArgumentParser(add_help=False)
    add_api_arguments(common)
    common.add_argument(
        "--translator-url",
        default=None,
        help="LibreTranslate URL (default: LIBRETRANSLATE_URL env var or http://localhost:5000)",
    )
    common.add_argument("--language-field", default=LANGUAGE_FIELD)
    add_output_arguments(common)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("missing", parents=[common], help="Translate items without an English row")
    p.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(),
        help="Collection (repeatable; default: all content collections)",
    )
    p.add_argument("--overwrite", action="store_true", help="Re-translate existing English rows")

    p = sub.add_parser("flows", parents=[common], help="Create auto-translate Flows")
    p.add_argument(
        "-c", "--collection",
        dest="collections",
        action="append",
        choices=all_collection_names(),
        help="Collection (repeatable; default: all content collections)",
    )
    p.add_argument("--webhook-url", required=True, help="URL the Flow posts item events to")
    p.add_argument("--secret", default=None, help="Value sent in the X-Webhook-Secret header")

    p = sub.add_parser("event", parents=[common], help="Translate the item of one Flow request body")
    p.add_argument("body", help="File holding the JSON body, or - for stdin")

    return parser


def build_translator(args: argparse.Namespace) -> LibreTranslateClient:
    settings = TranslatorSettings.from_env()
    return LibreTranslateClient(
        args.translator_url or settings.url,
        api_key=settings.api_key,
        timeout=settings.timeout,
    )


def run_missing(args: argparse.Namespace, client, translator: LibreTranslateClient) -> int:
    failures = 0
    for spec in resolve_collections(args.collections):
        print(f"\n🌍 {spec.name}")
        report = translate_missing(
            client,
            translator,
            spec,
            overwrite=args.overwrite,
            language_field=args.language_field,
        )
        print(f"  ✓ {len(report.translated)} translated, {len(report.skipped)} skipped")
        if args.verbose and report.translated:
            print(f"     ids: {', '.join(str(item) for item in report.translated)}")
        for item_id, message in report.failed.items():
            failures += 1
            print(f"  ✗ {spec.name}/{item_id}: {message}", file=sys.stderr)
    return 1 if failures else 0


def run_flows(args: argparse.Namespace, client) -> int:
    for spec in resolve_collections(args.collections):
        flow = create_auto_translate_flow(client, spec, args.webhook_url, secret=args.secret)
        print(f"  ✓ {flow.get('name')} ({flow.get('id')})")
    return 0


def run_event(args: argparse.Namespace, client, translator: LibreTranslateClient) -> int:
    body = sys.stdin.read() if args.body == "-" else Path(args.body).read_text(encoding="utf-8")
    values = handle_flow_event(client, translator, body, language_field=args.language_field)
    if values is None:
        print("  ⚠ No translatable fields for this collection")
    else:
        print(f"  ✓ Saved {len(values)} translated field(s)")
        if args.verbose:
            for name, value in values.items():
                print(f"     {name}: {value}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    print_header(f"Auto-translate: {args.command}")
    translator = build_translator(args)
    if args.command != "flows" and not translator.is_available():
        print(f"✗ LibreTranslate is not reachable at {translator.base_url}", file=sys.stderr)
        return 1

    client = connect_client(args)
    if client is None:
        return 1

    try:
        if args.command == "missing":
            return run_missing(args, client, translator)
        if args.command == "flows":
            return run_flows(args, client)
        return run_event(args, client, translator)
    except Exception as e:
        print(f"\n✗ Translation failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
