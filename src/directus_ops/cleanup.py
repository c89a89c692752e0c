"""Remove content items and obsolete collections from Directus."""

from __future__ import annotations

import sys
from typing import Any, Dict, Iterable, List, Sequence

import requests

from .collections import CONTENT_COLLECTIONS, CollectionSpec, resolve_collections
from .directus_client import DirectusAPIError, DirectusRESTClient


def _label(item: Dict[str, Any]) -> Any:
    return item.get("slug") or item.get("title") or item.get("name") or item.get("id")


def delete_all_items(
    client: DirectusRESTClient,
    collection: str,
    *,
    batch_size: int = 100,
    verbose: bool = False,
) -> int:
    """Delete all items from a collection.

    Parameters
    ----------
    client:
        Authenticated DirectusRESTClient instance.
    collection:
        Name of the collection to clean.
    batch_size:
        Number of items to fetch per batch. Default: 100.
    verbose:
        If True, print one line per deleted item.

    Returns
    -------
    int
        Number of items deleted.
    """
    total_deleted = 0

    while True:
        try:
            items = client.list_items(collection, params={"limit": batch_size})
        except (DirectusAPIError, requests.RequestException) as e:
            print(f"  ✗ Error fetching {collection}: {e}", file=sys.stderr)
            break

        if not items:
            break

        deleted_in_batch = 0
        for item in items:
            item_id = item.get("id")
            if item_id is None:
                if verbose:
                    print(f"  ⚠ Skipping item without ID in {collection}")
                continue

            try:
                client.delete_item(collection, item_id)
            except (DirectusAPIError, requests.RequestException) as e:
                print(f"  ✗ Error deleting {collection}/{item_id} ({_label(item)}): {e}", file=sys.stderr)
                continue
            total_deleted += 1
            deleted_in_batch += 1
            if verbose:
                print(f"  ✓ Deleted {collection}/{item_id}: {_label(item)}")

        # Stop on a batch where nothing could be deleted
        if deleted_in_batch == 0 or len(items) < batch_size:
            break

    return total_deleted


def clean_collections(
    client: DirectusRESTClient,
    collections: Sequence[str] | None = None,
    *,
    include_translations: bool = True,
    batch_size: int = 100,
    verbose: bool = False,
) -> Dict[str, int]:
    """Empty the given content collections (all of them by default).

    Translation rows go first, then the main collections in reverse
    registry order so items that reference ``map_locations`` are removed
    before the locations themselves.

    Returns
    -------
    dict
        Number of deleted items per collection name.
    """
    specs: List[CollectionSpec] = resolve_collections(collections)
    order = {spec.name: index for index, spec in enumerate(CONTENT_COLLECTIONS)}
    specs.sort(key=lambda spec: order[spec.name], reverse=True)

    results: Dict[str, int] = {}
    if include_translations:
        for spec in specs:
            print(f"\n🗑️  Cleaning {spec.translations}...")
            results[spec.translations] = delete_all_items(
                client, spec.translations, batch_size=batch_size, verbose=verbose
            )
            print(f"✓ Deleted {results[spec.translations]} items")

    for spec in specs:
        print(f"\n🗑️  Cleaning {spec.name}...")
        results[spec.name] = delete_all_items(
            client, spec.name, batch_size=batch_size, verbose=verbose
        )
        print(f"✓ Deleted {results[spec.name]} items")

    return results


def delete_collections(client: DirectusRESTClient, names: Iterable[str]) -> List[str]:
    """Drop whole collections; names that do not exist are skipped.

    Returns the names that were deleted.
    """
    existing = {item.get("collection") for item in client.list_collections()}
    deleted: List[str] = []
    for name in names:
        if name not in existing:
            print(f"  ⚠ {name} does not exist, skipping")
            continue
        client.delete_collection(name)
        deleted.append(name)
        print(f"  ✓ Deleted collection {name}")
    return deleted
