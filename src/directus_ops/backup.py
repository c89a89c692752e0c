"""JSON backups of Directus collections and CSV exports for the Data Studio importer."""

from __future__ import annotations

import csv
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .directus_client import DirectusAPIError, DirectusRESTClient

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "|"


@dataclass(slots=True)
class BackupResult:
    collection: str
    records: int = 0
    path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def backup_filename(collection: str, timestamp: int) -> str:
    return f"backup-{collection}-{timestamp}.json"


def backup_collections(
    client: DirectusRESTClient,
    collections: Iterable[str],
    *,
    directory: str | Path,
    timestamp: int | None = None,
) -> List[BackupResult]:
    """Write every item of each collection to ``backup-<collection>-<ts>.json``.

    Files contain ``{"data": [...]}`` exactly as ``GET /items`` returns it.
    A failing collection is recorded in its result and the next one is
    processed.
    """

    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    stamp = timestamp if timestamp is not None else int(time.time() * 1000)

    results: List[BackupResult] = []
    for collection in collections:
        try:
            items = client.list_all_items(collection)
        except DirectusAPIError as exc:
            logger.warning("Backup of %s failed: %s", collection, exc)
            results.append(BackupResult(collection=collection, error=str(exc)))
            continue

        path = target / backup_filename(collection, stamp)
        with path.open("w", encoding="utf-8") as handle:
            json.dump({"data": items}, handle, ensure_ascii=False, indent=2)
        results.append(BackupResult(collection=collection, records=len(items), path=path))
    return results


def latest_backup(directory: str | Path, collection: str) -> Optional[Path]:
    """Return the newest backup file for ``collection`` or ``None``."""

    candidates: List[tuple[int, Path]] = []
    prefix = f"backup-{collection}-"
    for path in Path(directory).glob(f"{prefix}*.json"):
        stamp = path.stem[len(prefix):]
        if stamp.isdigit():
            candidates.append((int(stamp), path))
    if not candidates:
        return None
    return max(candidates)[1]


def load_backup(path: str | Path) -> List[Dict[str, Any]]:
    """Read a backup written by :func:`backup_collections` or a bare list."""

    with Path(path).open("r", encoding="utf-8") as handle:
        document = json.load(handle)
    if isinstance(document, Mapping):
        document = document.get("data")
    if not isinstance(document, list):
        raise ValueError(f"{path} does not contain a list of records.")
    return document


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return LIST_SEPARATOR.join(str(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False)
    return value


def write_csv(
    records: Sequence[Mapping[str, Any]],
    path: str | Path,
    fieldnames: Optional[Sequence[str]] = None,
) -> int:
    """Write ``records`` as CSV; returns the number of rows written.

    Lists are joined with ``|`` and mappings JSON-encoded so the Directus
    importer accepts them. Without ``fieldnames`` the columns are the
    union of record keys in first-seen order.
    """

    if fieldnames is None:
        seen: Dict[str, None] = {}
        for record in records:
            for key in record:
                seen.setdefault(key, None)
        fieldnames = list(seen)

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(fieldnames), extrasaction="ignore")
        writer.writeheader()
        for record in records:
            writer.writerow({key: _csv_value(record.get(key)) for key in fieldnames})
    return len(records)


def export_csv(
    client: DirectusRESTClient,
    collection: str,
    path: str | Path,
    *,
    fields: Optional[Sequence[str]] = None,
) -> int:
    items = client.list_all_items(collection, fields=fields)
    return write_csv(items, path, fieldnames=fields)
