"""Import bilingual content records into Directus collections."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from .backup import load_backup
from .collections import DEFAULT_LANGUAGE, LANGUAGE_FIELD, TRANSLATION_LANGUAGE, CollectionSpec
from .directus_client import DirectusAPIError, DirectusRESTClient
from .translations import save_translation

logger = logging.getLogger(__name__)

# Flat records carry ``<field>_id`` for Indonesian and ``<field>_en`` for English.
_SUFFIXES = {"_id": DEFAULT_LANGUAGE, "_en": TRANSLATION_LANGUAGE}

# Alias fields that Directus returns in backups but cannot write back.
_ALIAS_FIELDS = ("translations",)


@dataclass(slots=True)
class ImportReport:
    collection: str
    created: List[Any] = field(default_factory=list)
    updated: List[Any] = field(default_factory=list)
    failed: Dict[Any, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated) + len(self.failed)


def load_records(path: str | Path) -> List[Dict[str, Any]]:
    """Read records from a ``.json``, ``.yaml`` or ``.yml`` file.

    The document is either a list of records or ``{"data": [...]}``.
    """

    file_path = Path(path)
    suffix = file_path.suffix.lower()
    with file_path.open("r", encoding="utf-8") as handle:
        if suffix == ".json":
            document = json.load(handle)
        elif suffix in {".yaml", ".yml"}:
            document = yaml.safe_load(handle)
        else:
            raise ValueError(f"Unsupported data file type: {file_path.suffix or file_path.name}")

    if isinstance(document, Mapping):
        document = document.get("data")
    if not isinstance(document, list):
        raise ValueError(f"{file_path} must contain a list of records.")
    for index, record in enumerate(document, start=1):
        if not isinstance(record, Mapping):
            raise ValueError(f"Record {index} in {file_path} is not a mapping.")
    return [dict(record) for record in document]


def split_bilingual(
    record: Mapping[str, Any],
    spec: CollectionSpec,
) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Any]]]:
    """Split a record into the main payload and per-language translations.

    Two shapes are understood. Nested records carry a ``translations``
    mapping keyed by language code; flat records use ``name_id`` /
    ``name_en`` style keys for each translatable field. The Indonesian
    values go into the main payload, every other language into the
    returned translations mapping.
    """

    main: Dict[str, Any] = {}
    translations: Dict[str, Dict[str, Any]] = {}
    translatable = set(spec.translatable_fields)

    nested = record.get("translations")
    if isinstance(nested, Mapping):
        for language, values in nested.items():
            if not isinstance(values, Mapping):
                continue
            target = main if language == DEFAULT_LANGUAGE else translations.setdefault(language, {})
            target.update(values)

    for key, value in record.items():
        if key == "translations":
            continue
        base, language = _split_suffix(key, translatable)
        if language is None:
            main.setdefault(key, value)
        elif language == DEFAULT_LANGUAGE:
            main[base] = value
        else:
            translations.setdefault(language, {})[base] = value

    return main, {language: values for language, values in translations.items() if values}


def _split_suffix(key: str, translatable: Iterable[str]) -> Tuple[str, Optional[str]]:
    for suffix, language in _SUFFIXES.items():
        if key.endswith(suffix) and key[: -len(suffix)] in translatable:
            return key[: -len(suffix)], language
    return key, None


def _map_location_ids(client: DirectusRESTClient) -> Dict[str, Any]:
    rows = client.list_all_items("map_locations", fields=["id", "slug"])
    return {row["slug"]: row["id"] for row in rows if row.get("slug")}


def import_records(
    client: DirectusRESTClient,
    spec: CollectionSpec,
    records: Iterable[Mapping[str, Any]],
    *,
    upsert: bool = True,
    link_map_locations: bool = True,
    language_field: str = LANGUAGE_FIELD,
) -> ImportReport:
    """Create or update main rows by ``slug`` and store their translations.

    Records of collections that reference ``map_locations`` are linked to
    the location with the same slug unless they name ``map_location_id``.
    Each failing record is reported and the import continues.
    """

    report = ImportReport(collection=spec.name)
    locations: Dict[str, Any] = {}
    if link_map_locations and spec.links_map_location:
        locations = _map_location_ids(client)

    for index, record in enumerate(records, start=1):
        main, translations = split_bilingual(record, spec)
        slug = main.get("slug")
        label = slug or f"#{index}"
        if not slug:
            report.failed[label] = "record has no slug"
            continue

        if locations and main.get("map_location_id") is None and slug in locations:
            main["map_location_id"] = locations[slug]

        try:
            existing = client.find_first_by_field(spec.name, "slug", slug, fields=["id"]) if upsert else None
            if existing:
                item_id = existing["id"]
                client.update_item(spec.name, item_id, main)
                report.updated.append(slug)
            else:
                created = client.create_item(spec.name, main)
                item_id = created["id"]
                report.created.append(slug)

            for language, values in translations.items():
                save_translation(
                    client,
                    spec.name,
                    item_id,
                    values,
                    language,
                    language_field=language_field,
                )
        except DirectusAPIError as exc:
            report.failed[label] = str(exc)
            logger.warning("Import of %s/%s failed: %s", spec.name, label, exc)
    return report


def restore_backup(
    client: DirectusRESTClient,
    collection: str,
    path: str | Path,
) -> ImportReport:
    """Write the records of a backup file back into ``collection``.

    Records keep their primary key: existing ids are updated, missing ones
    created. Restore parents before their translations collection.
    """

    report = ImportReport(collection=collection)
    for index, record in enumerate(load_backup(path), start=1):
        payload = {key: value for key, value in record.items() if key not in _ALIAS_FIELDS}
        item_id = payload.get("id")
        label = item_id if item_id is not None else f"#{index}"
        try:
            existing = (
                client.find_first_by_field(collection, "id", item_id, fields=["id"])
                if item_id is not None
                else None
            )
            if existing:
                update = {key: value for key, value in payload.items() if key != "id"}
                client.update_item(collection, item_id, update)
                report.updated.append(item_id)
            else:
                created = client.create_item(collection, payload)
                report.created.append(created.get("id", item_id))
        except DirectusAPIError as exc:
            report.failed[label] = str(exc)
            logger.warning("Restore of %s/%s failed: %s", collection, label, exc)
    return report
