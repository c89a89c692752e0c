"""Field metadata helpers: layouts, optional fields and the translations alias."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Sequence

import yaml

from .collections import DEFAULT_LANGUAGE
from .database import column_exists, execute, fetch_one
from .directus_client import DirectusAPIError, DirectusRESTClient

logger = logging.getLogger(__name__)

CONTACT_FIELDS: tuple[str, ...] = (
    "email",
    "phone",
    "whatsapp",
    "website",
    "instagram",
    "facebook",
    "opening_hours",
    "ticket_price",
    "facilities",
    "subcategory",
)

_META_KEYS = ("interface", "width", "hidden", "readonly", "sort", "group", "options", "note", "required")


@dataclass(slots=True)
class FieldSetting:
    """Presentation settings for one field in the Data Studio."""

    field: str
    interface: str | None = None
    width: str | None = None
    hidden: bool | None = None
    readonly: bool | None = None
    sort: int | None = None
    group: str | None = None
    options: Dict[str, Any] | None = None
    note: str | None = None
    required: bool | None = None

    def meta(self) -> Dict[str, Any]:
        """Return only the settings that were given, as a ``meta`` payload."""

        return {key: getattr(self, key) for key in _META_KEYS if getattr(self, key) is not None}


@dataclass(slots=True)
class FieldLayout:
    """Field settings for one collection, in declaration order."""

    collection: str
    fields: Dict[str, FieldSetting] = field(default_factory=dict)

    def add(self, setting: FieldSetting) -> None:
        self.fields[setting.field] = setting


@dataclass(slots=True)
class LayoutResult:
    collection: str
    updated: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def load_layout(path: str | Path) -> Dict[str, FieldLayout]:
    """Load field layouts from a YAML file.

    The file holds a ``fields`` list; each entry names the ``collections``
    it applies to, the ``field`` and any meta keys::

        fields:
          - collections: [umkm_lokal, spot_nongkrong]
            field: latitude
            interface: input
            width: half

    Raises
    ------
    ValueError
        If the document or an entry is malformed.
    """

    file_path = Path(path)
    with file_path.open("r", encoding="utf-8") as handle:
        document = yaml.safe_load(handle) or {}

    if not isinstance(document, Mapping) or not isinstance(document.get("fields"), list):
        raise ValueError(f"{file_path} must contain a 'fields' list.")

    layouts: Dict[str, FieldLayout] = {}
    for index, entry in enumerate(document["fields"], start=1):
        if not isinstance(entry, Mapping):
            raise ValueError(f"Entry {index} in {file_path} must be a mapping.")
        collections = entry.get("collections")
        field_name = entry.get("field")
        if isinstance(collections, str):
            collections = [collections]
        if not collections or not field_name:
            raise ValueError(f"Entry {index} in {file_path} needs 'collections' and 'field'.")

        unknown = set(entry) - set(_META_KEYS) - {"collections", "field"}
        if unknown:
            raise ValueError(f"Entry {index} in {file_path} has unknown keys: {sorted(unknown)}")

        settings = {key: entry[key] for key in _META_KEYS if key in entry}
        for collection in collections:
            layout = layouts.setdefault(collection, FieldLayout(collection=collection))
            layout.add(FieldSetting(field=field_name, **settings))
    return layouts


def apply_layout(client: DirectusRESTClient, layout: FieldLayout) -> LayoutResult:
    """PATCH each field's meta; failures are collected, not raised."""

    result = LayoutResult(collection=layout.collection)
    for name, setting in layout.fields.items():
        try:
            client.update_field(layout.collection, name, {"meta": setting.meta()})
        except DirectusAPIError as exc:
            if exc.status_code == 404:
                result.missing.append(name)
            else:
                result.failed[name] = str(exc)
                logger.warning("Could not update %s.%s: %s", layout.collection, name, exc)
            continue
        result.updated.append(name)
    return result


def apply_layout_db(conn: Any, layout: FieldLayout) -> LayoutResult:
    """Write the layout straight into ``directus_fields``.

    Fields without a database column are reported as missing. Rows are
    inserted when Directus has no metadata for the column yet.
    """

    result = LayoutResult(collection=layout.collection)
    for name, setting in layout.fields.items():
        if not column_exists(conn, layout.collection, name):
            result.missing.append(name)
            continue
        options = json.dumps(setting.options) if setting.options is not None else None
        existing = fetch_one(
            conn,
            "SELECT id FROM directus_fields WHERE collection = %s AND field = %s",
            (layout.collection, name),
        )
        if existing is None:
            execute(
                conn,
                "INSERT INTO directus_fields "
                "(collection, field, interface, width, hidden, readonly, options, sort) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
                (
                    layout.collection,
                    name,
                    setting.interface,
                    setting.width or "full",
                    bool(setting.hidden),
                    bool(setting.readonly),
                    options,
                    setting.sort,
                ),
            )
        else:
            execute(
                conn,
                "UPDATE directus_fields SET interface = COALESCE(%s, interface), "
                "width = COALESCE(%s, width), hidden = COALESCE(%s, hidden), "
                "readonly = COALESCE(%s, readonly), "
                "options = COALESCE(%s, options), sort = COALESCE(%s, sort) "
                "WHERE id = %s",
                (
                    setting.interface,
                    setting.width,
                    setting.hidden,
                    setting.readonly,
                    options,
                    setting.sort,
                    existing["id"],
                ),
            )
        result.updated.append(name)
    return result


def ensure_fields(
    client: DirectusRESTClient,
    collection: str,
    definitions: Iterable[Mapping[str, Any]],
) -> List[str]:
    """Create fields that are missing from ``collection``.

    ``definitions`` use the ``POST /fields/{collection}`` shape
    (``field``, ``type``, ``meta``, ``schema``). Returns the created names.
    """

    existing = {item.get("field") for item in client.list_fields(collection)}
    created: List[str] = []
    for definition in definitions:
        name = definition.get("field")
        if not name:
            raise ValueError("Field definitions must include a 'field' name.")
        if name in existing:
            logger.info("%s.%s already exists", collection, name)
            continue
        try:
            client.create_field(collection, definition)
        except DirectusAPIError as exc:
            if exc.already_exists:
                logger.info("%s.%s already exists", collection, name)
                continue
            raise
        created.append(name)
    return created


def make_fields_optional(
    client: DirectusRESTClient,
    collection: str,
    fields: Sequence[str] = CONTACT_FIELDS,
) -> LayoutResult:
    """Drop the required flag and NOT NULL constraint from ``fields``."""

    result = LayoutResult(collection=collection)
    for name in fields:
        try:
            client.update_field(
                collection,
                name,
                {"schema": {"is_nullable": True}, "meta": {"required": False}},
            )
        except DirectusAPIError as exc:
            if exc.status_code == 404:
                result.missing.append(name)
            else:
                result.failed[name] = str(exc)
            continue
        result.updated.append(name)
    return result


def remove_validation(client: DirectusRESTClient, collection: str, field_name: str) -> Dict[str, Any]:
    return client.update_field(
        collection,
        field_name,
        {
            "schema": {"is_nullable": True},
            "meta": {"required": False, "validation": None, "validation_message": None},
        },
    )


def fix_id_field_meta(
    client: DirectusRESTClient,
    collection: str,
    *,
    editable: bool = False,
) -> Dict[str, Any]:
    """Reset the ``id`` field's interface flags.

    Integer ids are hidden and read-only. ``editable`` is for
    string primary keys that editors type themselves.
    """

    meta: Dict[str, Any] = {
        "interface": "input",
        "special": None,
        "readonly": not editable,
        "hidden": not editable,
        "required": editable,
    }
    if editable:
        meta["options"] = {"iconLeft": "vpn_key", "slug": True}
    return client.update_field(collection, "id", {"meta": meta})


def translations_field_meta(
    *,
    language_field: str = "code",
    default_language: str = DEFAULT_LANGUAGE,
) -> MutableMapping[str, Any]:
    return {
        "interface": "translations",
        "special": ["translations"],
        "options": {
            "languageField": language_field,
            "defaultLanguage": default_language,
            "userLanguage": True,
        },
        "display": "translations",
        "display_options": {"template": "{{name}}", "languageField": language_field},
    }


def configure_translations_field(
    client: DirectusRESTClient,
    collection: str,
    *,
    language_field: str = "code",
    default_language: str = DEFAULT_LANGUAGE,
) -> Dict[str, Any]:
    """Create or update the ``translations`` alias field of ``collection``."""

    meta = translations_field_meta(language_field=language_field, default_language=default_language)
    try:
        client.get_field(collection, "translations")
    except DirectusAPIError as exc:
        if exc.status_code not in (403, 404):
            raise
        return client.create_field(
            collection,
            {"field": "translations", "type": "alias", "meta": dict(meta)},
        )
    return client.update_field(collection, "translations", {"meta": dict(meta)})
