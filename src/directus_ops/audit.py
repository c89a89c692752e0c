"""Read-only diagnostics for the content schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .collections import CollectionSpec
from .database import list_tables
from .directus_client import DirectusAPIError, DirectusRESTClient

logger = logging.getLogger(__name__)

_INTEGER_TYPES = {"integer", "bigint", "smallint"}


@dataclass(slots=True)
class CollectionAudit:
    collection: str
    items: int = 0
    translations: int = 0
    fields: List[Dict[str, Any]] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    structure: str = "unknown"

    @property
    def ok(self) -> bool:
        return not self.issues


def _find(fields: Iterable[Mapping[str, Any]], name: str) -> Optional[Mapping[str, Any]]:
    for item in fields:
        if item.get("field") == name:
            return item
    return None


def field_structure(fields: Sequence[Mapping[str, Any]], spec: CollectionSpec) -> str:
    """Classify how a collection stores its bilingual content.

    ``"translations"`` means plain fields plus a translations alias,
    ``"flat"`` means ``<field>_id``/``<field>_en`` column pairs and
    ``"mixed"`` means both are present.
    """

    names = {item.get("field") for item in fields}
    flat = any(f"{name}_en" in names for name in spec.translatable_fields)
    alias = "translations" in names
    if flat and alias:
        return "mixed"
    if flat:
        return "flat"
    if alias:
        return "translations"
    return "unknown"


def describe_field(item: Mapping[str, Any]) -> str:
    schema = item.get("schema") or {}
    kind = item.get("type") or schema.get("data_type") or "alias"
    flags = []
    if schema.get("is_primary_key"):
        flags.append("PK")
    if schema.get("is_unique"):
        flags.append("UNIQUE")
    if schema.get("is_nullable") is False:
        flags.append("required")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return f"{item.get('field')}: {kind}{suffix}"


def audit_collection(client: DirectusRESTClient, spec: CollectionSpec) -> CollectionAudit:
    """Count items and translations and check the expected field shape."""

    audit = CollectionAudit(collection=spec.name)
    try:
        audit.fields = client.list_fields(spec.name)
        audit.items = client.count_items(spec.name)
    except DirectusAPIError as exc:
        # Directus answers 403 for collections that do not exist.
        logger.debug("Reading %s failed: %s", spec.name, exc)
        audit.issues.append(f"Cannot read '{spec.name}' ({exc.status_code})")
        return audit

    try:
        audit.translations = client.count_items(spec.translations)
    except DirectusAPIError as exc:
        logger.debug("Counting %s failed: %s", spec.translations, exc)
        audit.issues.append(f"Cannot read '{spec.translations}' ({exc.status_code})")

    id_field = _find(audit.fields, "id")
    if id_field is not None:
        data_type = (id_field.get("schema") or {}).get("data_type")
        if data_type not in _INTEGER_TYPES:
            audit.issues.append(f"ID is {data_type}, should be INTEGER")

    slug_field = _find(audit.fields, "slug")
    if slug_field is None:
        audit.issues.append("Missing 'slug' field")
    elif not (slug_field.get("schema") or {}).get("is_unique"):
        audit.issues.append("'slug' should be UNIQUE")

    if _find(audit.fields, "translations") is None:
        audit.issues.append("Missing 'translations' relation")

    for name in spec.required_fields:
        if _find(audit.fields, name) is None:
            audit.issues.append(f"Missing required field: '{name}'")

    audit.structure = field_structure(audit.fields, spec)
    return audit


def audit_schema(client: DirectusRESTClient, specs: Iterable[CollectionSpec]) -> List[CollectionAudit]:
    return [audit_collection(client, spec) for spec in specs]


def format_summary(audits: Sequence[CollectionAudit]) -> str:
    """Render the per-collection counts as a fixed-width table."""

    header = f"{'Collection':<24}{'Items':>7}{'Trans':>7}{'Fields':>8}{'Issues':>8}"
    lines = [header, "-" * len(header)]
    totals = [0, 0, 0]
    for audit in audits:
        lines.append(
            f"{audit.collection:<24}{audit.items:>7}{audit.translations:>7}"
            f"{len(audit.fields):>8}{len(audit.issues):>8}"
        )
        totals[0] += audit.items
        totals[1] += audit.translations
        totals[2] += len(audit.issues)
    lines.append("-" * len(header))
    lines.append(f"{'TOTAL':<24}{totals[0]:>7}{totals[1]:>7}{'':>8}{totals[2]:>8}")
    return "\n".join(lines)


def check_server(client: DirectusRESTClient) -> Dict[str, Any]:
    """Return version and project details from ``/server/info``."""

    info = client.server_info()
    project = info.get("project") or {}
    return {
        "version": info.get("version") or (info.get("directus") or {}).get("version"),
        "project": project.get("project_name"),
        "reachable": client.ping(),
    }


def classify_collections(names: Iterable[str]) -> Dict[str, List[str]]:
    """Group collection or table names into system, translations and content."""

    groups: Dict[str, List[str]] = {"system": [], "translations": [], "content": []}
    for name in names:
        if name.startswith("directus_"):
            groups["system"].append(name)
        elif name.endswith("_translations") or name in {"languages", "directus_languages"}:
            groups["translations"].append(name)
        else:
            groups["content"].append(name)
    return groups


def describe_tables(conn: Any, schema: str = "public") -> Dict[str, List[str]]:
    return classify_collections(list_tables(conn, schema))
