"""Machine translation of Indonesian content into English translation rows.

Translations are produced by a LibreTranslate server and stored in
``<collection>_translations`` as drafts for editors to review.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import requests

from .collections import (
    LANGUAGE_FIELD,
    TRANSLATION_LANGUAGE,
    CollectionSpec,
    get_collection_spec,
)
from .config import TranslatorSettings
from .directus_client import DirectusAPIError, DirectusRESTClient

logger = logging.getLogger(__name__)


class TranslationError(RuntimeError):
    """Raised when the translation service fails or answers unexpectedly."""


class LibreTranslateClient:
    """Minimal client for the LibreTranslate ``/translate`` endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls, *, session: Optional[requests.Session] = None) -> "LibreTranslateClient":
        settings = TranslatorSettings.from_env()
        return cls(settings.url, api_key=settings.api_key, timeout=settings.timeout, session=session)

    def translate(self, text: str | None, *, source: str = "id", target: str = "en") -> str:
        """Translate ``text``; blank input is returned unchanged."""

        if text is None or not str(text).strip():
            return text or ""

        payload: Dict[str, Any] = {"q": text, "source": source, "target": target, "format": "text"}
        if self.api_key:
            payload["api_key"] = self.api_key

        response = self.session.post(
            f"{self.base_url}/translate",
            json=payload,
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise TranslationError(f"LibreTranslate returned HTTP {response.status_code}: {response.text}")
        try:
            data = response.json()
        except ValueError as exc:
            raise TranslationError("LibreTranslate returned a non-JSON response.") from exc
        translated = data.get("translatedText") if isinstance(data, Mapping) else None
        if translated is None:
            raise TranslationError("LibreTranslate response is missing 'translatedText'.")
        return translated

    def is_available(self) -> bool:
        try:
            return bool(self.translate("Selamat datang"))
        except (requests.RequestException, TranslationError) as exc:
            logger.warning("LibreTranslate at %s is not available: %s", self.base_url, exc)
            return False


@dataclass(slots=True)
class TranslationReport:
    collection: str
    translated: List[Any] = field(default_factory=list)
    skipped: List[Any] = field(default_factory=list)
    failed: Dict[Any, str] = field(default_factory=dict)


@dataclass(slots=True)
class FlowEvent:
    """Item event as delivered by a Directus Flow request operation."""

    collection: str
    key: Any
    payload: Dict[str, Any]
    event: Optional[str] = None


# ---------------------------------------------------------------------------
# Translation rows
# ---------------------------------------------------------------------------
def find_translation(
    client: DirectusRESTClient,
    collection: str,
    item_id: Any,
    language: str = TRANSLATION_LANGUAGE,
    *,
    language_field: str = LANGUAGE_FIELD,
) -> Optional[Dict[str, Any]]:
    """Return the translation row of ``item_id`` in ``language`` if any."""

    spec = get_collection_spec(collection)
    items = client.list_items(
        spec.translations,
        params={
            f"filter[{spec.foreign_key}][_eq]": item_id,
            f"filter[{language_field}][_eq]": language,
            "limit": 1,
        },
    )
    return items[0] if items else None


def save_translation(
    client: DirectusRESTClient,
    collection: str,
    item_id: Any,
    values: Mapping[str, Any],
    language: str = TRANSLATION_LANGUAGE,
    *,
    language_field: str = LANGUAGE_FIELD,
    existing: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Create the translation row or update the one that exists."""

    spec = get_collection_spec(collection)
    if existing is None:
        existing = find_translation(client, collection, item_id, language, language_field=language_field)
    if existing:
        return client.update_item(spec.translations, existing["id"], dict(values))

    payload = {spec.foreign_key: item_id, language_field: language}
    payload.update(values)
    return client.create_item(spec.translations, payload)


def translate_fields(
    translator: LibreTranslateClient,
    spec: CollectionSpec,
    source: Mapping[str, Any],
) -> Dict[str, str]:
    """Translate the non-empty translatable fields present in ``source``."""

    translated: Dict[str, str] = {}
    for name in spec.translatable_fields:
        value = source.get(name)
        if isinstance(value, str) and value.strip():
            translated[name] = translator.translate(value)
    return translated


def translate_item(
    client: DirectusRESTClient,
    translator: LibreTranslateClient,
    spec: CollectionSpec,
    item: Mapping[str, Any],
    *,
    language_field: str = LANGUAGE_FIELD,
    existing: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    """Translate one item and store the English row; returns the values saved."""

    item_id = item.get("id")
    if item_id is None:
        raise ValueError(f"{spec.name} item has no 'id'.")
    values = translate_fields(translator, spec, item)
    if not values:
        return {}
    save_translation(
        client,
        spec.name,
        item_id,
        values,
        language_field=language_field,
        existing=existing,
    )
    return values


def translate_missing(
    client: DirectusRESTClient,
    translator: LibreTranslateClient,
    spec: CollectionSpec,
    *,
    overwrite: bool = False,
    language_field: str = LANGUAGE_FIELD,
) -> TranslationReport:
    """Translate every item that has no English row yet.

    With ``overwrite`` existing English rows are re-translated as well.
    """

    report = TranslationReport(collection=spec.name)
    items = client.list_all_items(spec.name, fields=["id", *spec.translatable_fields])
    rows = client.list_all_items(
        spec.translations,
        fields=["id", spec.foreign_key],
        params={f"filter[{language_field}][_eq]": TRANSLATION_LANGUAGE},
    )
    existing_by_item = {row.get(spec.foreign_key): row for row in rows}

    for item in items:
        item_id = item.get("id")
        existing = existing_by_item.get(item_id)
        if existing and not overwrite:
            report.skipped.append(item_id)
            continue
        try:
            values = translate_item(
                client,
                translator,
                spec,
                item,
                language_field=language_field,
                existing=existing or {},
            )
        except (DirectusAPIError, TranslationError, requests.RequestException) as exc:
            report.failed[item_id] = str(exc)
            logger.warning("Translating %s/%s failed: %s", spec.name, item_id, exc)
            continue
        if values:
            report.translated.append(item_id)
        else:
            report.skipped.append(item_id)
    return report


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------
def flow_name(collection: str) -> str:
    return f"Auto-Translate {collection}"


def create_auto_translate_flow(
    client: DirectusRESTClient,
    spec: CollectionSpec,
    webhook_url: str,
    *,
    secret: str | None = None,
) -> Dict[str, Any]:
    """Create a Flow that posts item create/update events to ``webhook_url``.

    An existing flow with the same name is returned untouched.
    """

    name = flow_name(spec.name)
    existing = client.list_flows(params={"filter[name][_eq]": name, "limit": 1})
    if existing:
        logger.info("Flow %r already exists", name)
        return existing[0]

    flow = client.create_flow(
        {
            "name": name,
            "icon": "translate",
            "color": "#2ECDA7",
            "description": f"Translate {spec.name} from Indonesian to English with LibreTranslate",
            "status": "active",
            "trigger": "event",
            "accountability": "all",
            "options": {
                "type": "action",
                "scope": ["items.create", "items.update"],
                "collections": [spec.name],
            },
        }
    )

    headers = [{"header": "Content-Type", "value": "application/json"}]
    if secret:
        headers.append({"header": "X-Webhook-Secret", "value": secret})
    operation = client.create_operation(
        {
            "flow": flow["id"],
            "name": "Send to translator",
            "key": "webhook_trigger",
            "type": "request",
            "position_x": 19,
            "position_y": 1,
            "options": {
                "method": "POST",
                "url": webhook_url,
                "headers": headers,
                "body": json.dumps(
                    {
                        "collection": "{{$trigger.collection}}",
                        "key": "{{$trigger.key}}",
                        "payload": "{{$trigger.payload}}",
                        "event": "{{$trigger.event}}",
                    }
                ),
            },
        }
    )
    return client.update_flow(flow["id"], {"operation": operation["id"]})


def _decode_body(body: Any) -> Any:
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    if not isinstance(body, str):
        return body
    try:
        decoded = json.loads(body)
    except ValueError as exc:
        raise ValueError("Invalid JSON body") from exc
    # Flows may JSON-encode the body twice.
    if isinstance(decoded, str):
        try:
            decoded = json.loads(decoded)
        except ValueError as exc:
            raise ValueError("Invalid JSON body") from exc
    return decoded


def parse_flow_payload(body: Any) -> FlowEvent:
    """Normalise a Flow request body into a :class:`FlowEvent`.

    Accepts ``{"$trigger": {...}}`` as well as the flat
    ``{"collection", "key", "payload"}`` shape, either as a mapping or as
    (possibly double-encoded) JSON text.
    """

    data = _decode_body(body)
    if not isinstance(data, Mapping):
        raise ValueError("Unknown body format")

    source = data.get("$trigger") if isinstance(data.get("$trigger"), Mapping) else data
    collection = source.get("collection")
    if not collection:
        raise ValueError("Unknown body format")

    key = source.get("key")
    if key is None and source.get("keys"):
        key = source["keys"][0]

    payload = source.get("payload") or {}
    if isinstance(payload, str):
        payload = _decode_body(payload)
    if not isinstance(payload, Mapping):
        raise ValueError("Flow payload must be an object")

    return FlowEvent(collection=collection, key=key, payload=dict(payload), event=source.get("event"))


def handle_flow_event(
    client: DirectusRESTClient,
    translator: LibreTranslateClient,
    body: Any,
    *,
    language_field: str = LANGUAGE_FIELD,
) -> Optional[Dict[str, str]]:
    """Translate the item described by a Flow body.

    Returns ``None`` for collections without translatable fields.
    """

    event = parse_flow_payload(body)
    try:
        spec = get_collection_spec(event.collection)
    except KeyError:
        logger.info("No translatable fields for %s", event.collection)
        return None
    if event.key is None:
        raise ValueError("Flow event has no item key")

    values = translate_fields(translator, spec, event.payload)
    if values:
        save_translation(client, spec.name, event.key, values, language_field=language_field)
    return values
