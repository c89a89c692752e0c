from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from directus_ops.collections import get_collection_spec
from directus_ops.directus_client import DirectusAPIError, DirectusRESTClient
from directus_ops.translations import (
    LibreTranslateClient,
    TranslationError,
    create_auto_translate_flow,
    find_translation,
    handle_flow_event,
    parse_flow_payload,
    save_translation,
    translate_fields,
    translate_missing,
)


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=DirectusRESTClient)


@pytest.fixture
def translator() -> MagicMock:
    mock = MagicMock(spec=LibreTranslateClient)
    mock.translate.side_effect = lambda text, **kwargs: f"EN:{text}"
    return mock


# ---------------------------------------------------------------------------
# LibreTranslate client
# ---------------------------------------------------------------------------
def test_translate_posts_payload(session) -> None:
    session.add("POST", "translate", {"translatedText": "Welcome"})
    translator = LibreTranslateClient("http://localhost:5000/", api_key="k", timeout=10, session=session)

    assert translator.translate("Selamat datang") == "Welcome"
    call = session.calls[0]
    assert call["url"] == "http://localhost:5000/translate"
    assert call["json"] == {
        "q": "Selamat datang",
        "source": "id",
        "target": "en",
        "format": "text",
        "api_key": "k",
    }
    assert call["timeout"] == 10


def test_translate_returns_blank_text_unchanged(session) -> None:
    translator = LibreTranslateClient("http://localhost:5000", session=session)

    assert translator.translate("   ") == "   "
    assert translator.translate(None) == ""
    assert not session.calls


def test_translate_raises_on_http_error(session) -> None:
    session.add("POST", "translate", {"error": "Too many requests"}, status_code=429, text="Too many requests")
    translator = LibreTranslateClient("http://localhost:5000", session=session)

    with pytest.raises(TranslationError, match="HTTP 429"):
        translator.translate("Pantai")


def test_translate_raises_without_translated_text(session) -> None:
    session.add("POST", "translate", {"detectedLanguage": "id"})
    translator = LibreTranslateClient("http://localhost:5000", session=session)

    with pytest.raises(TranslationError, match="translatedText"):
        translator.translate("Pantai")


def test_is_available_handles_connection_errors() -> None:
    http = MagicMock()
    http.post.side_effect = requests.ConnectionError("refused")
    translator = LibreTranslateClient("http://localhost:5000", session=http)

    assert translator.is_available() is False


def test_translator_requires_url() -> None:
    with pytest.raises(ValueError):
        LibreTranslateClient("")


# ---------------------------------------------------------------------------
# Translation rows
# ---------------------------------------------------------------------------
def test_find_translation_filters_item_and_language(client: MagicMock) -> None:
    client.list_items.return_value = [{"id": 9}]

    row = find_translation(client, "agenda_events", 3)

    assert row == {"id": 9}
    client.list_items.assert_called_once_with(
        "agenda_events_translations",
        params={
            "filter[agenda_events_id][_eq]": 3,
            "filter[languages_code][_eq]": "en-US",
            "limit": 1,
        },
    )


def test_save_translation_creates_row(client: MagicMock) -> None:
    client.list_items.return_value = []

    save_translation(client, "umkm_lokal", 4, {"name": "Batik Shop"}, language_field="code")

    client.create_item.assert_called_once_with(
        "umkm_lokal_translations",
        {"umkm_lokal_id": 4, "code": "en-US", "name": "Batik Shop"},
    )
    client.update_item.assert_not_called()


def test_save_translation_updates_known_row(client: MagicMock) -> None:
    save_translation(client, "umkm_lokal", 4, {"name": "Batik Shop"}, existing={"id": 21})

    client.list_items.assert_not_called()
    client.update_item.assert_called_once_with("umkm_lokal_translations", 21, {"name": "Batik Shop"})


def test_translate_fields_skips_empty_values(translator: MagicMock) -> None:
    spec = get_collection_spec("destinasi_wisata")

    values = translate_fields(
        translator,
        spec,
        {"name": "Pantai Kuta", "location": "", "description": None, "hours": "08.00 - 17.00", "slug": "kuta"},
    )

    assert values == {"name": "EN:Pantai Kuta", "hours": "EN:08.00 - 17.00"}


def test_translate_missing_skips_existing_rows(client: MagicMock, translator: MagicMock) -> None:
    spec = get_collection_spec("spot_nongkrong")
    client.list_all_items.side_effect = [
        [
            {"id": 1, "name": "Kopi Senja", "description": "Tempat santai", "address": "Jl. Merdeka"},
            {"id": 2, "name": "Warung Teduh", "description": None, "address": None},
            {"id": 3, "name": None, "description": None, "address": None},
        ],
        [{"id": 50, "spot_nongkrong_id": 2}],
    ]

    report = translate_missing(client, translator, spec)

    assert report.translated == [1]
    assert report.skipped == [2, 3]
    assert client.list_all_items.call_args_list[1].kwargs == {
        "fields": ["id", "spot_nongkrong_id"],
        "params": {"filter[languages_code][_eq]": "en-US"},
    }
    client.create_item.assert_called_once_with(
        "spot_nongkrong_translations",
        {
            "spot_nongkrong_id": 1,
            "languages_code": "en-US",
            "name": "EN:Kopi Senja",
            "description": "EN:Tempat santai",
            "address": "EN:Jl. Merdeka",
        },
    )


def test_translate_missing_overwrite_updates_and_records_failures(
    client: MagicMock, translator: MagicMock
) -> None:
    spec = get_collection_spec("encyclopedia_entries")
    client.list_all_items.side_effect = [
        [
            {"id": 1, "title": "Wayang", "content": "Seni", "summary": None},
            {"id": 2, "title": "Gamelan", "content": None, "summary": None},
        ],
        [{"id": 70, "encyclopedia_entries_id": 1}],
    ]
    client.create_item.side_effect = DirectusAPIError(403, ["Forbidden"])

    report = translate_missing(client, translator, spec, overwrite=True)

    client.update_item.assert_called_once_with(
        "encyclopedia_entries_translations", 70, {"title": "EN:Wayang", "content": "EN:Seni"}
    )
    assert report.translated == [1]
    assert list(report.failed) == [2]


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------
def test_create_flow_returns_existing(client: MagicMock) -> None:
    client.list_flows.return_value = [{"id": "f1", "name": "Auto-Translate agenda_events"}]

    flow = create_auto_translate_flow(client, get_collection_spec("agenda_events"), "http://hook")

    assert flow["id"] == "f1"
    client.create_flow.assert_not_called()


def test_create_flow_links_request_operation(client: MagicMock) -> None:
    client.list_flows.return_value = []
    client.create_flow.return_value = {"id": "f2"}
    client.create_operation.return_value = {"id": "op1"}
    client.update_flow.return_value = {"id": "f2", "operation": "op1"}

    flow = create_auto_translate_flow(
        client, get_collection_spec("umkm_lokal"), "http://127.0.0.1:8001/webhook", secret="s3"
    )

    assert flow["operation"] == "op1"
    flow_payload = client.create_flow.call_args.args[0]
    assert flow_payload["name"] == "Auto-Translate umkm_lokal"
    assert flow_payload["options"]["collections"] == ["umkm_lokal"]
    operation = client.create_operation.call_args.args[0]
    assert operation["flow"] == "f2"
    assert operation["options"]["url"] == "http://127.0.0.1:8001/webhook"
    assert {"header": "X-Webhook-Secret", "value": "s3"} in operation["options"]["headers"]
    client.update_flow.assert_called_once_with("f2", {"operation": "op1"})


def test_parse_flow_payload_trigger_shape() -> None:
    body = {
        "$trigger": {
            "event": "agenda_events.items.create",
            "collection": "agenda_events",
            "keys": [12],
            "payload": {"title": "Festival Budaya"},
        }
    }

    event = parse_flow_payload(body)

    assert event.collection == "agenda_events"
    assert event.key == 12
    assert event.payload == {"title": "Festival Budaya"}
    assert event.event == "agenda_events.items.create"


def test_parse_flow_payload_double_encoded_text() -> None:
    inner = json.dumps({"collection": "umkm_lokal", "key": "5", "payload": json.dumps({"name": "Batik"})})

    event = parse_flow_payload(json.dumps(inner).encode("utf-8"))

    assert event.collection == "umkm_lokal"
    assert event.key == "5"
    assert event.payload == {"name": "Batik"}


def test_parse_flow_payload_rejects_bad_bodies() -> None:
    with pytest.raises(ValueError, match="Invalid JSON body"):
        parse_flow_payload("{not json")
    with pytest.raises(ValueError, match="Unknown body format"):
        parse_flow_payload({"payload": {}})


def test_handle_flow_event_saves_translation(client: MagicMock, translator: MagicMock) -> None:
    client.list_items.return_value = [{"id": 33}]
    body = {"collection": "trending_articles", "key": 8, "payload": {"title": "Kuliner", "views": 3}}

    values = handle_flow_event(client, translator, body)

    assert values == {"title": "EN:Kuliner"}
    client.update_item.assert_called_once_with("trending_articles_translations", 33, {"title": "EN:Kuliner"})


def test_handle_flow_event_ignores_unknown_collection(client: MagicMock, translator: MagicMock) -> None:
    body = {"collection": "directus_users", "key": 1, "payload": {"first_name": "Budi"}}

    assert handle_flow_event(client, translator, body) is None
    translator.translate.assert_not_called()
