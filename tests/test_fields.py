from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from directus_ops.directus_client import DirectusAPIError, DirectusRESTClient
from directus_ops.fields import (
    FieldLayout,
    FieldSetting,
    apply_layout,
    apply_layout_db,
    configure_translations_field,
    ensure_fields,
    fix_id_field_meta,
    load_layout,
    make_fields_optional,
)

from conftest import columns_of

BUNDLED_LAYOUT = Path(__file__).resolve().parents[1] / "layouts" / "content_fields.yaml"


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=DirectusRESTClient)


def write_layout(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "layout.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_layout_expands_collections(tmp_path: Path) -> None:
    path = write_layout(
        tmp_path,
        """
fields:
  - collections: [umkm_lokal, spot_nongkrong]
    field: latitude
    interface: input
    width: half
  - collections: umkm_lokal
    field: sort
    hidden: true
""",
    )

    layouts = load_layout(path)

    assert set(layouts) == {"umkm_lokal", "spot_nongkrong"}
    assert list(layouts["umkm_lokal"].fields) == ["latitude", "sort"]
    assert layouts["spot_nongkrong"].fields["latitude"].meta() == {"interface": "input", "width": "half"}
    assert layouts["umkm_lokal"].fields["sort"].meta() == {"hidden": True}


def test_load_layout_rejects_unknown_keys(tmp_path: Path) -> None:
    path = write_layout(
        tmp_path,
        "fields:\n  - collections: [umkm_lokal]\n    field: name\n    colour: red\n",
    )

    with pytest.raises(ValueError, match="unknown keys"):
        load_layout(path)


def test_load_layout_requires_fields_list(tmp_path: Path) -> None:
    path = write_layout(tmp_path, "collections: []\n")

    with pytest.raises(ValueError, match="'fields' list"):
        load_layout(path)


def test_load_layout_requires_field_name(tmp_path: Path) -> None:
    path = write_layout(tmp_path, "fields:\n  - collections: [umkm_lokal]\n    width: half\n")

    with pytest.raises(ValueError, match="needs 'collections' and 'field'"):
        load_layout(path)


def test_bundled_layout_loads() -> None:
    layouts = load_layout(BUNDLED_LAYOUT)

    assert "agenda_events" in layouts
    assert layouts["agenda_events"].fields["slug"].options == {"slug": True, "trim": True}


def test_apply_layout_sorts_out_missing_and_failed(client: MagicMock) -> None:
    layout = FieldLayout("umkm_lokal")
    layout.add(FieldSetting("name", width="full"))
    layout.add(FieldSetting("gone", width="half"))
    layout.add(FieldSetting("locked", hidden=True))
    client.update_field.side_effect = [
        {},
        DirectusAPIError(404, ["Field not found"]),
        DirectusAPIError(403, ["Forbidden"]),
    ]

    result = apply_layout(client, layout)

    assert result.updated == ["name"]
    assert result.missing == ["gone"]
    assert list(result.failed) == ["locked"]
    client.update_field.assert_any_call("umkm_lokal", "name", {"meta": {"width": "full"}})


def test_apply_layout_db_inserts_and_updates(conn) -> None:
    conn.on("information_schema.columns", columns_of({"spot_nongkrong": ["name", "tags"]}))
    conn.on(
        "SELECT id FROM directus_fields",
        lambda params: [{"id": 40}] if params[1] == "name" else [],
    )
    layout = FieldLayout("spot_nongkrong")
    layout.add(FieldSetting("name", width="full", sort=1))
    layout.add(FieldSetting("tags", interface="tags", options={"placeholder": "tag"}))
    layout.add(FieldSetting("badges", interface="tags"))

    result = apply_layout_db(conn, layout)

    assert result.updated == ["name", "tags"]
    assert result.missing == ["badges"]
    (_, update_params), = conn.find("UPDATE directus_fields")
    assert update_params[-1] == 40
    (_, insert_params), = conn.find("INSERT INTO directus_fields")
    assert insert_params[:4] == ("spot_nongkrong", "tags", "tags", "full")
    assert json.loads(insert_params[6]) == {"placeholder": "tag"}


def test_ensure_fields_skips_existing_and_duplicates(client: MagicMock) -> None:
    client.list_fields.return_value = [{"field": "id"}, {"field": "slug"}]
    client.create_field.side_effect = [
        DirectusAPIError(400, ['Field "website" already exists']),
        {"field": "instagram"},
    ]

    created = ensure_fields(
        client,
        "umkm_lokal",
        [
            {"field": "slug", "type": "string"},
            {"field": "website", "type": "string"},
            {"field": "instagram", "type": "string"},
        ],
    )

    assert created == ["instagram"]
    assert client.create_field.call_count == 2


def test_ensure_fields_reraises_other_errors(client: MagicMock) -> None:
    client.list_fields.return_value = []
    client.create_field.side_effect = DirectusAPIError(403, ["Forbidden"])

    with pytest.raises(DirectusAPIError):
        ensure_fields(client, "umkm_lokal", [{"field": "phone", "type": "string"}])


def test_make_fields_optional(client: MagicMock) -> None:
    client.update_field.side_effect = [{}, DirectusAPIError(404, ["Not found"])]

    result = make_fields_optional(client, "map_locations", ["email", "fax"])

    assert result.updated == ["email"]
    assert result.missing == ["fax"]
    client.update_field.assert_any_call(
        "map_locations",
        "email",
        {"schema": {"is_nullable": True}, "meta": {"required": False}},
    )


def test_fix_id_field_meta_read_only(client: MagicMock) -> None:
    fix_id_field_meta(client, "map_locations")

    collection, field_name, payload = client.update_field.call_args.args
    assert (collection, field_name) == ("map_locations", "id")
    assert payload["meta"]["readonly"] is True
    assert payload["meta"]["hidden"] is True
    assert "options" not in payload["meta"]


def test_configure_translations_field_creates_alias_when_missing(client: MagicMock) -> None:
    client.get_field.side_effect = DirectusAPIError(403, ["Forbidden"])

    configure_translations_field(client, "agenda_events")

    collection, definition = client.create_field.call_args.args
    assert collection == "agenda_events"
    assert definition["type"] == "alias"
    assert definition["meta"]["special"] == ["translations"]
    assert definition["meta"]["options"]["languageField"] == "code"
    client.update_field.assert_not_called()


def test_configure_translations_field_updates_existing(client: MagicMock) -> None:
    client.get_field.return_value = {"field": "translations"}

    configure_translations_field(client, "agenda_events", language_field="languages_code")

    collection, name, payload = client.update_field.call_args.args
    assert (collection, name) == ("agenda_events", "translations")
    assert payload["meta"]["options"]["languageField"] == "languages_code"


def test_configure_translations_field_propagates_server_errors(client: MagicMock) -> None:
    client.get_field.side_effect = DirectusAPIError(500, ["Internal error"])

    with pytest.raises(DirectusAPIError):
        configure_translations_field(client, "agenda_events")


def test_apply_layout_db_keeps_flags_the_entry_leaves_out(conn) -> None:
    conn.on("information_schema.columns", columns_of({"destinasi_wisata": ["slug"]}))
    conn.on("SELECT id FROM directus_fields", [{"id": 7}])
    layout = FieldLayout("destinasi_wisata")
    layout.add(FieldSetting("slug", width="full"))

    apply_layout_db(conn, layout)

    (update_sql, update_params), = conn.find("UPDATE directus_fields")
    assert "hidden = COALESCE(%s, hidden)" in update_sql
    assert "readonly = COALESCE(%s, readonly)" in update_sql
    assert update_params == (None, "full", None, None, None, None, 7)


def test_apply_layout_db_writes_explicit_flags(conn) -> None:
    conn.on("information_schema.columns", columns_of({"map_locations": ["slug"]}))
    conn.on("SELECT id FROM directus_fields", [{"id": 3}])
    layout = FieldLayout("map_locations")
    layout.add(FieldSetting("slug", hidden=False, readonly=True))

    apply_layout_db(conn, layout)

    (_, update_params), = conn.find("UPDATE directus_fields")
    assert update_params[2:4] == (False, True)
