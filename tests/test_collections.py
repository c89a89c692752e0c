from __future__ import annotations

import pytest

from directus_ops.collections import (
    CONTENT_COLLECTIONS,
    MAP_LOCATION_DEPENDENTS,
    all_collection_names,
    get_collection_spec,
    resolve_collections,
)


def test_registry_names() -> None:
    assert [spec.name for spec in CONTENT_COLLECTIONS] == [
        "map_locations",
        "destinasi_wisata",
        "agenda_events",
        "umkm_lokal",
        "spot_nongkrong",
        "trending_articles",
        "encyclopedia_entries",
    ]


def test_translatable_fields_exist_as_columns() -> None:
    for spec in CONTENT_COLLECTIONS:
        missing = set(spec.translatable_fields) - set(spec.column_names)
        assert not missing, f"{spec.name}: {missing}"


def test_required_fields_exist_as_columns() -> None:
    for spec in CONTENT_COLLECTIONS:
        assert set(spec.required_fields) <= set(spec.column_names), spec.name


def test_translation_names() -> None:
    spec = get_collection_spec("agenda_events")

    assert spec.translations == "agenda_events_translations"
    assert spec.foreign_key == "agenda_events_id"
    assert spec.title == "Agenda Events"


def test_map_location_dependents() -> None:
    assert MAP_LOCATION_DEPENDENTS == (
        "destinasi_wisata",
        "agenda_events",
        "umkm_lokal",
        "spot_nongkrong",
    )
    for name in MAP_LOCATION_DEPENDENTS:
        assert "map_location_id" in get_collection_spec(name).column_names


def test_unknown_collection_raises_key_error() -> None:
    with pytest.raises(KeyError, match="Unknown collection 'hotels'"):
        get_collection_spec("hotels")


def test_resolve_collections_defaults_to_all() -> None:
    assert resolve_collections(None) == list(CONTENT_COLLECTIONS)
    assert [spec.name for spec in resolve_collections(["umkm_lokal"])] == ["umkm_lokal"]


def test_all_collection_names_with_translations() -> None:
    names = all_collection_names(include_translations=True)

    assert names[:2] == ["map_locations", "map_locations_translations"]
    assert len(names) == 2 * len(CONTENT_COLLECTIONS)
