"""Registry of the bilingual content collections managed in Directus."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

DEFAULT_LANGUAGE = "id-ID"
TRANSLATION_LANGUAGE = "en-US"

# Column in every translations table that references the languages table.
LANGUAGE_FIELD = "languages_code"

# (code, name, direction)
LANGUAGES: Tuple[Tuple[str, str, str], ...] = (
    ("id-ID", "Indonesian", "ltr"),
    ("en-US", "English", "ltr"),
)

_COMMON_TAIL: Tuple[Tuple[str, str], ...] = (
    ("status", "VARCHAR(20) DEFAULT 'draft'"),
    ("sort", "INTEGER"),
    ("date_created", "TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP"),
    ("date_updated", "TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP"),
)


@dataclass(frozen=True)
class CollectionSpec:
    """Describes one content collection and its ``_translations`` sibling.

    ``columns`` lists the main-table columns after ``id`` and ``slug`` as
    ``(name, sql_type)`` pairs. ``translatable_fields`` are duplicated as
    TEXT columns in the translations table.
    """

    name: str
    translatable_fields: Tuple[str, ...]
    required_fields: Tuple[str, ...] = ()
    columns: Tuple[Tuple[str, str], ...] = ()
    icon: str = "box"
    display_template: str = "{{slug}}"
    links_map_location: bool = False
    label: str = ""

    @property
    def translations(self) -> str:
        return translations_collection(self.name)

    @property
    def foreign_key(self) -> str:
        return translation_foreign_key(self.name)

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self.columns]

    @property
    def title(self) -> str:
        return self.label or self.name.replace("_", " ").title()


def translations_collection(name: str) -> str:
    """Return the translations collection that belongs to ``name``."""

    return f"{name}_translations"


def translation_foreign_key(name: str) -> str:
    """Return the column in the translations table pointing to ``name``."""

    return f"{name}_id"


CONTENT_COLLECTIONS: Tuple[CollectionSpec, ...] = (
    CollectionSpec(
        name="map_locations",
        label="Map Locations",
        translatable_fields=("name", "description", "address", "opening_hours", "ticket_price"),
        required_fields=("name", "latitude", "longitude", "category"),
        icon="map",
        display_template="{{slug}}",
        columns=(
            ("name", "VARCHAR(255)"),
            ("description", "TEXT"),
            ("address", "VARCHAR(255)"),
            ("opening_hours", "VARCHAR(255)"),
            ("ticket_price", "VARCHAR(255)"),
            ("category", "VARCHAR(100)"),
            ("subcategory", "VARCHAR(100)"),
            ("latitude", "DECIMAL(10, 8)"),
            ("longitude", "DECIMAL(11, 8)"),
            ("google_maps_url", "VARCHAR(500)"),
            ("image", "UUID"),
            ("facilities", "JSON"),
            ("phone", "VARCHAR(50)"),
            ("email", "VARCHAR(255)"),
            ("whatsapp", "VARCHAR(50)"),
            ("website", "VARCHAR(255)"),
            ("instagram", "VARCHAR(255)"),
            ("facebook", "VARCHAR(255)"),
        )
        + _COMMON_TAIL,
    ),
    CollectionSpec(
        name="destinasi_wisata",
        label="Destinasi Wisata",
        translatable_fields=("name", "location", "description", "hours"),
        required_fields=("name",),
        icon="place",
        display_template="{{name}}",
        links_map_location=True,
        columns=(
            ("name", "VARCHAR(255)"),
            ("location", "VARCHAR(255)"),
            ("description", "TEXT"),
            ("hours", "VARCHAR(255)"),
            ("image", "UUID"),
            ("latitude", "DECIMAL(10, 8)"),
            ("longitude", "DECIMAL(11, 8)"),
            ("map_location_id", "INTEGER"),
        )
        + _COMMON_TAIL,
    ),
    CollectionSpec(
        name="agenda_events",
        label="Agenda Events",
        translatable_fields=("title", "description", "location", "organizer"),
        required_fields=("title", "event_date"),
        icon="event",
        display_template="{{title}}",
        links_map_location=True,
        columns=(
            ("title", "VARCHAR(255)"),
            ("description", "TEXT"),
            ("location", "VARCHAR(255)"),
            ("organizer", "VARCHAR(255)"),
            ("event_date", "DATE"),
            ("start_time", "TIME"),
            ("end_time", "TIME"),
            ("image", "UUID"),
            ("latitude", "DECIMAL(10, 8)"),
            ("longitude", "DECIMAL(11, 8)"),
            ("ticket_price", "VARCHAR(255)"),
            ("tags", "JSON"),
            ("map_location_id", "INTEGER"),
        )
        + _COMMON_TAIL,
    ),
    CollectionSpec(
        name="umkm_lokal",
        label="UMKM Lokal",
        translatable_fields=("name", "description", "address", "category"),
        required_fields=("name", "category"),
        icon="store",
        display_template="{{name}}",
        links_map_location=True,
        columns=(
            ("name", "VARCHAR(255)"),
            ("description", "TEXT"),
            ("address", "VARCHAR(255)"),
            ("category", "VARCHAR(255)"),
            ("image", "UUID"),
            ("latitude", "DECIMAL(10, 8)"),
            ("longitude", "DECIMAL(11, 8)"),
            ("phone", "VARCHAR(50)"),
            ("whatsapp", "VARCHAR(50)"),
            ("instagram", "VARCHAR(255)"),
            ("facebook", "VARCHAR(255)"),
            ("website", "VARCHAR(255)"),
            ("opening_hours", "VARCHAR(255)"),
            ("price_range", "VARCHAR(50)"),
            ("tags", "JSON"),
            ("map_location_id", "INTEGER"),
        )
        + _COMMON_TAIL,
    ),
    CollectionSpec(
        name="spot_nongkrong",
        label="Spot Nongkrong",
        translatable_fields=("name", "description", "address"),
        required_fields=("name", "category"),
        icon="local_cafe",
        display_template="{{name}}",
        links_map_location=True,
        columns=(
            ("name", "VARCHAR(255)"),
            ("description", "TEXT"),
            ("address", "VARCHAR(255)"),
            ("image", "UUID"),
            ("latitude", "DECIMAL(10, 8)"),
            ("longitude", "DECIMAL(11, 8)"),
            ("category", "VARCHAR(255)"),
            ("opening_hours", "VARCHAR(255)"),
            ("price_range", "VARCHAR(50)"),
            ("facilities", "JSON"),
            ("tags", "JSON"),
            ("badges", "JSON"),
            ("phone", "VARCHAR(50)"),
            ("instagram", "VARCHAR(255)"),
            ("map_location_id", "INTEGER"),
        )
        + _COMMON_TAIL,
    ),
    CollectionSpec(
        name="trending_articles",
        label="Trending Articles",
        translatable_fields=("title", "excerpt", "content", "author"),
        required_fields=("title", "content"),
        icon="article",
        display_template="{{title}}",
        columns=(
            ("title", "VARCHAR(255)"),
            ("excerpt", "TEXT"),
            ("content", "TEXT"),
            ("author", "VARCHAR(255)"),
            ("image", "UUID"),
            ("category", "VARCHAR(255)"),
            ("tags", "JSON"),
            ("views", "INTEGER DEFAULT 0"),
            ("published_date", "DATE"),
        )
        + _COMMON_TAIL,
    ),
    CollectionSpec(
        name="encyclopedia_entries",
        label="Encyclopedia Entries",
        translatable_fields=("title", "content", "summary"),
        required_fields=("title", "content"),
        icon="menu_book",
        display_template="{{title}}",
        columns=(
            ("title", "VARCHAR(255)"),
            ("content", "TEXT"),
            ("summary", "TEXT"),
            ("image", "UUID"),
            ("category_id", "INTEGER"),
            ("tags", "JSON"),
        )
        + _COMMON_TAIL,
    ),
)

_BY_NAME: Dict[str, CollectionSpec] = {spec.name: spec for spec in CONTENT_COLLECTIONS}

# Collections whose ``map_location_id`` references ``map_locations.id``.
MAP_LOCATION_DEPENDENTS: Tuple[str, ...] = tuple(
    spec.name for spec in CONTENT_COLLECTIONS if spec.links_map_location
)


def get_collection_spec(name: str) -> CollectionSpec:
    """Return the registered spec for ``name``.

    Raises
    ------
    KeyError
        If ``name`` is not one of the content collections.
    """

    try:
        return _BY_NAME[name]
    except KeyError:
        known = ", ".join(sorted(_BY_NAME))
        raise KeyError(f"Unknown collection '{name}'. Known collections: {known}") from None


def resolve_collections(names: List[str] | Tuple[str, ...] | None) -> List[CollectionSpec]:
    """Map CLI collection names to specs; ``None`` or empty means all."""

    if not names:
        return list(CONTENT_COLLECTIONS)
    return [get_collection_spec(name) for name in names]


def all_collection_names(*, include_translations: bool = False) -> List[str]:
    names: List[str] = []
    for spec in CONTENT_COLLECTIONS:
        names.append(spec.name)
        if include_translations:
            names.append(spec.translations)
    return names
