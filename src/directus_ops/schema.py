"""SQL-level schema changes that the Directus REST API does not cover.

Every helper takes an open psycopg2 connection (see :func:`database.connect`)
and leaves transaction control to the caller, so a whole migration either
commits or rolls back as one unit.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from psycopg2 import sql

from .collections import LANGUAGE_FIELD, LANGUAGES, MAP_LOCATION_DEPENDENTS, CollectionSpec
from .database import column_exists, column_info, count_rows, execute, fetch_all, fetch_one, table_exists

logger = logging.getLogger(__name__)

LANGUAGES_TABLE = "languages"


class MigrationAborted(ValueError):
    """Raised when a migration's precondition does not hold."""


def _ident(name: str) -> sql.Identifier:
    return sql.Identifier(name)


def special_value(*flags: str) -> str:
    """Encode ``directus_fields.special`` as a JSON array string."""

    return json.dumps(list(flags))


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------
def add_column(
    conn: Any,
    table: str,
    column: str,
    sql_type: str,
    *,
    nullable: bool = True,
    register_field: bool = False,
    interface: str = "input",
) -> bool:
    """Add ``column`` to ``table`` unless it already exists.

    ``sql_type`` is inserted verbatim (e.g. ``"VARCHAR(255) DEFAULT 'x'"``).
    With ``register_field`` a matching ``directus_fields`` row is created so
    the column shows up in the Data Studio without a schema snapshot.

    Returns ``True`` when the column was created.
    """

    if column_exists(conn, table, column):
        logger.info("%s.%s already exists, skipping", table, column)
        return False

    statement = sql.SQL("ALTER TABLE {} ADD COLUMN {} {}").format(
        _ident(table), _ident(column), sql.SQL(sql_type)
    )
    if not nullable:
        statement = statement + sql.SQL(" NOT NULL")
    execute(conn, statement)

    if register_field:
        register_field_row(conn, table, column, interface=interface)
    return True


def drop_column(conn: Any, table: str, column: str, *, unregister_field: bool = True) -> bool:
    """Drop ``column`` from ``table``; returns ``False`` when it was absent."""

    if not column_exists(conn, table, column):
        logger.info("%s.%s does not exist, skipping", table, column)
        return False
    execute(
        conn,
        sql.SQL("ALTER TABLE {} DROP COLUMN {}").format(_ident(table), _ident(column)),
    )
    if unregister_field:
        execute(
            conn,
            "DELETE FROM directus_fields WHERE collection = %s AND field = %s",
            (table, column),
        )
    return True


def register_field_row(
    conn: Any,
    collection: str,
    field_name: str,
    *,
    interface: str | None = "input",
    special: str | None = None,
    options: Mapping[str, Any] | None = None,
    sort: int | None = None,
    width: str = "full",
    hidden: bool = False,
    readonly: bool = False,
    required: bool = False,
) -> bool:
    """Insert a ``directus_fields`` row unless one exists for the field."""

    existing = fetch_one(
        conn,
        "SELECT id FROM directus_fields WHERE collection = %s AND field = %s",
        (collection, field_name),
    )
    if existing:
        return False
    execute(
        conn,
        "INSERT INTO directus_fields "
        "(collection, field, special, interface, options, sort, width, hidden, readonly, required) "
        "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
        (
            collection,
            field_name,
            special,
            interface,
            json.dumps(dict(options)) if options is not None else None,
            sort,
            width,
            hidden,
            readonly,
            required,
        ),
    )
    return True


# ---------------------------------------------------------------------------
# Primary key conversions
# ---------------------------------------------------------------------------
def change_id_to_varchar(conn: Any, table: str, *, length: int = 255) -> List[Dict[str, Any]]:
    """Turn an auto-increment integer ``id`` into ``VARCHAR(length)``.

    Existing ids are converted to their string form. Directus must be
    restarted afterwards to reload the schema.
    """

    execute(conn, sql.SQL("ALTER TABLE {} ALTER COLUMN id DROP DEFAULT").format(_ident(table)))
    execute(
        conn,
        sql.SQL("DROP SEQUENCE IF EXISTS {} CASCADE").format(_ident(f"{table}_id_seq")),
    )
    execute(
        conn,
        sql.SQL("ALTER TABLE {} ALTER COLUMN id TYPE VARCHAR({}) USING id::VARCHAR").format(
            _ident(table), sql.Literal(int(length))
        ),
    )
    return column_info(conn, table, ["id"])


@dataclass
class IdMigrationResult:
    table: str
    rows: int = 0
    remapped: Dict[str, int] = field(default_factory=dict)


def _remap_foreign_key(
    conn: Any,
    table: str,
    fk_column: str,
    target: str,
    old_constraint: str,
) -> int:
    """Point ``table.fk_column`` at ``target.id_new`` instead of ``target.id``."""

    new_column = f"{fk_column}_new"
    execute(
        conn,
        sql.SQL("ALTER TABLE {} ADD COLUMN {} INTEGER").format(_ident(table), _ident(new_column)),
    )
    execute(
        conn,
        sql.SQL(
            "UPDATE {table} AS r SET {new} = t.id_new FROM {target} AS t "
            "WHERE r.{old}::text = t.id::text"
        ).format(
            table=_ident(table),
            new=_ident(new_column),
            target=_ident(target),
            old=_ident(fk_column),
        ),
    )
    row = fetch_one(
        conn,
        sql.SQL("SELECT COUNT(*) AS count FROM {} WHERE {} IS NOT NULL").format(
            _ident(table), _ident(new_column)
        ),
    )
    execute(
        conn,
        sql.SQL("ALTER TABLE {} DROP CONSTRAINT IF EXISTS {}").format(
            _ident(table), _ident(old_constraint)
        ),
    )
    execute(
        conn,
        sql.SQL("ALTER TABLE {} DROP COLUMN {}").format(_ident(table), _ident(fk_column)),
    )
    execute(
        conn,
        sql.SQL("ALTER TABLE {} RENAME COLUMN {} TO {}").format(
            _ident(table), _ident(new_column), _ident(fk_column)
        ),
    )
    return int(row["count"]) if row else 0


def _add_foreign_key(conn: Any, table: str, column: str, target: str, on_delete: str) -> None:
    execute(
        conn,
        sql.SQL(
            "ALTER TABLE {table} ADD CONSTRAINT {name} FOREIGN KEY ({column}) "
            "REFERENCES {target}(id) ON DELETE {action}"
        ).format(
            table=_ident(table),
            name=_ident(f"{table}_{column}_fkey"),
            column=_ident(column),
            target=_ident(target),
            action=sql.SQL(on_delete),
        ),
    )


def migrate_id_to_integer(
    conn: Any,
    table: str = "map_locations",
    *,
    related: Sequence[str] = MAP_LOCATION_DEPENDENTS,
    related_column: str = "map_location_id",
    translations: bool = True,
) -> IdMigrationResult:
    """Replace a VARCHAR ``id`` with an integer SERIAL id plus a unique ``slug``.

    The old string ids are kept in ``slug``. Foreign keys in ``related``
    tables (``related_column``) and in ``<table>_translations`` are remapped
    to the new integer ids before the old column is dropped.

    Raises
    ------
    MigrationAborted
        If ``table`` already has a ``slug`` column (migration already ran).
    """

    if column_exists(conn, table, "slug"):
        raise MigrationAborted(
            f"{table}.slug already exists; this migration may have been run before."
        )

    result = IdMigrationResult(table=table, rows=count_rows(conn, table))
    t = _ident(table)

    execute(conn, sql.SQL("ALTER TABLE {} ADD COLUMN id_new SERIAL").format(t))
    execute(conn, sql.SQL("ALTER TABLE {} ADD COLUMN slug VARCHAR(255)").format(t))
    execute(conn, sql.SQL("UPDATE {} SET slug = id").format(t))
    execute(conn, sql.SQL("ALTER TABLE {} ALTER COLUMN slug SET NOT NULL").format(t))
    execute(
        conn,
        sql.SQL("CREATE UNIQUE INDEX {} ON {} (slug)").format(_ident(f"idx_{table}_slug"), t),
    )

    present_related = [name for name in related if table_exists(conn, name)]
    for name in present_related:
        result.remapped[name] = _remap_foreign_key(
            conn, name, related_column, table, f"{name}_{related_column}_foreign"
        )

    translations_table = f"{table}_translations"
    fk_column = f"{table}_id"
    has_translations = translations and table_exists(conn, translations_table)
    if has_translations:
        result.remapped[translations_table] = _remap_foreign_key(
            conn, translations_table, fk_column, table, f"{translations_table}_{fk_column}_foreign"
        )

    execute(conn, sql.SQL("ALTER TABLE {} DROP CONSTRAINT IF EXISTS {}").format(t, _ident(f"{table}_pkey")))
    execute(conn, sql.SQL("ALTER TABLE {} DROP COLUMN id").format(t))
    execute(conn, sql.SQL("ALTER TABLE {} RENAME COLUMN id_new TO id").format(t))
    execute(conn, sql.SQL("ALTER TABLE {} ADD PRIMARY KEY (id)").format(t))

    for name in present_related:
        _add_foreign_key(conn, name, related_column, table, "SET NULL")
    if has_translations:
        _add_foreign_key(conn, translations_table, fk_column, table, "CASCADE")

    execute(
        conn,
        "UPDATE directus_fields SET interface = 'input', readonly = true, hidden = true "
        "WHERE collection = %s AND field = 'id'",
        (table,),
    )
    register_field_row(
        conn,
        table,
        "slug",
        options={"trim": True, "slug": True},
        sort=2,
        required=True,
    )
    return result


# ---------------------------------------------------------------------------
# Collections, languages and relations
# ---------------------------------------------------------------------------
def setup_languages(
    conn: Any,
    languages: Iterable[Tuple[str, str, str]] = LANGUAGES,
    *,
    table: str = LANGUAGES_TABLE,
) -> List[str]:
    """Create the languages table if needed and insert missing languages.

    Returns the codes that were inserted.
    """

    t = _ident(table)
    if not table_exists(conn, table):
        execute(
            conn,
            sql.SQL(
                "CREATE TABLE {} (code VARCHAR(255) PRIMARY KEY, name VARCHAR(255), "
                "direction VARCHAR(255) DEFAULT 'ltr')"
            ).format(t),
        )
        execute(
            conn,
            "INSERT INTO directus_collections (collection, icon, hidden, singleton) "
            "VALUES (%s, 'translate', false, false) ON CONFLICT (collection) DO NOTHING",
            (table,),
        )

    existing = {row["code"] for row in fetch_all(conn, sql.SQL("SELECT code FROM {}").format(t))}
    created: List[str] = []
    for code, name, direction in languages:
        if code in existing:
            logger.info("Language %s already exists", code)
            continue
        execute(
            conn,
            sql.SQL("INSERT INTO {} (code, name, direction) VALUES (%s, %s, %s)").format(t),
            (code, name, direction),
        )
        created.append(code)
    return created


def _relation_exists(conn: Any, many_collection: str, many_field: str) -> bool:
    row = fetch_one(
        conn,
        "SELECT id FROM directus_relations WHERE many_collection = %s AND many_field = %s",
        (many_collection, many_field),
    )
    return row is not None


def register_translation_relations(
    conn: Any,
    spec: CollectionSpec,
    *,
    languages_table: str = LANGUAGES_TABLE,
    language_field: str = LANGUAGE_FIELD,
) -> int:
    """Insert the two ``directus_relations`` rows of a translations junction.

    Rows that already exist are left alone. Returns the number inserted.
    """

    inserted = 0
    if not _relation_exists(conn, spec.translations, spec.foreign_key):
        execute(
            conn,
            "INSERT INTO directus_relations "
            "(many_collection, many_field, one_collection, one_field, junction_field) "
            "VALUES (%s, %s, %s, 'translations', %s)",
            (spec.translations, spec.foreign_key, spec.name, language_field),
        )
        inserted += 1
    if not _relation_exists(conn, spec.translations, language_field):
        execute(
            conn,
            "INSERT INTO directus_relations "
            "(many_collection, many_field, one_collection, junction_field) "
            "VALUES (%s, %s, %s, %s)",
            (spec.translations, language_field, languages_table, spec.foreign_key),
        )
        inserted += 1
    return inserted


def register_m2o_relation(
    conn: Any,
    collection: str,
    field_name: str,
    related: str,
    *,
    interface: str | None = None,
) -> bool:
    """Register ``collection.field_name`` as a many-to-one link to ``related``.

    Writes the ``directus_relations`` row and marks the field ``m2o`` in
    ``directus_fields``. Links to ``directus_files`` get the image picker.
    Returns ``True`` when the relation row was inserted.
    """

    if interface is None:
        interface = "file-image" if related == "directus_files" else "select-dropdown-m2o"
    special = special_value("file") if related == "directus_files" else special_value("m2o")

    inserted = False
    if not _relation_exists(conn, collection, field_name):
        execute(
            conn,
            "INSERT INTO directus_relations (many_collection, many_field, one_collection) "
            "VALUES (%s, %s, %s)",
            (collection, field_name, related),
        )
        inserted = True

    if not register_field_row(conn, collection, field_name, interface=interface, special=special):
        execute(
            conn,
            "UPDATE directus_fields SET interface = %s, special = %s "
            "WHERE collection = %s AND field = %s",
            (interface, special, collection, field_name),
        )
    return inserted


def ensure_translations_alias(
    conn: Any,
    spec: CollectionSpec,
    *,
    language_field: str = "code",
    default_language: str = "id-ID",
) -> bool:
    """Register the ``translations`` alias field on the parent collection."""

    return register_field_row(
        conn,
        spec.name,
        "translations",
        interface="translations",
        special=special_value("translations"),
        options={"languageField": language_field, "defaultLanguage": default_language},
        sort=3,
    )


def create_collection_tables(
    conn: Any,
    spec: CollectionSpec,
    *,
    languages_table: str = LANGUAGES_TABLE,
    language_field: str = LANGUAGE_FIELD,
) -> None:
    """Create the main table, its translations table and Directus metadata.

    ``CREATE TABLE IF NOT EXISTS`` keeps this safe to re-run.
    """

    column_sql = [
        sql.SQL("id SERIAL PRIMARY KEY"),
        sql.SQL("slug VARCHAR(255) UNIQUE NOT NULL"),
    ]
    column_sql.extend(
        sql.SQL("{} {}").format(_ident(name), sql.SQL(sql_type)) for name, sql_type in spec.columns
    )
    execute(
        conn,
        sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(
            _ident(spec.name), sql.SQL(", ").join(column_sql)
        ),
    )

    translation_sql = [
        sql.SQL("id SERIAL PRIMARY KEY"),
        sql.SQL("{} INTEGER REFERENCES {}(id) ON DELETE CASCADE").format(
            _ident(spec.foreign_key), _ident(spec.name)
        ),
        sql.SQL("{} VARCHAR(255) REFERENCES {}(code) ON DELETE CASCADE").format(
            _ident(language_field), _ident(languages_table)
        ),
    ]
    translation_sql.extend(
        sql.SQL("{} TEXT").format(_ident(name)) for name in spec.translatable_fields
    )
    translation_sql.append(
        sql.SQL("UNIQUE ({}, {})").format(_ident(spec.foreign_key), _ident(language_field))
    )
    execute(
        conn,
        sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(
            _ident(spec.translations), sql.SQL(", ").join(translation_sql)
        ),
    )

    for collection, icon, hidden, template in (
        (spec.name, spec.icon, False, spec.display_template),
        (spec.translations, "import_export", True, None),
    ):
        execute(
            conn,
            "INSERT INTO directus_collections (collection, icon, hidden, singleton, display_template) "
            "VALUES (%s, %s, %s, false, %s) ON CONFLICT (collection) DO NOTHING",
            (collection, icon, hidden, template),
        )

    register_translation_relations(
        conn, spec, languages_table=languages_table, language_field=language_field
    )
    ensure_translations_alias(conn, spec, language_field="code")
    register_field_row(
        conn,
        spec.translations,
        language_field,
        interface="select-dropdown-m2o",
        special=special_value("m2o"),
    )

    column_names = spec.column_names
    if "image" in column_names:
        register_m2o_relation(conn, spec.name, "image", "directus_files")
    if spec.links_map_location and "map_location_id" in column_names:
        register_m2o_relation(conn, spec.name, "map_location_id", "map_locations")


def cleanup_duplicate_relations(conn: Any) -> List[int]:
    """Delete duplicate ``directus_relations`` rows, keeping the lowest id.

    Duplicates share ``many_collection``, ``many_field`` and
    ``one_collection``. Returns the deleted ids.
    """

    duplicates = fetch_all(
        conn,
        "SELECT many_collection, many_field, one_collection, "
        "array_agg(id ORDER BY id) AS ids FROM directus_relations "
        "GROUP BY many_collection, many_field, one_collection HAVING COUNT(*) > 1",
    )
    deleted: List[int] = []
    for row in duplicates:
        for relation_id in list(row["ids"])[1:]:
            execute(conn, "DELETE FROM directus_relations WHERE id = %s", (relation_id,))
            deleted.append(relation_id)
            logger.info(
                "Deleted duplicate relation %s (%s.%s -> %s)",
                relation_id,
                row["many_collection"],
                row["many_field"],
                row["one_collection"],
            )
    return deleted


def fix_special_encoding(conn: Any) -> Tuple[int, int]:
    """Normalise ``special`` on translations aliases and m2o fields.

    Returns ``(translations_updated, m2o_updated)``.
    """

    translations_value = special_value("translations")
    m2o_value = special_value("m2o")
    translations_updated = execute(
        conn,
        "UPDATE directus_fields SET special = %s "
        "WHERE field = 'translations' AND interface = 'translations' "
        "AND special IS DISTINCT FROM %s",
        (translations_value, translations_value),
    )
    m2o_updated = execute(
        conn,
        "UPDATE directus_fields SET special = %s WHERE special LIKE %s AND special <> %s",
        (m2o_value, "%m2o%", m2o_value),
    )
    return translations_updated, m2o_updated


def set_collection_visibility(conn: Any, specs: Sequence[CollectionSpec]) -> None:
    """Show content collections in the navigation and hide their translations."""

    for spec in specs:
        execute(
            conn,
            "UPDATE directus_collections SET hidden = false, icon = %s, "
            "display_template = COALESCE(display_template, %s) WHERE collection = %s",
            (spec.icon, spec.display_template, spec.name),
        )
        execute(
            conn,
            "UPDATE directus_collections SET hidden = true WHERE collection = %s",
            (spec.translations,),
        )


def add_slug_to_translations(conn: Any, specs: Sequence[CollectionSpec]) -> List[str]:
    """Add a ``slug`` column to every translations table that lacks one."""

    changed: List[str] = []
    for spec in specs:
        if not table_exists(conn, spec.translations):
            continue
        if add_column(conn, spec.translations, "slug", "VARCHAR(255)"):
            register_field_row(conn, spec.translations, "slug", sort=2)
            changed.append(spec.translations)
    return changed


def set_field_sort(conn: Any, collection: str, order: Mapping[str, int]) -> int:
    """Write ``directus_fields.sort`` for each field; returns rows updated."""

    updated = 0
    for field_name, position in order.items():
        updated += execute(
            conn,
            "UPDATE directus_fields SET sort = %s WHERE collection = %s AND field = %s",
            (position, collection, field_name),
        )
    return updated


def rename_languages_code_column(
    conn: Any,
    specs: Sequence[CollectionSpec],
    *,
    old: str = LANGUAGE_FIELD,
    new: str = "code",
) -> List[str]:
    """Rename the language column of translations tables and its metadata."""

    renamed: List[str] = []
    for spec in specs:
        table = spec.translations
        if not column_exists(conn, table, old):
            continue
        execute(
            conn,
            sql.SQL("ALTER TABLE {} RENAME COLUMN {} TO {}").format(
                _ident(table), _ident(old), _ident(new)
            ),
        )
        execute(
            conn,
            "UPDATE directus_fields SET field = %s WHERE collection = %s AND field = %s",
            (new, table, old),
        )
        execute(
            conn,
            "UPDATE directus_relations SET many_field = %s WHERE many_collection = %s AND many_field = %s",
            (new, table, old),
        )
        execute(
            conn,
            "UPDATE directus_relations SET junction_field = %s WHERE many_collection = %s AND junction_field = %s",
            (new, table, old),
        )
        renamed.append(table)

    if renamed:
        execute(
            conn,
            "UPDATE directus_fields SET options = %s "
            "WHERE field = 'translations' AND interface = 'translations'",
            (json.dumps({"languageField": new}),),
        )
    return renamed
