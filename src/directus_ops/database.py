"""
Direct PostgreSQL access to the database behind Directus.

Used for the operations the REST API does not expose cleanly: column
type changes, constraint management and bootstrapping rows in the
``directus_*`` metadata tables.

Usage:
    from directus_ops.database import connect, fetch_all

    with connect() as conn:
        rows = fetch_all(conn, "SELECT collection FROM directus_collections")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from .config import DatabaseSettings

logger = logging.getLogger(__name__)

Query = str | sql.Composable


@contextmanager
def connect(
    settings: DatabaseSettings | None = None,
    *,
    dict_cursor: bool = True,
) -> Iterator[Any]:
    """
    Open a connection, yield it, and close it when done.

    - Commits on successful exit.
    - Rolls back on exception, then re-raises.
    """
    settings = settings or DatabaseSettings.from_env()
    logger.debug("Connecting to %s:%s/%s", settings.host, settings.port, settings.name)
    conn = psycopg2.connect(settings.dsn)
    if dict_cursor:
        conn.cursor_factory = RealDictCursor
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        logger.exception("Database operation failed; transaction rolled back.")
        raise
    finally:
        conn.close()


def execute(conn: Any, query: Query, params: Optional[Sequence[Any]] = None) -> int:
    """Run a statement and return the affected row count."""

    with conn.cursor() as cur:
        cur.execute(query, params)
        return cur.rowcount


def fetch_all(conn: Any, query: Query, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(query, params)
        return [dict(row) for row in cur.fetchall()]


def fetch_one(conn: Any, query: Query, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(query, params)
        row = cur.fetchone()
        return dict(row) if row is not None else None


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------
def list_tables(conn: Any, schema: str = "public") -> List[str]:
    rows = fetch_all(
        conn,
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = %s ORDER BY table_name",
        (schema,),
    )
    return [row["table_name"] for row in rows]


def table_exists(conn: Any, table: str, schema: str = "public") -> bool:
    row = fetch_one(
        conn,
        "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
        "WHERE table_schema = %s AND table_name = %s) AS exists",
        (schema, table),
    )
    return bool(row and row["exists"])


def column_info(
    conn: Any,
    table: str,
    columns: Sequence[str] | None = None,
) -> List[Dict[str, Any]]:
    """Return ``information_schema.columns`` rows for ``table``."""

    query = (
        "SELECT column_name, data_type, character_maximum_length, "
        "is_nullable, column_default "
        "FROM information_schema.columns WHERE table_name = %s"
    )
    params: List[Any] = [table]
    if columns:
        query += " AND column_name = ANY(%s)"
        params.append(list(columns))
    query += " ORDER BY ordinal_position"
    return fetch_all(conn, query, params)


def column_exists(conn: Any, table: str, column: str) -> bool:
    return bool(column_info(conn, table, [column]))


def count_rows(conn: Any, table: str) -> int:
    row = fetch_one(
        conn,
        sql.SQL("SELECT COUNT(*) AS count FROM {}").format(sql.Identifier(table)),
    )
    return int(row["count"]) if row else 0
