"""Shared fakes for the HTTP session and the psycopg2 connection."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from psycopg2 import sql


def render_sql(query: Any) -> str:
    """Render a ``psycopg2.sql`` composable without a live connection."""

    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return "".join(render_sql(part) for part in query.seq)
    if isinstance(query, sql.Identifier):
        return ".".join(f'"{name}"' for name in query.strings)
    if isinstance(query, sql.Literal):
        return repr(query.wrapped)
    if isinstance(query, sql.Placeholder):
        return "%s"
    if isinstance(query, sql.SQL):
        return query.string
    raise TypeError(f"Cannot render {query!r}")


Rows = Optional[List[Dict[str, Any]]] | Callable[[Any], List[Dict[str, Any]]]


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self._rows: List[Dict[str, Any]] = []
        self.rowcount = -1

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> bool:
        return False

    def execute(self, query: Any, params: Any = None) -> None:
        text = render_sql(query)
        self.conn.executed.append((text, params))
        rows, rowcount = self.conn.respond(text, params)
        self._rows = list(rows)
        self.rowcount = rowcount if rowcount is not None else len(self._rows)

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._rows)

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None


class FakeConnection:
    """Answers queries from rules matched by SQL fragment, first match wins."""

    def __init__(self) -> None:
        self.rules: List[Tuple[str, Rows, Optional[int]]] = []
        self.executed: List[Tuple[str, Any]] = []
        self.committed = False
        self.rolled_back = False
        self.closed = False
        self.cursor_factory = None

    def on(self, fragment: str, rows: Rows = None, rowcount: Optional[int] = None) -> "FakeConnection":
        self.rules.append((fragment, rows, rowcount))
        return self

    def respond(self, text: str, params: Any) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        for fragment, rows, rowcount in self.rules:
            if fragment in text:
                value = rows(params) if callable(rows) else rows
                return list(value or []), rowcount
        return [], None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True

    @property
    def statements(self) -> List[str]:
        return [text for text, _ in self.executed]

    def find(self, fragment: str) -> List[Tuple[str, Any]]:
        return [(text, params) for text, params in self.executed if fragment in text]


def columns_of(schema: Dict[str, List[str]]) -> Callable[[Any], List[Dict[str, Any]]]:
    """Rule helper answering ``column_info`` queries from a table → columns map."""

    def answer(params: Any) -> List[Dict[str, Any]]:
        table = params[0]
        wanted = params[1] if len(params) > 1 else None
        names = schema.get(table, [])
        if wanted is not None:
            names = [name for name in names if name in wanted]
        return [{"column_name": name, "data_type": "character varying"} for name in names]

    return answer


def tables_of(names: List[str]) -> Callable[[Any], List[Dict[str, Any]]]:
    def answer(params: Any) -> List[Dict[str, Any]]:
        return [{"exists": params[1] in names}]

    return answer


class DummyResponse:
    def __init__(
        self,
        *,
        json_data: Any = None,
        status_code: int = 200,
        text: str | None = None,
    ) -> None:
        self._json_data = json_data
        self.status_code = status_code
        self.text = text if text is not None else ""
        self.reason = "Error" if status_code >= 400 else "OK"

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data


class RecordingSession:
    """Stands in for ``requests.Session`` and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[DummyResponse]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, json_data: Any = None, status_code: int = 200, text: str | None = None) -> "RecordingSession":
        self.routes.setdefault((method, path), []).append(
            DummyResponse(json_data=json_data, status_code=status_code, text=text)
        )
        return self

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> DummyResponse:
        path = url.split("://", 1)[-1].split("/", 1)[1] if "/" in url.split("://", 1)[-1] else ""
        self.calls.append(
            {
                "method": method,
                "url": url,
                "path": path,
                "headers": headers or {},
                "params": params,
                "json": json,
                "timeout": timeout,
            }
        )
        queue = self.routes.get((method, path))
        if not queue:
            return DummyResponse(json_data={"data": []})
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def post(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> DummyResponse:
        return self.request("POST", url, headers=headers, json=json, timeout=timeout)


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def session() -> RecordingSession:
    return RecordingSession()
