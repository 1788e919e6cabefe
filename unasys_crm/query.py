"""Table query builder for the REST store.

Queries are built by chaining calls and sent with ``execute()``:

    backend.table("clients").select("*").eq("company_id", cid).order(
        "created_at", ascending=False
    ).execute()

Filters translate to ``column=op.value`` query parameters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .backend import REST_PREFIX, BackendClient
from .exceptions import BackendError, NoRowsError

# Characters that force a value to be quoted inside in.(...) lists
_RESERVED = re.compile(r'[,()":\s]')

_SINGLE_OBJECT = "application/vnd.pgrst.object+json"


@dataclass
class QueryResult:
    """Rows (or a single row) returned by a query, plus the exact count if asked."""

    data: Any
    count: Optional[int] = None


def _format_value(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return str(value)


def _quote_list_item(value: Any) -> str:
    text = _format_value(value)
    if _RESERVED.search(text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def _clean_columns(columns: str) -> str:
    # Embedded selects are often written across several lines
    return "".join(columns.split())


def _parse_content_range(header: Optional[str]) -> Optional[int]:
    """Read the total from a ``0-24/573`` or ``*/0`` Content-Range header."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class QueryBuilder:
    """Chainable select / insert / update against one table."""

    def __init__(self, backend: BackendClient, table: str):
        self.backend = backend
        self.table = table
        self._method = "GET"
        self._params: list[tuple[str, str]] = []
        self._headers: dict[str, str] = {}
        self._body: Any = None
        self._single = False
        self._maybe_single = False
        self._has_filter = False

    # Operations

    def select(self, columns: str = "*", *, count: Optional[str] = None,
               head: bool = False) -> "QueryBuilder":
        self._method = "HEAD" if head else "GET"
        self._params.append(("select", _clean_columns(columns)))
        if count:
            self._headers["Prefer"] = f"count={count}"
        return self

    def insert(self, rows: dict | list[dict], *, returning: bool = True) -> "QueryBuilder":
        self._method = "POST"
        self._body = rows if isinstance(rows, list) else [rows]
        self._headers["Prefer"] = (
            "return=representation" if returning else "return=minimal"
        )
        return self

    def update(self, values: dict, *, returning: bool = True) -> "QueryBuilder":
        self._method = "PATCH"
        self._body = values
        self._headers["Prefer"] = (
            "return=representation" if returning else "return=minimal"
        )
        return self

    # Filters

    def _filter(self, column: str, op: str, value: str) -> "QueryBuilder":
        self._params.append((column, f"{op}.{value}"))
        self._has_filter = True
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        if value is None:
            return self._filter(column, "is", "null")
        return self._filter(column, "eq", _format_value(value))

    def neq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "neq", _format_value(value))

    def lt(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "lt", _format_value(value))

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "lte", _format_value(value))

    def gt(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "gt", _format_value(value))

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter(column, "gte", _format_value(value))

    def in_(self, column: str, values: Iterable[Any]) -> "QueryBuilder":
        items = ",".join(_quote_list_item(v) for v in values)
        return self._filter(column, "in", f"({items})")

    def ilike(self, column: str, pattern: str) -> "QueryBuilder":
        return self._filter(column, "ilike", pattern)

    # Modifiers

    def order(self, column: str, *, ascending: bool = True) -> "QueryBuilder":
        direction = "asc" if ascending else "desc"
        self._params.append(("order", f"{column}.{direction}"))
        return self

    def limit(self, n: int) -> "QueryBuilder":
        self._params.append(("limit", str(n)))
        return self

    def single(self) -> "QueryBuilder":
        """Expect exactly one row; ``execute()`` returns it as a dict."""
        self._single = True
        self._headers["Accept"] = _SINGLE_OBJECT
        return self

    def maybe_single(self) -> "QueryBuilder":
        """Expect zero or one row; ``execute()`` returns a dict or None."""
        self._maybe_single = True
        return self

    # Execution

    def execute(self) -> QueryResult:
        """
        Send the query.

        Raises:
            NoRowsError: If ``single()`` was requested and no row matched.
            BackendError: For any other backend failure.
        """
        if self._method == "PATCH" and not self._has_filter:
            raise ValueError(f"Refus de mettre à jour toute la table '{self.table}'.")

        try:
            resp = self.backend.request(
                self._method,
                f"{REST_PREFIX}/{self.table}",
                params=self._params,
                json=self._body,
                headers=self._headers,
            )
        except BackendError as exc:
            if self._single and exc.backend_code == "PGRST116":
                raise NoRowsError(self.table) from exc
            raise

        count = _parse_content_range(resp.headers.get("Content-Range"))

        if self._method == "HEAD" or not resp.content:
            return QueryResult(data=None, count=count)

        data = resp.json()
        if self._maybe_single:
            if isinstance(data, list):
                data = data[0] if data else None
        elif self._single and isinstance(data, list):
            # Writes answer with a list even when one object was asked for
            if not data:
                raise NoRowsError(self.table)
            data = data[0]
        return QueryResult(data=data, count=count)

    def count(self) -> int:
        """Return the exact number of rows matching the current filters."""
        self._method = "HEAD"
        if not any(key == "select" for key, _ in self._params):
            self._params.append(("select", "*"))
        self._headers["Prefer"] = "count=exact"
        return self.execute().count or 0
