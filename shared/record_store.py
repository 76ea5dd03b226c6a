"""
Record store access for the marketplace functions.

The functions never talk to a database directly. They go through a small
"record store" interface modelled on the backend-as-a-service the storefront
uses: select rows with equality / membership filters, insert rows, update
rows, and invoke another server function by name.

Two backends:
- InMemoryRecordStore: tables held in memory, lazily loaded from JSON
  fixtures in data/. Used by tests, the CLI demo and local development.
- RestRecordStore: PostgREST-style REST API over httpx, authenticated with
  the service credential. Used in production.

Design decisions:
- Filters are plain dicts (column -> value / column -> values), enough for
  every query the functions make
- A multi-row insert is one write: it succeeds or fails as a whole
- Store failures surface as RecordStoreError carrying the store's message
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

import httpx

from shared.config import Settings
from shared.errors import MarketplaceError, RecordStoreError

logger = logging.getLogger("record_store")

Row = dict[str, Any]
Filters = Optional[dict[str, Any]]
FunctionHandler = Callable[[dict[str, Any]], dict[str, Any]]


class FunctionInvocationError(RecordStoreError):
    """A remote function answered with a non-success status."""

    def __init__(self, message: Optional[str] = None, status: int = 400, body: Optional[Any] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class RecordStore(ABC):
    """Interface every record store backend implements."""

    @abstractmethod
    def select(
        self,
        table: str,
        columns: str = "*",
        *,
        eq: Filters = None,
        in_: Optional[dict[str, Iterable[Any]]] = None,
    ) -> list[Row]:
        """
        Select rows matching all filters.

        Args:
            table: Table name
            columns: Comma-separated column list, or "*"
            eq: column -> value equality filters
            in_: column -> allowed values membership filters

        Returns:
            Matching rows, projected to the requested columns
        """

    @abstractmethod
    def insert(self, table: str, rows: Union[Row, list[Row]]) -> list[Row]:
        """Insert one row or a batch of rows in a single write."""

    @abstractmethod
    def update(self, table: str, values: Row, *, eq: dict[str, Any]) -> list[Row]:
        """Update rows matching the equality filters; returns the updated rows."""

    @abstractmethod
    def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Invoke a server function by name.

        Raises:
            FunctionInvocationError: If the function reports a failure
        """

    def maybe_single(self, table: str, columns: str = "*", *, eq: Filters = None) -> Optional[Row]:
        """
        Select at most one row.

        Returns None when nothing matches.

        Raises:
            RecordStoreError: If more than one row matches
        """
        rows = self.select(table, columns, eq=eq)
        if len(rows) > 1:
            raise RecordStoreError(f"Multiple rows returned from {table}")
        return rows[0] if rows else None


# =============================================================================
# In-memory backend
# =============================================================================

class InMemoryRecordStore(RecordStore):
    """
    Record store held in memory.

    Tables are loaded lazily from ``<data_dir>/<table>.json`` the first time
    they are touched; tables without a fixture file start empty. Writes only
    change the in-memory copy.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        tables: Optional[dict[str, list[Row]]] = None,
    ):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding JSON fixtures. None means no fixtures.
            tables: Rows to seed directly, keyed by table name. Seeded tables
                    are not loaded from fixtures.
        """
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self._tables: dict[str, list[Row]] = {
            name: copy.deepcopy(rows) for name, rows in (tables or {}).items()
        }
        self._functions: dict[str, FunctionHandler] = {}

        # table -> message; inserts into these tables fail (for tests)
        self.failing_tables: dict[str, str] = {}

    # =========================================================================
    # Data Loading (lazy)
    # =========================================================================

    def _load_json(self, table: str) -> list[Row]:
        """Load a JSON fixture file."""
        if self.data_dir is None:
            return []
        filepath = self.data_dir / f"{table}.json"
        if not filepath.exists():
            return []
        with open(filepath, "r") as f:
            return json.load(f)

    def _table(self, table: str) -> list[Row]:
        if table not in self._tables:
            self._tables[table] = self._load_json(table)
        return self._tables[table]

    @staticmethod
    def _matches(row: Row, eq: Filters, in_: Optional[dict[str, Iterable[Any]]]) -> bool:
        for column, value in (eq or {}).items():
            if row.get(column) != value:
                return False
        for column, values in (in_ or {}).items():
            if row.get(column) not in list(values):
                return False
        return True

    @staticmethod
    def _project(row: Row, columns: str) -> Row:
        if columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [c.strip() for c in columns.split(",") if c.strip()]
        return {c: copy.deepcopy(row.get(c)) for c in wanted}

    # =========================================================================
    # RecordStore
    # =========================================================================

    def select(self, table, columns="*", *, eq=None, in_=None):
        return [
            self._project(row, columns)
            for row in self._table(table)
            if self._matches(row, eq, in_)
        ]

    def insert(self, table, rows):
        batch = [rows] if isinstance(rows, dict) else list(rows)
        if table in self.failing_tables:
            raise RecordStoreError(self.failing_tables[table])
        stored = [copy.deepcopy(row) for row in batch]
        self._table(table).extend(stored)
        logger.debug(f"Inserted {len(stored)} row(s) into {table}")
        return copy.deepcopy(stored)

    def update(self, table, values, *, eq):
        updated = []
        for row in self._table(table):
            if self._matches(row, eq, None):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    def invoke(self, function_name, body):
        handler = self._functions.get(function_name)
        if handler is None:
            raise FunctionInvocationError(f"Function not found: {function_name}", status=404)
        try:
            return handler(body)
        except MarketplaceError as e:
            raise FunctionInvocationError(e.message, status=e.status_code, body={"error": e.message}) from e

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def register_function(self, function_name: str, handler: FunctionHandler) -> None:
        """Make ``invoke(function_name, ...)`` call ``handler`` in-process."""
        self._functions[function_name] = handler

    def rows(self, table: str) -> list[Row]:
        """All rows of a table (copies). Useful in tests."""
        return copy.deepcopy(self._table(table))

    def reload(self) -> None:
        """Drop in-memory state so tables are re-read from fixtures."""
        self._tables = {}


# =============================================================================
# REST backend
# =============================================================================

_RESERVED = set(',().:" ')


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    text = str(value)
    if any(ch in _RESERVED for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def _eq_filter(value: Any) -> str:
    if value is None:
        return "is.null"
    return f"eq.{_format_value(value)}"


def _in_filter(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(_format_value(v) for v in values) + ")"


class RestRecordStore(RecordStore):
    """
    Record store backed by a PostgREST-style REST API.

    Tables live under ``/rest/v1/<table>`` and functions under
    ``/functions/v1/<name>``. Every request carries the service credential
    as both ``apikey`` and bearer token.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=url.rstrip("/"),
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "RestRecordStore":
        """
        Build from settings.

        Raises:
            ConfigurationError: If the store URL or service credential is missing
        """
        message = "Supabase environment not configured"
        url = settings.require("supabase_url", message)
        key = settings.require("supabase_service_role_key", message)
        return cls(url, key, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RestRecordStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            for key in ("error", "message", "msg"):
                if payload.get(key):
                    return str(payload[key])
        return f"Record store error: {response.status_code}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        json_body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            return self._client.request(method, path, params=params, json=json_body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise RecordStoreError(f"Record store unavailable: {e}") from e

    def _table_request(self, method: str, table: str, **kwargs: Any) -> list[Row]:
        response = self._request(method, f"/rest/v1/{table}", **kwargs)
        if not response.is_success:
            raise RecordStoreError(self._error_message(response))
        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    @staticmethod
    def _filter_params(eq: Filters, in_: Optional[dict[str, Iterable[Any]]] = None) -> dict[str, str]:
        params = {column: _eq_filter(value) for column, value in (eq or {}).items()}
        params.update({column: _in_filter(values) for column, values in (in_ or {}).items()})
        return params

    def select(self, table, columns="*", *, eq=None, in_=None):
        params = {"select": columns.replace(" ", "")}
        params.update(self._filter_params(eq, in_))
        return self._table_request("GET", table, params=params)

    def insert(self, table, rows):
        return self._table_request(
            "POST",
            table,
            json_body=rows,
            headers={"Prefer": "return=representation"},
        )

    def update(self, table, values, *, eq):
        return self._table_request(
            "PATCH",
            table,
            params=self._filter_params(eq),
            json_body=values,
            headers={"Prefer": "return=representation"},
        )

    def invoke(self, function_name, body):
        response = self._request("POST", f"/functions/v1/{function_name}", json_body=body)
        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        if not response.is_success:
            raise FunctionInvocationError(
                self._error_message(response),
                status=response.status_code,
                body=payload,
            )
        return payload if isinstance(payload, dict) else {"data": payload}


# =============================================================================
# Factory
# =============================================================================

def create_record_store(settings: Settings) -> RecordStore:
    """
    Build the record store the settings ask for.

    Raises:
        ConfigurationError: If the REST backend is selected without credentials
    """
    if settings.record_store_backend == "memory":
        logger.info(f"Using in-memory record store (fixtures: {settings.data_dir})")
        return InMemoryRecordStore(data_dir=settings.data_dir)
    return RestRecordStore.from_settings(settings)
