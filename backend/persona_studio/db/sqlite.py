"""SQLite-backed relational store.

Tables are addressed by name and rows are plain dicts, so callers depend only
on ``insert``/``update``/``select``. Columns listed in ``JSON_COLUMNS`` are
encoded with orjson on the way in and decoded on the way out.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any, Mapping

import orjson

from persona_studio.core.errors import PersistenceError, PersistenceErrorKind

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
)

TABLES = frozenset({"personas", "persona_content", "conversations", "messages"})

JSON_COLUMNS = frozenset({"metadata", "speech_patterns", "common_phrases", "memories"})

_PERMISSION_CODES = frozenset({"SQLITE_READONLY", "SQLITE_PERM", "SQLITE_AUTH", "SQLITE_CANTOPEN"})


class SQLiteDatabase:
    """Persona tables over one sqlite3 connection.

    A single connection is shared between the event loop and worker threads,
    so every statement runs under a re-entrant lock.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        with self._lock:
            if self._connection is None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
                self._connection.row_factory = sqlite3.Row
                for pragma in DEFAULT_PRAGMAS:
                    self._connection.execute(pragma)
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def executescript(self, script: str) -> None:
        with self._lock:
            self.connect().executescript(script)

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        if schema_sql is None:
            schema_path = Path(__file__).with_name("schema.sql")
            schema_sql = schema_path.read_text(encoding="utf-8")
        self.executescript(schema_sql)

    # Table contract -----------------------------------------------------

    def insert(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        _check_table(table)
        columns = list(record)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        with self._lock:
            conn = self.connect()
            try:
                conn.execute(sql, [_encode(col, record[col]) for col in columns])
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise _translate(exc, table) from exc
            rows = self.select(table, {"id": record["id"]}) if "id" in record else [dict(record)]
        if not rows:
            raise PersistenceError(PersistenceErrorKind.NO_ROWS, "Inserted row not returned", table=table)
        return rows[0]

    def update(self, table: str, filters: Mapping[str, Any], patch: Mapping[str, Any]) -> int:
        """Apply ``patch`` to rows matching ``filters``; returns affected row count."""
        _check_table(table)
        if not patch:
            return 0
        assignments = ", ".join(f"{col} = ?" for col in patch)
        where, params = _where(filters)
        sql = f"UPDATE {table} SET {assignments}{where}"
        with self._lock:
            conn = self.connect()
            try:
                cursor = conn.execute(sql, [_encode(col, val) for col, val in patch.items()] + params)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise _translate(exc, table) from exc
            return cursor.rowcount

    def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        _check_table(table)
        where, params = _where(filters or {})
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        with self._lock:
            try:
                rows = self.connect().execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise _translate(exc, table) from exc
        return [_decode_row(row) for row in rows]

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        rows = self.select(table, {"id": row_id})
        return rows[0] if rows else None


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")


def _where(filters: Mapping[str, Any]) -> tuple[str, list[Any]]:
    if not filters:
        return "", []
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in filters.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            values = list(value)
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        elif value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(value)
    return " WHERE " + " AND ".join(clauses), params


def _encode(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS and value is not None:
        return orjson.dumps(value).decode("utf-8")
    return value


def _decode_row(row: sqlite3.Row) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for key in row.keys():
        value = row[key]
        if key in JSON_COLUMNS and isinstance(value, str):
            value = orjson.loads(value)
        record[key] = value
    return record


def _translate(exc: sqlite3.Error, table: str | None) -> PersistenceError:
    """Map sqlite error codes onto the store's typed error kinds."""
    code = getattr(exc, "sqlite_errorname", "") or ""
    if code == "SQLITE_CONSTRAINT_FOREIGNKEY":
        kind = PersistenceErrorKind.FOREIGN_KEY
    elif code in _PERMISSION_CODES:
        kind = PersistenceErrorKind.PERMISSION
    else:
        kind = PersistenceErrorKind.OTHER
    return PersistenceError(kind, str(exc), table=table)


__all__ = ["SQLiteDatabase", "PersistenceError"]
