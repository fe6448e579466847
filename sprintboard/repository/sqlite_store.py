"""SQLite-backed RemoteStore.

Compiles a RemoteQuery into parameterised SQL and runs it off the event loop.
Relationship names in the select list (``*, projects(*)``) are resolved through
the schema's foreign keys: a parent table nests one object, a child table
nests a list.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
import sqlite3
from typing import Any

from anyio import to_thread

from ..db import get_conn
from .query_builder import DELETE, INSERT, READ, UPDATE, Condition, RemoteQuery
from .store import (
    NO_ROWS,
    QUERY_FAILED,
    UNDEFINED_COLUMN,
    UNDEFINED_TABLE,
    RemoteStore,
    StoreResponse,
)

logger = logging.getLogger(__name__)

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COMPARE = {"eq": "=", "neq": "!=", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}


class StoreQueryError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


def _q(name: str) -> str:
    if not _IDENT.match(name or ""):
        raise StoreQueryError(QUERY_FAILED, f"invalid identifier: {name!r}")
    # double quotes fall back to a string literal for unknown names
    return f"`{name}`"


def _param(value: Any) -> Any:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _like_to_glob(pattern: str) -> str:
    return str(pattern).replace("*", "[*]").replace("?", "[?]").replace("%", "*").replace("_", "?")


def _where_sql(conditions: tuple[Condition, ...]) -> tuple[str, list[Any]]:
    parts: list[str] = []
    params: list[Any] = []
    for c in conditions:
        col = _q(c.column)
        if c.op in ("eq", "neq") and c.value is None:
            parts.append(f"{col} IS {'NOT ' if c.op == 'neq' else ''}NULL")
        elif c.op in _COMPARE:
            parts.append(f"{col} {_COMPARE[c.op]} ?")
            params.append(_param(c.value))
        elif c.op == "like":
            parts.append(f"{col} GLOB ?")
            params.append(_like_to_glob(c.value))
        elif c.op == "ilike":
            parts.append(f"{col} LIKE ?")
            params.append(_param(c.value))
        elif c.op == "in":
            values = list(c.value or ())
            if not values:
                parts.append("0")
                continue
            parts.append(f"{col} IN ({','.join('?' * len(values))})")
            params.extend(_param(v) for v in values)
        else:
            raise StoreQueryError(QUERY_FAILED, f"unsupported operator: {c.op}")
    return (" WHERE " + " AND ".join(parts)) if parts else "", params


def _split_select(columns: str) -> tuple[list[str], list[str]]:
    cols, rels = [], []
    for part in (columns or "*").split(","):
        part = part.strip()
        if not part:
            continue
        if part.endswith("(*)"):
            rels.append(part[:-3].strip())
        else:
            cols.append(part)
    return cols or ["*"], rels


def _classify(err: sqlite3.Error) -> StoreQueryError:
    msg = str(err)
    if "no such table" in msg:
        return StoreQueryError(UNDEFINED_TABLE, msg)
    if "no such column" in msg or "has no column" in msg:
        return StoreQueryError(UNDEFINED_COLUMN, msg)
    return StoreQueryError(QUERY_FAILED, msg)


class SqliteStore(RemoteStore):
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path

    async def execute(self, query: RemoteQuery) -> StoreResponse:
        return await to_thread.run_sync(self.execute_sync, query)

    def execute_sync(self, query: RemoteQuery) -> StoreResponse:
        try:
            with get_conn(self.db_path) as conn:
                if query.action == READ:
                    data = self._read(conn, query)
                elif query.action == INSERT:
                    data = self._insert(conn, query)
                elif query.action == UPDATE:
                    data = self._update(conn, query)
                elif query.action == DELETE:
                    data = self._delete(conn, query)
                else:
                    raise StoreQueryError(QUERY_FAILED, f"unsupported action: {query.action}")
        except StoreQueryError as e:
            logger.debug("store error on %s: %s", query.table, e)
            return StoreResponse.failed(e.code, str(e))
        except sqlite3.Error as e:
            err = _classify(e)
            logger.debug("sqlite error on %s: %s", query.table, e)
            return StoreResponse.failed(err.code, str(err))
        return data

    # --- reads ---
    def _read(self, conn: sqlite3.Connection, query: RemoteQuery) -> StoreResponse:
        cols, rels = _split_select(query.columns)
        col_sql = ", ".join("*" if c == "*" else _q(c) for c in cols)
        where, params = _where_sql(query.conditions)
        sql = f"SELECT {col_sql} FROM {_q(query.table)}{where}"
        if query.order:
            sql += f" ORDER BY {_q(query.order[0])} {'ASC' if query.order[1] else 'DESC'}"
        if query.row_limit is not None:
            sql += " LIMIT ?"
            params.append(query.row_limit)
        rows = [dict(r) for r in conn.execute(sql, params).fetchall()]
        for rel in rels:
            self._embed(conn, query.table, rel, rows)
        if query.single:
            if not rows:
                return StoreResponse.failed(NO_ROWS, "no rows returned")
            if len(rows) > 1:
                return StoreResponse.failed(QUERY_FAILED, "multiple rows returned for single-row query")
            return StoreResponse(data=rows[0])
        return StoreResponse(data=rows)

    def _embed(self, conn: sqlite3.Connection, table: str, rel: str, rows: list[dict]) -> None:
        _q(rel)
        for fk in conn.execute(f"PRAGMA foreign_key_list({table})").fetchall():
            if fk["table"] == rel:
                src, dst = fk["from"], fk["to"] or "id"
                for row in rows:
                    parent = conn.execute(
                        f"SELECT * FROM {_q(rel)} WHERE {_q(dst)} = ?", (row.get(src),)
                    ).fetchone()
                    row[rel] = dict(parent) if parent else None
                return
        for fk in conn.execute(f"PRAGMA foreign_key_list({rel})").fetchall():
            if fk["table"] == table:
                src, dst = fk["from"], fk["to"] or "id"
                for row in rows:
                    children = conn.execute(
                        f"SELECT * FROM {_q(rel)} WHERE {_q(src)} = ?", (row.get(dst),)
                    ).fetchall()
                    row[rel] = [dict(c) for c in children]
                return
        if not conn.execute("SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (rel,)).fetchone():
            raise StoreQueryError(UNDEFINED_TABLE, f"no such table: {rel}")
        raise StoreQueryError(QUERY_FAILED, f"no relationship between {table} and {rel}")

    def _rows_by_rowid(self, conn: sqlite3.Connection, table: str, rowids: list[int]) -> list[dict]:
        if not rowids:
            return []
        marks = ",".join("?" * len(rowids))
        rows = conn.execute(
            f"SELECT * FROM {_q(table)} WHERE rowid IN ({marks}) ORDER BY rowid", rowids
        ).fetchall()
        return [dict(r) for r in rows]

    def _matching_rowids(self, conn: sqlite3.Connection, query: RemoteQuery) -> list[int]:
        where, params = _where_sql(query.conditions)
        return [r[0] for r in conn.execute(f"SELECT rowid FROM {_q(query.table)}{where}", params).fetchall()]

    # --- writes ---
    def _insert(self, conn: sqlite3.Connection, query: RemoteQuery) -> StoreResponse:
        table = _q(query.table)
        rowids: list[int] = []
        conn.execute("BEGIN")
        try:
            for row in query.rows:
                if row:
                    cols = ", ".join(_q(k) for k in row)
                    marks = ", ".join("?" * len(row))
                    cur = conn.execute(
                        f"INSERT INTO {table} ({cols}) VALUES ({marks})", [_param(v) for v in row.values()]
                    )
                else:
                    cur = conn.execute(f"INSERT INTO {table} DEFAULT VALUES")
                rowids.append(int(cur.lastrowid))
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        data = self._rows_by_rowid(conn, query.table, rowids) if query.return_rows else None
        return StoreResponse(data=data)

    def _update(self, conn: sqlite3.Connection, query: RemoteQuery) -> StoreResponse:
        values = dict(query.values or {})
        if not values:
            raise StoreQueryError(QUERY_FAILED, "update without values")
        rowids = self._matching_rowids(conn, query)
        if rowids:
            sets = ", ".join(f"{_q(k)} = ?" for k in values)
            marks = ",".join("?" * len(rowids))
            conn.execute(
                f"UPDATE {_q(query.table)} SET {sets} WHERE rowid IN ({marks})",
                [_param(v) for v in values.values()] + rowids,
            )
        else:
            # still validate the column names against the table
            for k in values:
                conn.execute(f"SELECT {_q(k)} FROM {_q(query.table)} LIMIT 0")
        data = self._rows_by_rowid(conn, query.table, rowids) if query.return_rows else None
        return StoreResponse(data=data)

    def _delete(self, conn: sqlite3.Connection, query: RemoteQuery) -> StoreResponse:
        rowids = self._matching_rowids(conn, query)
        before = self._rows_by_rowid(conn, query.table, rowids) if query.return_rows else None
        if rowids:
            marks = ",".join("?" * len(rowids))
            conn.execute(f"DELETE FROM {_q(query.table)} WHERE rowid IN ({marks})", rowids)
        return StoreResponse(data=before)
