"""Translate a QueryDescriptor into a RemoteQuery.

`RemoteQuery` is the request handed to a `RemoteStore`. It is immutable: every
fluent call returns a new instance. Nothing here validates column names; an
unknown column is reported by the store when the query runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping

from ..domain.query import FilterOp, QueryDescriptor

logger = logging.getLogger(__name__)

READ, INSERT, UPDATE, DELETE = "select", "insert", "update", "delete"


@dataclass(frozen=True)
class Condition:
    op: str
    column: str
    value: Any


@dataclass(frozen=True)
class RemoteQuery:
    table: str
    action: str = READ
    columns: str = "*"
    conditions: tuple[Condition, ...] = ()
    order: tuple[str, bool] | None = None
    row_limit: int | None = None
    single: bool = False
    rows: tuple[Mapping[str, Any], ...] = ()
    values: Mapping[str, Any] | None = None
    return_rows: bool = False

    # --- shape ---
    def select(self, columns: str = "*") -> "RemoteQuery":
        return replace(self, action=READ, columns=columns or "*")

    def order_by(self, column: str, ascending: bool = True) -> "RemoteQuery":
        return replace(self, order=(column, bool(ascending)))

    def limit(self, n: int) -> "RemoteQuery":
        return replace(self, row_limit=int(n))

    def maybe_single(self) -> "RemoteQuery":
        return replace(self, single=True)

    # --- writes ---
    def insert(self, rows) -> "RemoteQuery":
        if isinstance(rows, Mapping):
            rows = [rows]
        return replace(self, action=INSERT, rows=tuple(dict(r) for r in rows))

    def update(self, values: Mapping[str, Any]) -> "RemoteQuery":
        return replace(self, action=UPDATE, values=dict(values))

    def delete(self) -> "RemoteQuery":
        return replace(self, action=DELETE)

    def returning(self) -> "RemoteQuery":
        return replace(self, return_rows=True)

    # --- filters ---
    def _where(self, op: str, column: str, value: Any) -> "RemoteQuery":
        return replace(self, conditions=self.conditions + (Condition(op, column, value),))

    def eq(self, column: str, value: Any) -> "RemoteQuery":
        return self._where("eq", column, value)

    def neq(self, column: str, value: Any) -> "RemoteQuery":
        return self._where("neq", column, value)

    def gt(self, column: str, value: Any) -> "RemoteQuery":
        return self._where("gt", column, value)

    def gte(self, column: str, value: Any) -> "RemoteQuery":
        return self._where("gte", column, value)

    def lt(self, column: str, value: Any) -> "RemoteQuery":
        return self._where("lt", column, value)

    def lte(self, column: str, value: Any) -> "RemoteQuery":
        return self._where("lte", column, value)

    def like(self, column: str, pattern: str) -> "RemoteQuery":
        return self._where("like", column, pattern)

    def ilike(self, column: str, pattern: str) -> "RemoteQuery":
        return self._where("ilike", column, pattern)

    def in_(self, column: str, values) -> "RemoteQuery":
        return self._where("in", column, tuple(values))

    @property
    def relationships(self) -> tuple[str, ...]:
        """Relationship names embedded in the select string as ``name(*)``."""
        out = []
        for part in self.columns.split(","):
            part = part.strip()
            if part.endswith("(*)"):
                out.append(part[:-3].strip())
        return tuple(out)


def from_table(table: str) -> RemoteQuery:
    return RemoteQuery(table=table)


def _apply_filter(q: RemoteQuery, op: FilterOp, column: str, value: Any) -> RemoteQuery:
    if op is FilterOp.EQ:
        return q.eq(column, value)
    if op is FilterOp.NEQ:
        return q.neq(column, value)
    if op is FilterOp.GT:
        return q.gt(column, value)
    if op is FilterOp.GTE:
        return q.gte(column, value)
    if op is FilterOp.LT:
        return q.lt(column, value)
    if op is FilterOp.LTE:
        return q.lte(column, value)
    if op is FilterOp.LIKE:
        return q.like(column, f"%{value}%")
    if op is FilterOp.ILIKE:
        return q.ilike(column, f"%{value}%")
    return q.in_(column, value)


def build(descriptor: QueryDescriptor) -> RemoteQuery:
    """select -> relationships -> order -> limit -> filters."""
    q = from_table(descriptor.table).select(descriptor.select or "*")
    if descriptor.relationships:
        related = ", ".join(f"{r}(*)" for r in descriptor.relationships)
        q = q.select(f"*, {related}")
    if descriptor.order_by is not None:
        q = q.order_by(descriptor.order_by.column, descriptor.order_by.ascending)
    if descriptor.limit:
        q = q.limit(descriptor.limit)
    for clause in descriptor.filters:
        q = _apply_filter(q, clause.operator, clause.column, clause.value)
    logger.debug("built query for %s: %s", descriptor.table, q)
    return q
