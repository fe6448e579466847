"""Declarative read descriptors.

A `QueryDescriptor` says what to read from one table: columns, ordering,
limit, relationship expansion and filter clauses. Clauses always combine with
AND; callers needing OR issue separate queries.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from ..errors import UnknownOperatorError


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


@dataclass(frozen=True)
class FilterClause:
    column: str
    operator: FilterOp
    value: Any

    def __post_init__(self):
        op = self.operator
        if not isinstance(op, FilterOp):
            try:
                op = FilterOp(str(op).lower())
            except ValueError:
                raise UnknownOperatorError(f"unknown filter operator: {self.operator!r}") from None
        value = self.value
        if op is FilterOp.IN:
            value = tuple(value) if _is_sequence(value) else (value,)
        elif _is_sequence(value):
            # array value on a scalar operator is treated as membership
            op, value = FilterOp.IN, tuple(value)
        object.__setattr__(self, "operator", op)
        object.__setattr__(self, "value", value)


@dataclass(frozen=True)
class OrderBy:
    column: str
    ascending: bool = True


@dataclass(frozen=True)
class QueryDescriptor:
    table: str
    select: str = "*"
    order_by: OrderBy | None = None
    limit: int | None = None
    relationships: tuple[str, ...] = ()
    filters: tuple[FilterClause, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.table:
            raise ValueError("table is required")
        object.__setattr__(self, "relationships", tuple(self.relationships or ()))
        object.__setattr__(self, "filters", tuple(self.filters or ()))
        if self.limit is not None and int(self.limit) < 0:
            raise ValueError("limit must be >= 0")

    def with_filters(self, *clauses: FilterClause) -> "QueryDescriptor":
        return replace(self, filters=self.filters + tuple(clauses))

    def for_table(self, table: str) -> "QueryDescriptor":
        return replace(self, table=table)

    @classmethod
    def from_options(cls, table: str, options: Mapping[str, Any] | None = None) -> "QueryDescriptor":
        """Build a descriptor from a loosely-typed options mapping (JSON bodies, legacy callers)."""
        opts = dict(options or {})
        order = opts.get("order_by", opts.get("orderBy"))
        order_by = None
        if order:
            order_by = OrderBy(order["column"], bool(order.get("ascending", True)))
        filters = tuple(
            FilterClause(f["column"], f.get("operator", "eq"), f.get("value"))
            for f in (opts.get("filters") or [])
        )
        limit = opts.get("limit")
        return cls(
            table=table,
            select=opts.get("select") or "*",
            order_by=order_by,
            limit=int(limit) if limit else None,
            relationships=tuple(opts.get("relationships") or ()),
            filters=filters,
        )


def where(column: str, operator: str | FilterOp, value: Any) -> FilterClause:
    return FilterClause(column, operator, value)
