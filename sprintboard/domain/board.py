from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

DEFAULT_COLUMNS: tuple[str, ...] = ("todo", "in-progress", "done")

COLUMN_TITLES = {"todo": "To Do", "in-progress": "In Progress", "done": "Done"}

BoardColumns = dict[str, list[Any]]


def build_columns(items: Iterable[Mapping[str, Any]], columns: Iterable[str] = DEFAULT_COLUMNS,
                  id_field: str = "id") -> BoardColumns:
    """Partition items by status; a missing or unknown status goes to the first column."""
    names = list(columns)
    if not names:
        raise ValueError("board needs at least one column")
    out: BoardColumns = {c: [] for c in names}
    seen = set()
    for item in items:
        item_id = item[id_field]
        if item_id in seen:
            continue
        seen.add(item_id)
        status = item.get("status") or names[0]
        out[status if status in out else names[0]].append(item_id)
    return out


def snapshot(columns: BoardColumns) -> BoardColumns:
    return copy.deepcopy(columns)


def apply_move(columns: BoardColumns, item_id: Any, from_col: str, from_idx: int,
               to_col: str, to_idx: int) -> BoardColumns:
    """Return a new partition with the item moved; the input is left untouched."""
    if from_col not in columns or to_col not in columns:
        raise KeyError(f"unknown column: {from_col if from_col not in columns else to_col}")
    source = columns[from_col]
    if not 0 <= from_idx < len(source) or source[from_idx] != item_id:
        raise ValueError(f"item {item_id!r} is not at {from_col}[{from_idx}]")
    out = snapshot(columns)
    moved = out[from_col].pop(from_idx)
    dest = out[to_col]
    dest.insert(max(0, min(to_idx, len(dest))), moved)
    return out


def column_of(columns: BoardColumns, item_id: Any) -> str | None:
    for name, ids in columns.items():
        if item_id in ids:
            return name
    return None


def is_partition(columns: BoardColumns, item_ids: Iterable[Any]) -> bool:
    flat = [i for ids in columns.values() for i in ids]
    return len(flat) == len(set(flat)) and set(flat) == set(item_ids)
