# sprintboard/services/config_svc.py
"""Runtime settings kept in the `config` table (key -> text value).

Values are stored as text and parsed on read; `update_config` checks every
value before anything is written.
"""
from __future__ import annotations

from typing import Any, Callable

from ..db import get_conn
from ..logs import LogContext

DEFAULTS = {
    "guard_window_ms": "500",
    "safety_timeout_ms": "5000",
    "board_columns": "todo,in-progress,done",
    "board_table": "backlog_items",
    "default_project_id": "demo-project-1",
    "notification_history": "50",
}


def _non_negative_int(raw: Any) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError("must be >= 0")
    return value


def _positive_int(raw: Any) -> int:
    value = int(raw)
    if value <= 0:
        raise ValueError("must be > 0")
    return value


def _columns(raw: Any) -> list[str]:
    parts = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
    cols = [str(c).strip() for c in parts if str(c).strip()]
    if not cols:
        raise ValueError("at least one column is required")
    if len(set(cols)) != len(cols):
        raise ValueError("column names must be unique")
    return cols


def _text(raw: Any) -> str:
    value = str(raw).strip()
    if not value:
        raise ValueError("must not be empty")
    return value


PARSERS: dict[str, Callable[[Any], Any]] = {
    "guard_window_ms": _non_negative_int,
    "safety_timeout_ms": _positive_int,
    "board_columns": _columns,
    "board_table": _text,
    "default_project_id": _text,
    "notification_history": _positive_int,
}


def _store(value: Any) -> str:
    return ",".join(value) if isinstance(value, list) else str(value)


def ensure_default_config():
    """Insert missing keys; existing values are kept."""
    with get_conn() as conn:
        conn.executemany(
            "INSERT INTO config(key, value) VALUES (?, ?) ON CONFLICT(key) DO NOTHING",
            list(DEFAULTS.items()),
        )


def _read_raw() -> dict[str, str]:
    with get_conn() as conn:
        return {r["key"]: r["value"] for r in conn.execute("SELECT key, value FROM config")}


def get_config() -> dict:
    """Typed settings; a missing or unparseable stored value falls back to its default."""
    raw = _read_raw()
    out = {}
    for key, parse in PARSERS.items():
        try:
            out[key] = parse(raw.get(key, DEFAULTS[key]))
        except (TypeError, ValueError):
            out[key] = parse(DEFAULTS[key])
    return out


def update_config(upd: dict, log: LogContext) -> list[str]:
    unknown = sorted(k for k in upd if k not in PARSERS)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")
    parsed = {}
    for k, v in upd.items():
        try:
            parsed[k] = PARSERS[k](v)
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid value for {k}: {e}") from e

    before = _read_raw()
    with get_conn() as conn:
        conn.executemany(
            "INSERT INTO config(key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            [(k, _store(v)) for k, v in parsed.items()],
        )
    log.set_before(before)
    log.set_after(_read_raw())
    return list(parsed)
