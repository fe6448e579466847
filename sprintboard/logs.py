"""Persistent operation log.

Every write through a mutation gateway (and every settings change) leaves one
row in `operation_log`: who, what entity, payload, before/after snapshots,
outcome and latency. JSON columns are decoded again when searched.
"""
from __future__ import annotations

import datetime as dt
import json
import time
import uuid
from typing import Any, Optional

from .db import get_conn

DDL = """
CREATE TABLE IF NOT EXISTS operation_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user TEXT NOT NULL,
  action TEXT NOT NULL,
  entity_type TEXT,
  entity_id TEXT,
  request_id TEXT,
  before_json TEXT,
  after_json TEXT,
  payload_json TEXT,
  result TEXT,
  err_msg TEXT,
  latency_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_log_ts ON operation_log(ts);
CREATE INDEX IF NOT EXISTS idx_log_action ON operation_log(action);
CREATE INDEX IF NOT EXISTS idx_log_entity ON operation_log(entity_type, entity_id);
"""

_JSON_COLUMNS = ("before_json", "after_json", "payload_json")

_INSERT = """INSERT INTO operation_log
(ts,user,action,entity_type,entity_id,request_id,before_json,after_json,payload_json,result,err_msg,latency_ms)
VALUES(:ts,:user,:action,:entity_type,:entity_id,:request_id,:before_json,:after_json,:payload_json,:result,:err_msg,:latency_ms)"""


def ensure_log_schema(db_path: Optional[str] = None):
    with get_conn(db_path) as conn:
        conn.executescript(DDL)
        conn.commit()


def _dumps(obj):
    # dates and Decimals end up as strings
    return None if obj is None else json.dumps(obj, ensure_ascii=False, default=str)


def _loads(text):
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class LogContext:
    """Collects one operation's details; `write()` persists them.

    Also usable as a context manager: leaving the block writes OK, or ERROR
    with the exception text (the exception still propagates).
    """

    def __init__(self, action: str, user: str = "owner", db_path: Optional[str] = None):
        self.action = action
        self.user = user
        self.db_path = db_path
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None
        self.written = False

    def set_entity(self, etype: str, eid: Any):
        self.entity_type = etype
        self.entity_id = None if eid is None else str(eid)

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def record(self, result: str, err: Optional[str]) -> dict:
        return {
            "ts": dt.datetime.now(dt.timezone.utc).isoformat(),
            "user": self.user,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "request_id": self.request_id,
            "before_json": _dumps(self.before),
            "after_json": _dumps(self.after),
            "payload_json": _dumps(self.payload),
            "result": result,
            "err_msg": err,
            "latency_ms": int((time.perf_counter() - self.start) * 1000),
        }

    def write(self, result: str = "OK", err: Optional[str] = None):
        with get_conn(self.db_path) as conn:
            conn.execute(_INSERT, self.record(result, err))
            conn.commit()
        self.written = True

    def __enter__(self) -> "LogContext":
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.written:
            if exc is None:
                self.write("OK")
            else:
                self.write("ERROR", str(exc))
        return False


def _decode(row) -> dict:
    item = dict(row)
    for col in _JSON_COLUMNS:
        item[col[:-5]] = _loads(item.pop(col))
    return item


def search_logs(q: str | None, action: str | None, ts_from: str | None, ts_to: str | None,
                page: int, size: int, entity_type: str | None = None, entity_id: str | None = None):
    clauses = {
        "(payload_json LIKE :q OR before_json LIKE :q OR after_json LIKE :q)": ("q", f"%{q}%" if q else None),
        "action = :action": ("action", action),
        "entity_type = :etype": ("etype", entity_type),
        "entity_id = :eid": ("eid", None if entity_id is None else str(entity_id)),
        "ts >= :from": ("from", ts_from),
        "ts <= :to": ("to", ts_to),
    }
    where, params = [], {}
    for sql, (name, value) in clauses.items():
        if value:
            where.append(sql)
            params[name] = value
    wh = " WHERE " + " AND ".join(where) if where else ""
    sql = f"SELECT * FROM operation_log{wh} ORDER BY ts DESC, id DESC LIMIT :limit OFFSET :offset"
    with get_conn() as conn:
        total = conn.execute(f"SELECT COUNT(1) AS cnt FROM operation_log{wh}", params).fetchone()["cnt"]
        rows = conn.execute(sql, {**params, "limit": size, "offset": (page - 1) * size}).fetchall()
    return total, [_decode(r) for r in rows]


def entity_history(entity_type: str, entity_id: Any, limit: int = 50) -> list[dict]:
    """Oldest-first audit trail of one record."""
    _, items = search_logs(None, None, None, None, 1, limit, entity_type, entity_id)
    return list(reversed(items))
