"""Sprint status lifecycle and form validation.

    planned   -> active, cancelled
    active    -> completed, cancelled
    completed -> (terminal)
    cancelled -> planned

A new sprint (no original status) may start in any status. Validation is
local only; it never reaches the store.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Mapping

from ..errors import TransitionError, ValidationError


class SprintStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TRANSITIONS: dict[SprintStatus, frozenset[SprintStatus]] = {
    SprintStatus.PLANNED: frozenset({SprintStatus.ACTIVE, SprintStatus.CANCELLED}),
    SprintStatus.ACTIVE: frozenset({SprintStatus.COMPLETED, SprintStatus.CANCELLED}),
    SprintStatus.COMPLETED: frozenset(),
    SprintStatus.CANCELLED: frozenset({SprintStatus.PLANNED}),
}


def _status(value: Any) -> SprintStatus | None:
    if value is None or value == "":
        return None
    if isinstance(value, SprintStatus):
        return value
    try:
        return SprintStatus(str(value).lower())
    except ValueError:
        return None


def is_terminal(status: SprintStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(original: Any, new: Any) -> bool:
    src, dst = _status(original), _status(new)
    if dst is None:
        return False
    if src is None:
        return True
    if src == dst:
        return not is_terminal(src)
    return dst in TRANSITIONS[src]


def validate_transition(original: Any, new: Any) -> None:
    if not can_transition(original, new):
        raise TransitionError(str(_value(original)), str(_value(new)))


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


def parse_date(value: Any) -> dt.date | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    try:
        return dt.date.fromisoformat(text[:10])
    except ValueError:
        return None


def _get(form: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in form and form[k] is not None:
            return form[k]
    return None


def validate(form: Mapping[str, Any]) -> dict[str, str]:
    """Return a field -> message map; empty when the form is valid."""
    errors: dict[str, str] = {}

    name = _get(form, "name")
    if not name or not str(name).strip():
        errors["name"] = "Sprint name is required"

    raw_start = _get(form, "start_date", "startDate")
    raw_end = _get(form, "end_date", "endDate")
    start, end = parse_date(raw_start), parse_date(raw_end)
    if start is None:
        errors["start_date"] = "Start date is required" if raw_start is None else "Start date is invalid"
    if end is None:
        errors["end_date"] = "End date is required" if raw_end is None else "End date is invalid"
    if start is not None and end is not None and end < start:
        errors["end_date"] = "End date must be after start date"

    if not _get(form, "project_id", "projectId"):
        errors["project_id"] = "Project selection is required"

    status = _get(form, "status")
    if status is not None and _status(status) is None:
        errors["status"] = f"Unknown status: {status}"
    else:
        original = _get(form, "original_status", "originalStatus")
        if original is not None:
            if not can_transition(original, status or original):
                errors["status"] = f"Cannot change status from {_value(original)} to {_value(status or original)}"
    return errors


def ensure_valid(form: Mapping[str, Any]) -> None:
    errors = validate(form)
    if not errors:
        return
    original = _get(form, "original_status", "originalStatus")
    if "status" in errors and original is not None and _status(_get(form, "status")) is not None:
        raise TransitionError(str(_value(original)), str(_value(form.get("status"))), errors)
    raise ValidationError(errors)


@dataclass
class SprintEntity:
    id: int | None = None
    name: str = ""
    status: str = SprintStatus.PLANNED.value
    start_date: str | None = None
    end_date: str | None = None
    project_id: str | None = None
    progress: float = 0.0
    tasks_completed: int = 0
    tasks_total: int = 0
    story_points: int | None = None
    description: str | None = None
    goal: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SprintEntity":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in dict(row).items() if k in names})

    def to_payload(self) -> dict[str, Any]:
        """Columns a create/update may write; aggregates and id are left out."""
        out = asdict(self)
        for k in ("id", "progress", "tasks_completed", "tasks_total"):
            out.pop(k)
        return out
