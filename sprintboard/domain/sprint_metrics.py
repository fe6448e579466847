from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .sprint_lifecycle import SprintStatus, parse_date

DONE_STATUSES = frozenset({"done", "completed"})


def round_progress(value: float) -> float:
    return round(float(value), 2)


def compute_progress(tasks: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Aggregate columns for one sprint from its tasks."""
    total = completed = 0
    points = 0
    for t in tasks:
        total += 1
        if (t.get("status") or "").lower() in DONE_STATUSES:
            completed += 1
        points += int(t.get("story_points") or 0)
    progress = round_progress(completed * 100.0 / total) if total else 0.0
    return {
        "progress": progress,
        "tasks_completed": completed,
        "tasks_total": total,
        "story_points": points,
    }


@dataclass(frozen=True)
class VelocityInsights:
    estimated_velocity: int
    recommended_capacity: int
    risk_level: str
    predicted_completion_date: dt.date | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimated_velocity": self.estimated_velocity,
            "recommended_capacity": self.recommended_capacity,
            "risk_level": self.risk_level,
            "predicted_completion_date": (
                self.predicted_completion_date.isoformat() if self.predicted_completion_date else None
            ),
        }


def velocity_insights(sprints: Iterable[Mapping[str, Any]], today: dt.date | None = None) -> VelocityInsights:
    """
    Heuristic sprint outlook, no model involved.

    - velocity: mean story points of completed sprints, rounded
    - capacity: 90% of velocity
    - risk: trend over the three most recent completed sprints
      (drop of more than 5 points -> High, rise of more than 5 -> Low)
    - predicted completion: the active sprint's end date, pushed out
      proportionally when it is past its midpoint with under half the tasks done
    """
    today = today or dt.date.today()
    sprints = list(sprints)
    completed = [s for s in sprints if s.get("status") == SprintStatus.COMPLETED.value]
    if not completed:
        return VelocityInsights(0, 0, "Medium", None)

    points = [int(s.get("story_points") or 0) for s in completed]
    velocity = int(round(sum(points) / len(points)))
    capacity = int(round(velocity * 0.9))

    risk = "Medium"
    if len(completed) >= 3:
        recent = sorted(completed, key=lambda s: str(s.get("end_date") or ""), reverse=True)[:3]
        trend = int(recent[0].get("story_points") or 0) - int(recent[2].get("story_points") or 0)
        if trend < -5:
            risk = "High"
        elif trend > 5:
            risk = "Low"

    predicted = None
    active = next((s for s in sprints if s.get("status") == SprintStatus.ACTIVE.value), None)
    if active:
        start, end = parse_date(active.get("start_date")), parse_date(active.get("end_date"))
        if start and end:
            duration = (end - start).days
            total = int(active.get("tasks_total") or 0)
            done = int(active.get("tasks_completed") or 0)
            ratio = done / total if total else 0.0
            midpoint = start + dt.timedelta(days=duration * 0.5)
            if ratio < 0.5 and today > midpoint:
                delay_factor = 0.5 / (ratio if ratio > 0 else 0.1)
                predicted = end + dt.timedelta(days=round((delay_factor - 1) * duration))
            else:
                predicted = end
    return VelocityInsights(velocity, capacity, risk, predicted)
