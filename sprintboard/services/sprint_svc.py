from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Iterable, Mapping

from ..domain import sprint_lifecycle
from ..domain.cancellation import CancellationToken
from ..domain.query import FilterClause, FilterOp, OrderBy, QueryDescriptor
from ..domain.result import Result
from ..domain.sprint_metrics import compute_progress, velocity_insights
from ..logs import LogContext
from ..notify import Notifier
from ..repository.store import RemoteStore
from .fetch_gateway import FetchGateway
from .mutation_gateway import MutationGateway
from .table_cache import TableExistenceCache

logger = logging.getLogger(__name__)

SPRINTS = "sprints"
TASKS = "tasks"

_CREATE_IGNORED = ("id", "original_status", "originalStatus")

WRITABLE = ("name", "description", "goal", "start_date", "end_date", "status", "project_id", "story_points")


def _iso(value: Any) -> Any:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


def sprint_payload(form: Mapping[str, Any], default_status: bool = True) -> dict[str, Any]:
    """Only the columns that exist on the sprints table; dates as ISO strings."""
    aliases = {"startDate": "start_date", "endDate": "end_date", "projectId": "project_id"}
    data = {aliases.get(k, k): v for k, v in form.items()}
    out = {k: _iso(data[k]) for k in WRITABLE if k in data}
    for k in ("description", "goal"):
        if k in out and not out[k]:
            out[k] = None
    if default_status and not out.get("status"):
        out["status"] = sprint_lifecycle.SprintStatus.PLANNED.value
    return out


class SprintService:
    def __init__(
        self,
        store: RemoteStore,
        notifier: Notifier | None = None,
        log_factory: Callable[[str], LogContext] | None = None,
        table_cache: TableExistenceCache | None = None,
    ):
        self.notifier = notifier or Notifier()
        self.reader = FetchGateway(store, SPRINTS, notifier=self.notifier, table_cache=table_cache)
        self.writer = MutationGateway(store, SPRINTS, notifier=self.notifier, log_factory=log_factory)
        self.tasks = FetchGateway(store, TASKS, notifier=self.notifier, table_cache=table_cache)

    # --- reads ---
    async def list_sprints(self, project_id: str | None = None, status: str | Iterable[str] | None = None,
                           cancel: CancellationToken | None = None) -> list[dict]:
        filters = []
        if project_id:
            filters.append(FilterClause("project_id", FilterOp.EQ, project_id))
        if status:
            op = FilterOp.EQ if isinstance(status, str) else FilterOp.IN
            filters.append(FilterClause("status", op, status if isinstance(status, str) else list(status)))
        desc = QueryDescriptor(SPRINTS, order_by=OrderBy("created_at", False), filters=tuple(filters))
        return await self.reader.fetch_all(desc, cancel)

    async def get_sprint(self, sprint_id: Any, cancel: CancellationToken | None = None) -> dict | None:
        return await self.reader.fetch_by_id(sprint_id, cancel=cancel)

    async def current_sprint(self, today: dt.date | None = None,
                             cancel: CancellationToken | None = None) -> dict | None:
        """Active sprint spanning today; otherwise the most recently ending active one."""
        day = (today or dt.date.today()).isoformat()
        active = FilterClause("status", FilterOp.EQ, sprint_lifecycle.SprintStatus.ACTIVE.value)
        in_range = QueryDescriptor(
            SPRINTS,
            order_by=OrderBy("end_date", True),
            limit=1,
            filters=(active, FilterClause("start_date", FilterOp.LTE, day), FilterClause("end_date", FilterOp.GTE, day)),
        )
        rows = await self.reader.fetch_all(in_range, cancel)
        if rows:
            return rows[0]
        latest = QueryDescriptor(SPRINTS, order_by=OrderBy("end_date", False), limit=1, filters=(active,))
        rows = await self.reader.fetch_all(latest, cancel)
        return rows[0] if rows else None

    async def tasks_for_sprints(self, sprint_ids: Iterable[Any], cancel: CancellationToken | None = None) -> list[dict]:
        ids = [i for i in sprint_ids if i is not None]
        if not ids:
            return []
        desc = QueryDescriptor(TASKS, filters=(FilterClause("sprint_id", FilterOp.IN, ids),))
        return await self.tasks.fetch_all(desc, cancel)

    async def insights(self, project_id: str | None = None, today: dt.date | None = None) -> dict:
        sprints = await self.list_sprints(project_id)
        return velocity_insights(sprints, today).to_dict()

    # --- writes ---
    async def create_sprint(self, form: Mapping[str, Any], cancel: CancellationToken | None = None) -> Result[dict]:
        """Validate locally, then insert. Raises ValidationError before any store call."""
        # transitions are only checked on update
        sprint_lifecycle.ensure_valid({k: v for k, v in form.items() if k not in _CREATE_IGNORED})
        return await self.writer.create_result(sprint_payload(form), cancel)

    async def update_sprint(self, sprint_id: Any, form: Mapping[str, Any], original_status: str | None = None,
                            cancel: CancellationToken | None = None) -> Result[dict]:
        """Validate the merged record (transition included), then update.

        When `original_status` is not supplied the persisted row is read first.
        """
        current: dict[str, Any] = {}
        if original_status is None:
            found = await self.reader.fetch_by_id_result(sprint_id, cancel=cancel)
            if not found.ok:
                return Result.failure(found.error)
            if not found.value:
                return Result.success(None)
            current = dict(found.value)
            original_status = current.get("status")
        merged = {**current, **dict(form), "id": sprint_id, "original_status": original_status}
        sprint_lifecycle.ensure_valid(merged)
        return await self.writer.update_result(sprint_id, sprint_payload(form, default_status=False), cancel)

    async def delete_sprint(self, sprint_id: Any, cancel: CancellationToken | None = None) -> bool:
        if sprint_id is None:
            return False
        return await self.writer.remove(sprint_id, cancel)

    async def update_progress(self, sprint_id: Any, progress: float, tasks_completed: int, tasks_total: int,
                              story_points: int | None = None) -> bool:
        values: dict[str, Any] = {"progress": progress, "tasks_completed": tasks_completed, "tasks_total": tasks_total}
        if story_points is not None:
            values["story_points"] = story_points
        return (await self.writer.update_result(sprint_id, values)).ok

    async def recompute_progress(self, sprint_id: Any) -> dict | None:
        """Re-derive the aggregate columns from the sprint's tasks.

        Two separate calls (read tasks, write sprint); not atomic.
        """
        tasks = await self.tasks.fetch_all_result(
            QueryDescriptor(TASKS, filters=(FilterClause("sprint_id", FilterOp.EQ, sprint_id),))
        )
        if not tasks.ok:
            return None
        agg = compute_progress(tasks.value or [])
        ok = await self.update_progress(
            sprint_id, agg["progress"], agg["tasks_completed"], agg["tasks_total"], agg["story_points"]
        )
        return agg if ok else None
