from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from ..errors import TransitionError, ValidationError
from ..services.sprint_form_svc import FAILED, INVALID, REJECTED
from ..services.wiring import get_tracker

router = APIRouter()


class SprintBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    goal: Optional[str] = None
    start_date: Optional[str] = None  # YYYY-MM-DD
    end_date: Optional[str] = None
    status: Optional[str] = None  # planned/active/completed/cancelled
    project_id: Optional[str] = None
    story_points: Optional[int] = None


def _invalid(e: ValidationError):
    kind = "transition" if isinstance(e, TransitionError) else "validation"
    return HTTPException(status_code=422, detail={"kind": kind, "errors": e.errors})


def _failed(res):
    return HTTPException(status_code=502, detail={"code": res.error.code, "message": str(res.error)})


@router.get("/api/sprints")
async def api_sprints_list(
    project_id: Optional[str] = None,
    status: Optional[str] = Query(None, description="comma separated"),
):
    statuses = [s.strip() for s in status.split(",") if s.strip()] if status else None
    if statuses and len(statuses) == 1:
        statuses = statuses[0]
    items = await get_tracker().sprints.list_sprints(project_id, statuses)
    return {"items": items}


@router.get("/api/sprints/current")
async def api_sprints_current():
    return {"sprint": await get_tracker().sprints.current_sprint()}


@router.get("/api/sprints/insights")
async def api_sprints_insights(project_id: Optional[str] = None):
    return await get_tracker().sprints.insights(project_id)


class FormOpenBody(BaseModel):
    sprint_id: Optional[int] = None


def _open_form(form_id: str):
    session = get_tracker().form(form_id)
    if session is None:
        raise HTTPException(status_code=404, detail="form_not_found")
    return session


@router.post("/api/sprints/forms", status_code=201)
async def api_sprint_form_open(body: FormOpenBody):
    tracker = get_tracker()
    sprint = None
    if body.sprint_id is not None:
        sprint = await tracker.sprints.get_sprint(body.sprint_id)
        if sprint is None:
            raise HTTPException(status_code=404, detail="sprint_not_found")
    return {"form_id": tracker.open_form(sprint), "editing": sprint is not None}


@router.post("/api/sprints/forms/{form_id}/submit")
async def api_sprint_form_submit(form_id: str, body: SprintBody):
    out = await _open_form(form_id).submit(body.model_dump(exclude_unset=True))
    if out.status == REJECTED:
        raise HTTPException(status_code=409, detail={"reason": out.rejection.reason})
    if out.status == INVALID:
        raise HTTPException(status_code=422, detail={"kind": "validation", "errors": out.errors})
    if out.status == FAILED:
        raise HTTPException(status_code=502, detail="save_failed")
    return {"message": "ok", "sprint": out.record}


@router.post("/api/sprints/forms/{form_id}/close")
async def api_sprint_form_close(form_id: str):
    if not get_tracker().close_form(form_id):
        raise HTTPException(status_code=404, detail="form_not_found")
    return {"message": "ok"}


@router.get("/api/sprints/{sprint_id}")
async def api_sprints_get(sprint_id: int):
    sprint = await get_tracker().sprints.get_sprint(sprint_id)
    if sprint is None:
        raise HTTPException(status_code=404, detail="sprint_not_found")
    return sprint


@router.get("/api/sprints/{sprint_id}/tasks")
async def api_sprints_tasks(sprint_id: int):
    return {"items": await get_tracker().sprints.tasks_for_sprints([sprint_id])}


@router.post("/api/sprints", status_code=201)
async def api_sprints_create(body: SprintBody):
    try:
        res = await get_tracker().sprints.create_sprint(body.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise _invalid(e)
    if not res.ok:
        raise _failed(res)
    return {"message": "ok", "sprint": res.value}


@router.put("/api/sprints/{sprint_id}")
async def api_sprints_update(sprint_id: int, body: SprintBody):
    try:
        res = await get_tracker().sprints.update_sprint(sprint_id, body.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise _invalid(e)
    if not res.ok:
        raise _failed(res)
    if res.value is None:
        raise HTTPException(status_code=404, detail="sprint_not_found")
    return {"message": "ok", "sprint": res.value}


@router.delete("/api/sprints/{sprint_id}")
async def api_sprints_delete(sprint_id: int):
    if not await get_tracker().sprints.delete_sprint(sprint_id):
        raise HTTPException(status_code=502, detail="delete_failed")
    return {"message": "ok"}


@router.post("/api/sprints/{sprint_id}/progress/recompute")
async def api_sprints_recompute(sprint_id: int):
    agg = await get_tracker().sprints.recompute_progress(sprint_id)
    if agg is None:
        raise HTTPException(status_code=502, detail="recompute_failed")
    return {"message": "ok", "progress": agg}
