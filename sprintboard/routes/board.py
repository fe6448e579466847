from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..domain.query import FilterClause, FilterOp, OrderBy, QueryDescriptor
from ..services.wiring import get_tracker

router = APIRouter()


class MoveBody(BaseModel):
    item_id: Any
    from_column: str
    from_index: int
    to_column: str
    to_index: int
    project_id: Optional[str] = None


async def _load(project_id: str | None):
    tracker = get_tracker()
    filters = (FilterClause("project_id", FilterOp.EQ, project_id),) if project_id else ()
    desc = QueryDescriptor(tracker.board_table, order_by=OrderBy("id"), filters=filters)
    res = await tracker.fetcher(tracker.board_table).fetch_all_result(desc)
    if not res.ok:
        raise HTTPException(status_code=502, detail={"code": res.error.code, "message": str(res.error)})
    return tracker.board(project_id).load(res.value)


@router.get("/api/board")
async def api_board(project_id: Optional[str] = None):
    return {"columns": await _load(project_id)}


@router.post("/api/board/move")
async def api_board_move(body: MoveBody):
    coordinator = get_tracker().board(body.project_id)
    if not coordinator.items:
        await _load(body.project_id)
    try:
        outcome = await coordinator.move(body.item_id, body.from_column, body.from_index, body.to_column, body.to_index)
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "moved": outcome.moved,
        "persisted": outcome.persisted,
        "rolled_back": outcome.rollback is not None,
        "columns": coordinator.columns,
    }
