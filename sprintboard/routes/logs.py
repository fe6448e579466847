from __future__ import annotations

from fastapi import APIRouter, Query

from ..logs import entity_history, search_logs

router = APIRouter()


@router.get("/api/logs/search")
def api_logs_search(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    action: str | None = None,
    query: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ts_from: str | None = None,
    ts_to: str | None = None,
):
    total, items = search_logs(query, action, ts_from, ts_to, page, size, entity_type, entity_id)
    return {"total": total, "items": items}


@router.get("/api/logs/entity/{entity_type}/{entity_id}")
def api_logs_entity(entity_type: str, entity_id: str, limit: int = Query(50, ge=1, le=500)):
    return {"items": entity_history(entity_type, entity_id, limit)}
