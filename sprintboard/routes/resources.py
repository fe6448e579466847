from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..domain.query import QueryDescriptor
from ..errors import TransportError, UnknownOperatorError
from ..services.wiring import get_tracker

router = APIRouter()


class FilterBody(BaseModel):
    column: str
    operator: str = "eq"
    value: Any = None


class OrderBody(BaseModel):
    column: str
    ascending: bool = True


class QueryBody(BaseModel):
    select: Optional[str] = None
    order_by: Optional[OrderBody] = None
    limit: Optional[int] = None
    relationships: list[str] = []
    filters: list[FilterBody] = []


class MutateBody(BaseModel):
    id: Any = None
    data: Optional[dict] = None
    type: Optional[str] = None


def _descriptor(table: str, body: QueryBody | None) -> QueryDescriptor:
    try:
        return QueryDescriptor.from_options(table, body.model_dump() if body else None)
    except (UnknownOperatorError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/api/resources/{table}/query")
async def api_resource_query(table: str, body: QueryBody | None = None):
    desc = _descriptor(table, body)
    res = await get_tracker().fetcher(table).fetch_all_result(desc)
    if not res.ok:
        raise HTTPException(status_code=502, detail={"code": res.error.code, "message": str(res.error)})
    return {"items": res.value}


@router.get("/api/resources/{table}/item/{item_id}")
async def api_resource_get(table: str, item_id: str):
    res = await get_tracker().fetcher(table).fetch_by_id_result(item_id)
    if not res.ok:
        raise HTTPException(status_code=502, detail={"code": res.error.code, "message": str(res.error)})
    if not res.value:
        raise HTTPException(status_code=404, detail="not_found")
    return res.value


@router.post("/api/resources/{table}/mutate")
async def api_resource_mutate(table: str, body: MutateBody):
    try:
        value = await get_tracker().mutator(table).mutate(resource=table, id=body.id, data=body.data, type=body.type)
        return {"message": "ok", "result": value}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=502, detail={"code": e.code, "message": str(e)})


@router.get("/api/tables/{name}/exists")
async def api_table_exists(name: str):
    cache = get_tracker().table_cache
    exists = await cache.exists(name)
    status = cache.status(name)
    return {"name": name, "exists": exists, "status": status.value if status else None}


class CacheClearBody(BaseModel):
    name: Optional[str] = None


@router.post("/api/tables/cache/clear")
def api_table_cache_clear(body: CacheClearBody | None = None):
    cache = get_tracker().table_cache
    cache.clear(body.name if body else None)
    return {"message": "ok", "cache": cache.snapshot()}
