from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..logs import LogContext
from ..services.config_svc import get_config, update_config
from ..services.wiring import reset_tracker

router = APIRouter()


@router.get("/api/settings/get")
def api_settings_get():
    return get_config()


class SettingsUpdateBody(BaseModel):
    updates: dict


@router.post("/api/settings/update")
def api_settings_update(body: SettingsUpdateBody):
    try:
        with LogContext("SETTINGS_UPDATE") as log:
            log.set_entity("config", None)
            log.set_payload(body.model_dump())
            updated_keys = update_config(body.updates, log)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    # gateways, guard and board are rebuilt lazily from the new values
    reset_tracker()
    return {"message": "ok", "updated": updated_keys}
