from dataclasses import asdict

from fastapi import APIRouter

from ..services.wiring import get_tracker

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/version")
def version():
    return {"app": "sprintboard-api", "version": "0.1.0"}

@router.get("/api/notifications")
def notifications(limit: int = 20):
    items = get_tracker().notifier.items[-limit:] if limit > 0 else []
    return {"items": [asdict(n) for n in reversed(items)]}
