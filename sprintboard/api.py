"""
FastAPI app entry point aggregating per-domain routers under sprintboard/routes.
Keep as `uvicorn sprintboard.api:app`.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import ensure_schema
from .logs import ensure_log_schema
from .services.config_svc import ensure_default_config


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_schema()
    ensure_log_schema()
    ensure_default_config()
    yield


app = FastAPI(title="sprintboard-api", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers (split by business domain)
from .routes import base as base_routes
from .routes import resources as resources_routes
from .routes import sprints as sprints_routes
from .routes import board as board_routes
from .routes import settings as settings_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(resources_routes.router)
app.include_router(sprints_routes.router)
app.include_router(board_routes.router)
app.include_router(settings_routes.router)
app.include_router(logs_routes.router)
