"""FastAPI entry point for the Code Academy backend."""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academy.core.config import get_settings
from academy.db.store import PermissionDeniedError, StoreError
from academy.features.catalog.endpoints import router as catalog_router
from academy.features.evaluation.endpoints import router as evaluation_router
from academy.features.progression.actor import actor_registry
from academy.features.progression.endpoints import router as progress_router
from academy.features.reports.endpoints import router as reports_router
from academy.features.roster.endpoints import auth_router, router as roster_router
from academy.features.tutor.endpoints import router as tutor_router

_settings = get_settings()
_START_TIME = datetime.now(timezone.utc)

logging.basicConfig(level=logging.DEBUG if _settings.debug else logging.INFO)

app = FastAPI(title=_settings.app_name)


# ------------------------
# CORS Setup
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Custom Middlewares
# ------------------------
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    req_id = incoming or str(uuid.uuid4())
    request.state.request_id = req_id
    logger = logging.getLogger("request")
    logger.info("request.start", extra={"request_id": req_id, "path": request.url.path, "method": request.method})
    response = await call_next(request)
    response.headers["X-Request-Id"] = req_id
    logger.info("request.end", extra={"request_id": req_id, "path": request.url.path, "status_code": response.status_code})
    return response


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    t0 = perf_counter()
    resp = await call_next(request)
    dt = int((perf_counter() - t0) * 1000)
    logging.getLogger("request.timing").info("%s %s %dms %d", request.method, request.url.path, dt, resp.status_code)
    return resp


# ------------------------
# Store errors
# ------------------------
@app.exception_handler(PermissionDeniedError)
async def _permission_denied(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": str(exc), "operation": exc.operation})


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "operation": exc.operation})


# ------------------------
# Routers
# ------------------------
app.include_router(auth_router)
app.include_router(roster_router)
app.include_router(catalog_router)
app.include_router(tutor_router)
app.include_router(progress_router)
app.include_router(evaluation_router)
app.include_router(reports_router)


# ------------------------
# Meta endpoints
# ------------------------
@app.get("/", tags=["meta"], summary="API Root")
async def root():
    return {
        "name": _settings.app_name,
        "status": "ok",
        "docs": "/docs",
        "health": "/healthz",
    }


@app.get("/healthz", tags=["meta"], summary="Liveness and readiness check")
async def healthz() -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {
        "status": "ok",
        "time_utc": now.isoformat(),
        "uptime_seconds": round((now - _START_TIME).total_seconds(), 2),
        "version": os.getenv("APP_VERSION", "dev"),
        "environment": "debug" if _settings.debug else "prod",
        "components": {
            "store": "configured" if _settings.supabase_url else "missing-config",
            "tutor": "configured" if _settings.bedrock_model_id else "missing-config",
        },
        "counts": {"routes": len(app.routes)},
    }


# ------------------------
# Shutdown
# ------------------------
@app.on_event("shutdown")
async def _flush_progress_actors():
    # pending draft autosaves are written before the process exits
    await actor_registry.close_all()
