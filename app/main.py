# app/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.middleware.request_logging import RequestLoggingMiddleware

# --- DB engine (must be imported BEFORE create_all) ---
from app.db.base import Base
from app.db.session import engine

# ---------------------------
# MODELS (registers every table on Base.metadata)
# ---------------------------
import app.models  # noqa: F401

# ---------------------------
# ROUTERS
# ---------------------------
from app.api import health
from app.api.v1 import companies as companies_api
from app.api.v1 import employees, invites, me, memberships, notifications
from app.worker.scheduler import make_scheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("app.main")

# ---------------------------
# CREATE TABLES (dev-only; guard with env)
# ---------------------------
if settings.enable_create_all:
    Base.metadata.create_all(bind=engine)

# ---------------------------
# APP
# ---------------------------
app = FastAPI(title="Field Service Tenancy")

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)

# ---------------------------
# ROUTER MOUNT
# ---------------------------
app.include_router(me.router, prefix="/api/v1", tags=["me"])
app.include_router(companies_api.router, prefix="/api/v1", tags=["companies"])
app.include_router(employees.router, prefix="/api/v1", tags=["employees"])
app.include_router(memberships.router, prefix="/api/v1", tags=["memberships"])
app.include_router(invites.router, prefix="/api/v1", tags=["invites"])
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api")


# ---------------------------
# Scheduler (invite expiry sweeper)
# ---------------------------
@app.on_event("startup")
def _start_scheduler():
    if not settings.enable_scheduler:
        return
    app.state.scheduler = make_scheduler()
    app.state.scheduler.start()
    log.info("scheduler started (invite sweep every %s min)", settings.invite_sweep_minutes)


@app.on_event("shutdown")
def _stop_scheduler():
    sched = getattr(app.state, "scheduler", None)
    if sched:
        sched.shutdown(wait=False)


# ---------------------------
# OpenAPI (bearer token from the identity provider)
# ---------------------------
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title="Field Service Tenancy",
        version="1.0.0",
        description="Company memberships, active company selection and invitations",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {}).setdefault("securitySchemes", {})
    openapi_schema["components"]["securitySchemes"]["HTTPBearer"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi
