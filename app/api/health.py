from datetime import datetime, timezone
import time

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.auth import get_db
from app.core.config import settings

router = APIRouter(tags=["health"])

NO_STORE = {"Cache-Control": "no-store"}


def _sweeper_state(request: Request) -> str:
    if not settings.enable_scheduler:
        return "disabled"
    sched = getattr(request.app.state, "scheduler", None)
    return "running" if sched is not None and sched.running else "stopped"


@router.get("/healthz")
def healthz() -> dict:
    # liveness only; no store access
    return {
        "ok": True,
        "service": "fieldservice-tenancy",
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readyz")
def readyz(request: Request, db: Session = Depends(get_db)):
    """Store ping with latency, plus the state of the invite expiry sweeper."""
    sweeper = _sweeper_state(request)
    t0 = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "db": "down", "error": type(e).__name__, "sweeper": sweeper},
            headers=NO_STORE,
        )
    return JSONResponse(
        content={
            "ok": True,
            "db": "up",
            "db_latency_ms": round((time.perf_counter() - t0) * 1000.0, 2),
            "sweeper": sweeper,
        },
        headers=NO_STORE,
    )
