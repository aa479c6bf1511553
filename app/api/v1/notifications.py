# app/api/v1/notifications.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_db, get_current_principal
from app.schemas.context import Principal
from app.schemas.notification import NotificationOut
from app.services.notifications import mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


# -----------------------------
# MARK READ (owner only; idempotent)
# -----------------------------
@router.post("/{notification_id}/read", response_model=NotificationOut)
def api_mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return NotificationOut.model_validate(mark_read(db, principal, notification_id))
