# app/services/notifications.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidTransition, NotFound, StoreFailure
from app.crud import invite as crud_invite
from app.crud import notification as crud_notification
from app.db.base import utcnow
from app.models.invite import Invite
from app.models.notification import UserNotification
from app.schemas.context import Principal
from app.schemas.notification import InboxCompany, InboxInvite, InboxItemOut
from app.services.invites import (
    UNAVAILABLE,
    effective_status,
    mark_expired,
    revoke_pending_invite,
)

log = logging.getLogger("app.inbox")


# ---------------------------------
# Helpers
# ---------------------------------


def _write_back_expiry(db: Session, invites: List[Invite], now: datetime) -> None:
    """
    Best-effort: persist 'expired' for overdue invites seen while reading.
    The inbox already hides them, so a failure here only delays the write.
    """
    try:
        for invite in invites:
            mark_expired(db, invite, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.warning("expiry write-back failed for %s invite(s)", len(invites), exc_info=True)


def _owned_invite_notification(
    db: Session, principal: Principal, notification_id: int
) -> tuple[UserNotification, Invite]:
    notification = crud_notification.get_owned_notification(db, notification_id, principal.id)
    if notification is None:
        raise NotFound("Notification not found.")
    invite = crud_invite.get_invite(db, notification.entity_id)
    if invite is None:
        raise StoreFailure(
            "Notification references a missing invite.",
            details={"notification_id": notification.id},
        )
    return notification, invite


# ---------------------------------
# Inbox
# ---------------------------------


def list_inbox_items(
    db: Session, principal: Principal, now: Optional[datetime] = None
) -> List[InboxItemOut]:
    """
    Actionable invite notifications of the principal, newest first.

    Visibility is derived from the referenced invite on every call: only
    notifications whose invite is pending and not past expiry are returned.
    A notification pointing at a missing invite is a store fault.
    """
    now = now or utcnow()
    items: List[InboxItemOut] = []
    overdue: List[Invite] = []

    for notification, invite, company in crud_notification.list_invite_rows(db, principal.id):
        if invite is None:
            raise StoreFailure(
                "Notification references a missing invite.",
                details={"notification_id": notification.id},
            )
        status = effective_status(invite, now)
        if status != "pending":
            if invite.status == "pending":
                overdue.append(invite)
            continue
        items.append(
            InboxItemOut(
                id=notification.id,
                read_at=notification.read_at,
                created_at=notification.created_at,
                invite=InboxInvite(
                    id=invite.id,
                    status=status,
                    expires_at=invite.expires_at,
                    role=invite.role,
                    created_at=invite.created_at,
                    company_id=invite.company_id,
                    company=InboxCompany(id=company.id, name=company.name) if company else None,
                ),
            )
        )

    if overdue:
        _write_back_expiry(db, overdue, now)
    return items


def unread_count(db: Session, principal: Principal) -> int:
    return crud_notification.count_unread(db, principal.id)


def mark_read(
    db: Session, principal: Principal, notification_id: int, now: Optional[datetime] = None
) -> UserNotification:
    """Set read_at once. Marking an already read notification is a no-op."""
    now = now or utcnow()
    notification = crud_notification.get_owned_notification(
        db, notification_id, principal.id, notif_type=None
    )
    if notification is None:
        raise NotFound("Notification not found.")
    try:
        if crud_notification.mark_read(db, notification.id, principal.id, now):
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(notification)
    return notification


def decline_by_notification(
    db: Session, principal: Principal, notification_id: int, now: Optional[datetime] = None
) -> Tuple[Invite, str]:
    """
    Decline an invite from the inbox: pending -> revoked and the notification
    read, in one transaction. Returns the invite and its resulting status;
    declining a finished invite returns that status unchanged.
    An invite found past its expiry is stored as expired and rejected.
    """
    now = now or utcnow()
    notification, invite = _owned_invite_notification(db, principal, notification_id)

    try:
        status, written = revoke_pending_invite(db, invite, now)
        crud_notification.mark_read(db, notification.id, principal.id, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if status == "expired" and written:
        raise InvalidTransition(UNAVAILABLE, details={"status": status})
    log.info(
        "invite declined invite_id=%s user_id=%s status=%s", invite.id, principal.id, status
    )
    return invite, status
