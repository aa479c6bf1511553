# app/crud/notification.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.models.company import Company
from app.models.invite import Invite
from app.models.notification import UserNotification, COMPANY_INVITE


def get_owned_notification(
    db: Session,
    notification_id: int,
    user_id: str,
    notif_type: Optional[str] = COMPANY_INVITE,
) -> Optional[UserNotification]:
    stmt = select(UserNotification).where(
        UserNotification.id == notification_id,
        UserNotification.user_id == user_id,
    )
    if notif_type is not None:
        stmt = stmt.where(UserNotification.type == notif_type)
    return db.execute(stmt).scalars().first()


def create_invite_notification(
    db: Session, *, user_id: str, invite: Invite
) -> UserNotification:
    """One notification per (user, invite); returns the existing row if present."""
    stmt = select(UserNotification).where(
        UserNotification.user_id == user_id,
        UserNotification.type == COMPANY_INVITE,
        UserNotification.entity_id == invite.id,
    )
    existing = db.execute(stmt).scalars().first()
    if existing is not None:
        return existing
    notif = UserNotification(
        user_id=user_id,
        type=COMPANY_INVITE,
        entity_id=invite.id,
        company_id=invite.company_id,
    )
    db.add(notif)
    db.flush()
    return notif


def list_invite_rows(
    db: Session, user_id: str
) -> List[Tuple[UserNotification, Optional[Invite], Optional[Company]]]:
    """
    Notification rows of a user with the referenced invite and company,
    newest first. Missing invites come back as None (outer join).
    """
    stmt = (
        select(UserNotification, Invite, Company)
        .outerjoin(Invite, Invite.id == UserNotification.entity_id)
        .outerjoin(Company, Company.id == Invite.company_id)
        .where(
            UserNotification.user_id == user_id,
            UserNotification.type == COMPANY_INVITE,
        )
        .order_by(UserNotification.created_at.desc(), UserNotification.id.desc())
    )
    return [tuple(r) for r in db.execute(stmt).all()]


def mark_read(db: Session, notification_id: int, user_id: str, read_at: datetime) -> bool:
    """Only sets read_at once; returns False when it was already read."""
    res = db.execute(
        update(UserNotification)
        .where(
            UserNotification.id == notification_id,
            UserNotification.user_id == user_id,
            UserNotification.read_at.is_(None),
        )
        .values(read_at=read_at)
        .execution_options(synchronize_session=False)
    )
    return bool(res.rowcount)


def mark_read_for_invite(db: Session, invite_id: int, user_id: str, read_at: datetime) -> int:
    res = db.execute(
        update(UserNotification)
        .where(
            UserNotification.entity_id == invite_id,
            UserNotification.type == COMPANY_INVITE,
            UserNotification.user_id == user_id,
            UserNotification.read_at.is_(None),
        )
        .values(read_at=read_at)
        .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)


def delete_for_invite_except_user(db: Session, invite_id: int, user_id: str) -> int:
    res = db.execute(
        delete(UserNotification)
        .where(
            UserNotification.entity_id == invite_id,
            UserNotification.type == COMPANY_INVITE,
            UserNotification.user_id != user_id,
        )
        .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)


def count_unread(db: Session, user_id: str) -> int:
    stmt = select(func.count(UserNotification.id)).where(
        UserNotification.user_id == user_id,
        UserNotification.type == COMPANY_INVITE,
        UserNotification.read_at.is_(None),
    )
    return int(db.execute(stmt).scalar() or 0)
