# app/crud/invite.py
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.invite import Invite

TOKEN_BYTES = 32


def generate_token() -> str:
    """64 hex chars of randomness; only its hash is ever persisted."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def get_invite(db: Session, invite_id: int) -> Optional[Invite]:
    return db.get(Invite, invite_id)


def get_invite_by_token(db: Session, raw_token: str) -> Optional[Invite]:
    stmt = select(Invite).where(Invite.token_hash == hash_token(raw_token))
    return db.execute(stmt).scalars().first()


def list_pending_for_employee(db: Session, employee_id: int) -> List[Invite]:
    stmt = (
        select(Invite)
        .where(Invite.employee_id == employee_id, Invite.status == "pending")
        .order_by(Invite.created_at.desc(), Invite.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def list_pending_for_email(db: Session, email: str, now: datetime) -> List[Invite]:
    stmt = select(Invite).where(
        Invite.email == email,
        Invite.status == "pending",
        Invite.expires_at > now,
    )
    return list(db.execute(stmt).scalars().all())


def list_overdue_pending(db: Session, now: datetime, limit: int = 500) -> List[Invite]:
    stmt = (
        select(Invite)
        .where(Invite.status == "pending", Invite.expires_at <= now)
        .order_by(Invite.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def create_invite(
    db: Session,
    *,
    company_id: int,
    employee_id: int,
    token_hash: str,
    role: str,
    expires_at: datetime,
    email: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Invite:
    invite = Invite(
        company_id=company_id,
        employee_id=employee_id,
        email=email,
        role=role,
        token_hash=token_hash,
        status="pending",
        expires_at=expires_at,
        created_by=created_by,
    )
    db.add(invite)
    db.flush()
    return invite


def transition_from_pending(
    db: Session,
    invite_id: int,
    to_status: str,
    *,
    not_expired_at: Optional[datetime] = None,
    **values: Any,
) -> bool:
    """
    Compare-and-set: move one invite out of 'pending'.
    Returns False when another writer already moved it (or, with
    not_expired_at, when it is past its expiry).
    """
    stmt = update(Invite).where(Invite.id == invite_id, Invite.status == "pending")
    if not_expired_at is not None:
        stmt = stmt.where(Invite.expires_at > not_expired_at)
    res = db.execute(
        stmt.values(status=to_status, **values).execution_options(synchronize_session=False)
    )
    return bool(res.rowcount)


def revoke_pending_for_employee(
    db: Session,
    employee_id: int,
    *,
    revoked_at: datetime,
    except_invite_id: Optional[int] = None,
) -> int:
    stmt = update(Invite).where(Invite.employee_id == employee_id, Invite.status == "pending")
    if except_invite_id is not None:
        stmt = stmt.where(Invite.id != except_invite_id)
    res = db.execute(
        stmt.values(status="revoked", revoked_at=revoked_at).execution_options(
            synchronize_session=False
        )
    )
    return int(res.rowcount or 0)


def bind_email_if_unset(db: Session, invite_id: int, email: str) -> bool:
    res = db.execute(
        update(Invite)
        .where(Invite.id == invite_id, Invite.email.is_(None))
        .values(email=email)
        .execution_options(synchronize_session=False)
    )
    return bool(res.rowcount)
