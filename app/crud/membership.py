# app/crud/membership.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.base import utcnow
from app.models.membership import Membership


def list_active_memberships(db: Session, user_id: str) -> List[Membership]:
    """All active memberships of a user, oldest first (deterministic order)."""
    stmt = (
        select(Membership)
        .where(Membership.user_id == user_id, Membership.status == "active")
        .order_by(Membership.created_at.asc(), Membership.id.asc())
    )
    return list(db.execute(stmt).scalars().unique().all())


def get_membership(db: Session, user_id: str, company_id: int) -> Optional[Membership]:
    stmt = select(Membership).where(
        Membership.user_id == user_id,
        Membership.company_id == company_id,
    )
    return db.execute(stmt).scalars().unique().first()


def get_active_membership(db: Session, user_id: str, company_id: int) -> Optional[Membership]:
    m = get_membership(db, user_id, company_id)
    if m is None or m.status != "active":
        return None
    return m


def upsert_active_membership(
    db: Session, *, user_id: str, company_id: int, role: str
) -> Membership:
    """
    Create the (user, company) membership or reactivate the existing row.
    Does not commit. A concurrent insert of the same pair is absorbed by the
    unique constraint and turned into an update.
    """
    existing = get_membership(db, user_id, company_id)
    if existing is None:
        m = Membership(user_id=user_id, company_id=company_id, role=role, status="active")
        try:
            with db.begin_nested():
                db.add(m)
                db.flush()
            return m
        except IntegrityError:
            existing = get_membership(db, user_id, company_id)
            if existing is None:
                raise

    # never downgrade an owner through an invite
    if existing.role != "owner":
        existing.role = role
    existing.status = "active"
    existing.updated_at = utcnow()
    db.flush()
    return existing


def set_membership_status(db: Session, membership: Membership, status: str) -> Membership:
    membership.status = status
    membership.updated_at = utcnow()
    db.flush()
    return membership


def set_membership_role(db: Session, membership: Membership, role: str) -> Membership:
    membership.role = role
    membership.updated_at = utcnow()
    db.flush()
    return membership
