# app/crud/user_profile.py
from __future__ import annotations

from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.base import utcnow
from app.models.user import UserProfile


def get_profile(db: Session, user_id: str) -> Optional[UserProfile]:
    return db.get(UserProfile, user_id)


def get_profile_by_email(db: Session, email: str) -> Optional[UserProfile]:
    stmt = select(UserProfile).where(UserProfile.email == email)
    return db.execute(stmt).scalars().first()


def ensure_profile(db: Session, user_id: str, email: str) -> Tuple[UserProfile, bool]:
    """
    Upsert the local profile of a principal. Returns (profile, created).
    Does not commit.
    """
    profile = get_profile(db, user_id)
    if profile is not None:
        if profile.email != email:
            profile.email = email
            profile.updated_at = utcnow()
            db.flush()
        return profile, False

    profile = UserProfile(user_id=user_id, email=email)
    try:
        with db.begin_nested():
            db.add(profile)
            db.flush()
    except IntegrityError:
        # another request created it first
        existing = get_profile(db, user_id)
        if existing is None:
            raise
        return existing, False
    return profile, True


def set_last_active_company(db: Session, user_id: str, company_id: int) -> bool:
    res = db.execute(
        update(UserProfile)
        .where(UserProfile.user_id == user_id)
        .values(last_active_company_id=company_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return bool(res.rowcount)
