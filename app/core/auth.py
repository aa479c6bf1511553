# app/core/auth.py
"""
Identity resolver.

Credentials are issued by the external identity provider; this module only
verifies the bearer token it signed and exposes the principal (id, email).
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Unauthenticated
from app.crud.user_profile import ensure_profile
from app.db.session import SessionLocal
from app.schemas.context import Principal
from app.services.invites import attach_pending_invites

log = logging.getLogger("app.auth")

# Swagger "Authorize" button; missing header is handled below
bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    """Yield a DB session and make sure it's closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def decode_principal(token: str) -> Principal:
    """Verify an identity-provider token and return its principal, or 401."""
    options = {"verify_aud": settings.idp_jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.idp_jwt_secret,
            algorithms=[settings.idp_jwt_algorithm],
            audience=settings.idp_jwt_audience,
            options=options,
        )
    except JWTError:
        raise Unauthenticated("Invalid or expired credentials.")

    user_id = payload.get("sub")
    email = (payload.get("email") or "").strip().lower()
    if not user_id or not email:
        raise Unauthenticated("Credentials are missing the subject or email.")
    return Principal(id=str(user_id), email=email)


def _sync_profile(db: Session, principal: Principal) -> None:
    """
    Best-effort: keep the local profile current, and when the principal is
    seen for the first time attach notifications for invites already bound
    to their email. Never breaks authentication.
    """
    try:
        profile, created = ensure_profile(db, principal.id, principal.email)
        if created:
            attach_pending_invites(db, profile)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.warning("profile sync failed for user_id=%s", principal.id, exc_info=True)


def get_current_principal_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    if credentials is None or not credentials.credentials:
        return None
    principal = decode_principal(credentials.credentials)

    # Expose user context to middleware/loggers
    request.state.user_id = principal.id

    _sync_profile(db, principal)
    return principal


def get_current_principal(
    principal: Optional[Principal] = Depends(get_current_principal_optional),
) -> Principal:
    if principal is None:
        raise Unauthenticated()
    return principal
