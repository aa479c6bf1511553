# app/core/scoping.py
"""
Active-company selection.

A request acts within exactly one company. The company is derived on every
request from the principal's active memberships plus the sticky hint cookie;
nothing about the "current company" is cached in the process.

    0 memberships    -> no context (onboarding)
    1 membership     -> that company, hint ignored
    2+ memberships   -> the hinted company if it is one of them, else no context

The hint only disambiguates; it never grants access by itself.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import Depends, Request, Response
from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.auth import get_current_principal, get_db
from app.core.config import settings
from app.core.errors import Forbidden, NoActiveContext
from app.crud.membership import get_active_membership, list_active_memberships
from app.crud.user_profile import set_last_active_company
from app.models.membership import Membership
from app.schemas.context import ActiveContext, CompanyChoice, ContextOut, Principal

log = logging.getLogger("app.context")

STICKY_ALGORITHM = "HS256"


# ---- Sticky hint -------------------------------------------------------------


def make_sticky_hint(user_id: str, company_id: int) -> str:
    """Signed, user-bound hint naming a company. No expiry claim."""
    return jwt.encode(
        {"sub": user_id, "cid": company_id},
        settings.sticky_secret,
        algorithm=STICKY_ALGORITHM,
    )


def read_sticky_hint(token: Optional[str], user_id: str) -> Optional[int]:
    """Company id named by a hint, or None for a missing, forged or foreign hint."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.sticky_secret, algorithms=[STICKY_ALGORITHM])
    except JWTError:
        return None
    if payload.get("sub") != user_id:
        return None
    company_id = payload.get("cid")
    if isinstance(company_id, bool) or not isinstance(company_id, int):
        return None
    return company_id


def set_sticky_cookie(response: Response, principal: Principal, company_id: int) -> None:
    response.set_cookie(
        key=settings.active_company_cookie,
        value=make_sticky_hint(principal.id, company_id),
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


def clear_sticky_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.active_company_cookie,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


# ---- Resolution --------------------------------------------------------------


def _pick(memberships: List[Membership], company_id: Optional[int]) -> Optional[Membership]:
    if not memberships:
        return None
    if len(memberships) == 1:
        return memberships[0]
    for m in memberships:
        if m.company_id == company_id:
            return m
    return None


def _context(m: Membership) -> ActiveContext:
    return ActiveContext(company_id=m.company_id, role=m.role)


def resolve_context(
    db: Session, principal: Principal, sticky_hint: Optional[str] = None
) -> Optional[ActiveContext]:
    """The principal's active context, or None when there is none to pick."""
    memberships = list_active_memberships(db, principal.id)
    chosen = _pick(memberships, read_sticky_hint(sticky_hint, principal.id))
    return _context(chosen) if chosen else None


def describe_context(
    db: Session, principal: Principal, sticky_hint: Optional[str] = None
) -> ContextOut:
    """Resolved context plus what a client needs to route to the picker."""
    memberships = list_active_memberships(db, principal.id)
    chosen = _pick(memberships, read_sticky_hint(sticky_hint, principal.id))
    return ContextOut(
        context=_context(chosen) if chosen else None,
        needs_selection=chosen is None and len(memberships) > 1,
        companies=[_choice(m) for m in memberships],
    )


def _choice(m: Membership) -> CompanyChoice:
    name = m.company.name if m.company is not None else ""
    return CompanyChoice(company_id=m.company_id, company_name=name, role=m.role)


def list_my_companies(db: Session, principal: Principal) -> List[CompanyChoice]:
    return [_choice(m) for m in list_active_memberships(db, principal.id)]


def select_active_company(
    db: Session, principal: Principal, company_id: int
) -> ActiveContext:
    """
    Explicit selection. Rejected unless the principal has an active membership
    in that company. The last-active marker is best-effort.
    """
    m = get_active_membership(db, principal.id, company_id)
    if m is None:
        raise Forbidden("No active membership in this company.")
    ctx = _context(m)

    try:
        set_last_active_company(db, principal.id, ctx.company_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.warning(
            "last active company not recorded user_id=%s company_id=%s",
            principal.id,
            ctx.company_id,
            exc_info=True,
        )

    log.info("active company selected user_id=%s company_id=%s", principal.id, ctx.company_id)
    return ctx


# ---- Dependencies ------------------------------------------------------------


def get_sticky_hint(request: Request) -> Optional[str]:
    return request.cookies.get(settings.active_company_cookie)


def get_active_context(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    sticky_hint: Optional[str] = Depends(get_sticky_hint),
) -> Tuple[Principal, ActiveContext]:
    """Gate for tenant-scoped routes: (principal, context) or 403 no_active_context."""
    info = describe_context(db, principal, sticky_hint)
    if info.context is None:
        raise NoActiveContext(
            details={
                "needs_selection": info.needs_selection,
                "companies": [c.model_dump() for c in info.companies],
            }
        )
    request.state.company_id = info.context.company_id
    return principal, info.context
