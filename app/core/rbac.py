# app/core/rbac.py
from __future__ import annotations

from typing import Tuple

from fastapi import Depends

from app.core.errors import Forbidden
from app.core.scoping import get_active_context
from app.models.membership import Membership
from app.schemas.context import ActiveContext, Principal

# -----------------------------
# Basic checks
# -----------------------------


def ensure_admin(ctx: ActiveContext) -> None:
    """Raise 403 unless the active role is owner or admin."""
    if not ctx.is_admin:
        raise Forbidden("Owner or admin role required.")


def require_company_admin(
    scoped: Tuple[Principal, ActiveContext] = Depends(get_active_context),
) -> Tuple[Principal, ActiveContext]:
    """Route dependency: active context with an owner/admin role."""
    ensure_admin(scoped[1])
    return scoped


# -----------------------------
# Membership administration
# -----------------------------


def ensure_can_change_status(
    ctx: ActiveContext, actor: Principal, target: Membership, status: str
) -> None:
    """
    Owners are never removed through this path, and nobody removes
    themselves; other memberships follow the actor's admin role.
    """
    ensure_admin(ctx)
    if target.company_id != ctx.company_id:
        raise Forbidden("Membership belongs to another company.")
    if status == "removed":
        if target.role == "owner":
            raise Forbidden("The company owner cannot be removed.")
        if target.user_id == actor.id:
            raise Forbidden("You cannot remove yourself.")


def ensure_can_change_role(
    ctx: ActiveContext, actor: Principal, target: Membership, role: str
) -> None:
    ensure_admin(ctx)
    if target.company_id != ctx.company_id:
        raise Forbidden("Membership belongs to another company.")
    if target.role == "owner":
        raise Forbidden("The owner role cannot be changed.")
    if target.user_id == actor.id and role != target.role:
        raise Forbidden("You cannot change your own role.")
