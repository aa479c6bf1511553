# app/services/memberships.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.errors import NotFound, ValidationFailed
from app.core.rbac import ensure_admin, ensure_can_change_role, ensure_can_change_status
from app.crud import employee as crud_employee
from app.crud import membership as crud_membership
from app.models.employee import Employee
from app.models.membership import Membership
from app.schemas.context import ActiveContext, Principal

log = logging.getLogger("app.memberships")

# employee status in the API -> membership status in the store
EMPLOYEE_STATUS_MAP = {"active": "active", "inactive": "removed"}


def create_employee(
    db: Session,
    ctx: ActiveContext,
    *,
    full_name: str,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    role: str = "member",
) -> Employee:
    ensure_admin(ctx)
    if not full_name or not full_name.strip():
        raise ValidationFailed("Employee name is required.")
    try:
        employee = crud_employee.create_employee(
            db,
            company_id=ctx.company_id,
            full_name=full_name,
            email=email.strip().lower() if email else None,
            phone=phone,
            role=role,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(employee)
    return employee


def set_employee_status(
    db: Session,
    ctx: ActiveContext,
    actor: Principal,
    employee_id: int,
    status: str,
) -> Tuple[Employee, Membership]:
    """
    Activate or deactivate a linked employee. Deactivation flips the
    membership to 'removed'; the row is kept.
    """
    ensure_admin(ctx)
    if status not in EMPLOYEE_STATUS_MAP:
        raise ValidationFailed("Invalid status.")
    employee = crud_employee.get_company_employee(db, ctx.company_id, employee_id)
    if employee is None:
        raise NotFound("Employee not found.")
    if not employee.user_id:
        raise ValidationFailed("Employee is not linked to a user.")

    membership = crud_membership.get_membership(db, employee.user_id, ctx.company_id)
    if membership is None:
        raise NotFound("Membership not found.")

    new_status = EMPLOYEE_STATUS_MAP[status]
    ensure_can_change_status(ctx, actor, membership, new_status)

    try:
        crud_membership.set_membership_status(db, membership, new_status)
        employee.is_active = new_status == "active"
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(employee)
    db.refresh(membership)
    log.info(
        "membership status changed company_id=%s user_id=%s status=%s by=%s",
        ctx.company_id,
        membership.user_id,
        new_status,
        actor.id,
    )
    return employee, membership


def set_member_role(
    db: Session, ctx: ActiveContext, actor: Principal, user_id: str, role: str
) -> Membership:
    ensure_admin(ctx)
    if role not in ("admin", "member"):
        raise ValidationFailed("Invalid role.")
    membership = crud_membership.get_membership(db, user_id, ctx.company_id)
    if membership is None:
        raise NotFound("Membership not found.")
    ensure_can_change_role(ctx, actor, membership, role)

    if membership.role == role:
        return membership
    try:
        crud_membership.set_membership_role(db, membership, role)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(membership)
    log.info(
        "membership role changed company_id=%s user_id=%s role=%s by=%s",
        ctx.company_id,
        user_id,
        role,
        actor.id,
    )
    return membership
