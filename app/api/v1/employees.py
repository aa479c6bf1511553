# app/api/v1/employees.py
from __future__ import annotations

from typing import List, Tuple

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.auth import get_db
from app.core.rbac import require_company_admin
from app.core.scoping import get_active_context
from app.crud.employee import list_employees
from app.schemas.context import ActiveContext, Principal
from app.schemas.employee import EmployeeCreate, EmployeeOut, EmployeeStatusIn
from app.services.audit import audit_log, ip_from_request  # AUDIT
from app.services.memberships import create_employee, set_employee_status

router = APIRouter()


@router.get("/employees", response_model=List[EmployeeOut])
def api_list_employees(
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(get_active_context),
):
    _, ctx = scoped
    return [EmployeeOut.model_validate(e) for e in list_employees(db, ctx.company_id)]


@router.post("/employees", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
def api_create_employee(
    payload: EmployeeCreate,
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(require_company_admin),
):
    _, ctx = scoped
    employee = create_employee(
        db,
        ctx,
        full_name=payload.full_name,
        email=payload.email,
        phone=payload.phone,
        role=payload.role,
    )
    return EmployeeOut.model_validate(employee)


@router.patch("/employees/{employee_id}/status")
def api_set_employee_status(
    employee_id: int,
    payload: EmployeeStatusIn,
    request: Request,
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(require_company_admin),
):
    principal, ctx = scoped
    employee, membership = set_employee_status(db, ctx, principal, employee_id, payload.status)

    # --- AUDIT (best-effort) ---
    audit_log(
        db,
        company_id=ctx.company_id,
        user_id=principal.id,
        action="MEMBERSHIP_STATUS_CHANGED",
        entity_type="membership",
        entity_id=membership.id,
        meta={"employee_id": employee.id, "status": membership.status},
        ip=ip_from_request(request),
    )
    return {"success": True, "employee_id": employee_id, "status": payload.status}
