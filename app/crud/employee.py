# app/crud/employee.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.db.base import utcnow
from app.models.employee import Employee


def get_employee(db: Session, employee_id: int) -> Optional[Employee]:
    return db.get(Employee, employee_id)


def get_company_employee(db: Session, company_id: int, employee_id: int) -> Optional[Employee]:
    emp = get_employee(db, employee_id)
    if emp is None or emp.company_id != company_id:
        return None
    return emp


def list_employees(db: Session, company_id: int) -> List[Employee]:
    stmt = (
        select(Employee)
        .where(Employee.company_id == company_id)
        .order_by(Employee.full_name.asc(), Employee.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def create_employee(
    db: Session,
    *,
    company_id: int,
    full_name: str,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    role: str = "member",
    user_id: Optional[str] = None,
    invitation_status: Optional[str] = None,
    is_active: bool = True,
) -> Employee:
    emp = Employee(
        company_id=company_id,
        full_name=full_name.strip(),
        email=email,
        phone=phone,
        role=role,
        user_id=user_id,
        invitation_status=invitation_status,
        is_active=is_active,
    )
    db.add(emp)
    db.flush()
    return emp


def mirror_invitation_status(
    db: Session, employee_id: int, status: str, *, only_unlinked: bool = False
) -> int:
    """Copy an invite status onto the employee row. Returns affected rows."""
    stmt = update(Employee).where(Employee.id == employee_id)
    if only_unlinked:
        stmt = stmt.where(Employee.user_id.is_(None))
    res = db.execute(
        stmt.values(invitation_status=status, updated_at=utcnow()).execution_options(
            synchronize_session=False
        )
    )
    return int(res.rowcount or 0)


def bind_email_if_unset(db: Session, employee_id: int, email: str) -> bool:
    """Set the employee email only when it is still empty (compare-and-set)."""
    res = db.execute(
        update(Employee)
        .where(Employee.id == employee_id, Employee.email.is_(None))
        .values(email=email, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return bool(res.rowcount)
