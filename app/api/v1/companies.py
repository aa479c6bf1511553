# app/api/v1/companies.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.core.auth import get_db, get_current_principal
from app.core.scoping import set_sticky_cookie
from app.crud.company import register_company
from app.schemas.company import CompanyOut, CompanyRegister
from app.schemas.context import Principal
from app.services.audit import audit_log, ip_from_request  # AUDIT

router = APIRouter()


@router.post("/companies", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyRegister,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Register a company owned by the caller. The caller becomes its owner
    (membership + employee) and the new company becomes the active one.
    """
    company = register_company(
        db,
        owner_id=principal.id,
        owner_email=principal.email,
        name=payload.name,
        owner_name=payload.owner_name,
        industry=payload.industry,
        team_size=payload.team_size,
    )
    set_sticky_cookie(response, principal, company.id)

    # --- AUDIT (best-effort) ---
    audit_log(
        db,
        company_id=company.id,
        user_id=principal.id,
        action="COMPANY_REGISTERED",
        entity_type="company",
        entity_id=company.id,
        meta={"name": company.name},
        ip=ip_from_request(request),
    )
    db.refresh(company)
    return CompanyOut.model_validate(company)
