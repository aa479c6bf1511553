# app/api/v1/me.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.auth import get_db, get_current_principal
from app.core.scoping import (
    clear_sticky_cookie,
    describe_context,
    get_sticky_hint,
    list_my_companies,
    select_active_company,
    set_sticky_cookie,
)
from app.schemas.context import (
    CompanyChoice,
    ContextOut,
    Principal,
    SelectCompanyIn,
    SelectCompanyOut,
)
from app.services.audit import audit_log, ip_from_request

router = APIRouter()


# ---- Endpoints ---------------------------------------------------------------


@router.get("/me/companies", response_model=List[CompanyChoice])
def my_companies(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return list_my_companies(db, principal)


@router.get("/me/context", response_model=ContextOut)
def my_context(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    sticky_hint: Optional[str] = Depends(get_sticky_hint),
):
    """
    Resolved active company. `context` is null with `needs_selection=true`
    when the caller must pick one, and with `needs_selection=false` when the
    caller has no active membership at all.
    """
    return describe_context(db, principal, sticky_hint)


@router.post("/me/active-company", response_model=SelectCompanyOut)
def select_company(
    payload: SelectCompanyIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    ctx = select_active_company(db, principal, payload.company_id)
    set_sticky_cookie(response, principal, ctx.company_id)

    audit_log(
        db,
        company_id=ctx.company_id,
        user_id=principal.id,
        action="ACTIVE_COMPANY_SELECTED",
        entity_type="company",
        entity_id=ctx.company_id,
        ip=ip_from_request(request),
    )
    return SelectCompanyOut(company_id=ctx.company_id, role=ctx.role)


@router.delete("/me/active-company", status_code=204)
def forget_company(response: Response):
    """Drop the sticky selection (e.g. on sign-out)."""
    clear_sticky_cookie(response)
    response.status_code = 204
    return response
