# app/api/v1/memberships.py
from __future__ import annotations

from typing import Tuple

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth import get_db
from app.core.rbac import require_company_admin
from app.schemas.context import ActiveContext, Principal
from app.schemas.membership import MembershipOut, MembershipRoleIn
from app.services.audit import audit_log, ip_from_request  # AUDIT
from app.services.memberships import set_member_role

router = APIRouter()


@router.patch("/memberships/{user_id}/role", response_model=MembershipOut)
def api_set_member_role(
    user_id: str,
    payload: MembershipRoleIn,
    request: Request,
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(require_company_admin),
):
    principal, ctx = scoped
    membership = set_member_role(db, ctx, principal, user_id, payload.role)
    out = MembershipOut.model_validate(membership)
    membership_id = membership.id

    audit_log(
        db,
        company_id=ctx.company_id,
        user_id=principal.id,
        action="MEMBERSHIP_ROLE_CHANGED",
        entity_type="membership",
        entity_id=membership_id,
        meta={"target_user_id": user_id, "role": out.role},
        ip=ip_from_request(request),
    )
    return out