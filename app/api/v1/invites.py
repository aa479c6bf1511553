# app/api/v1/invites.py
from __future__ import annotations

from typing import Tuple

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.core.auth import get_db, get_current_principal
from app.core.rbac import require_company_admin
from app.core.scoping import set_sticky_cookie
from app.models.invite import Invite
from app.schemas.context import ActiveContext, Principal
from app.schemas.invite import (
    InviteAcceptOut,
    InviteCreate,
    InviteDeclineOut,
    InviteEmailIn,
    InviteEmployeeRef,
    InviteIssued,
    InviteNotificationIn,
    InviteOut,
    InviteRevokeOut,
    InviteTokenIn,
    InviteValidateOut,
)
from app.schemas.notification import InboxOut, UnreadCountOut
from app.services import invites as invite_service
from app.services import notifications as inbox_service
from app.services.audit import audit_log, ip_from_request, token_suffix  # AUDIT

router = APIRouter()


def _issued(invite: Invite, raw_token: str) -> InviteIssued:
    return InviteIssued(
        invite=InviteOut.model_validate(invite),
        invite_link=invite_service.build_invite_link(raw_token),
    )


# -----------------------------
# Company side (owner / admin)
# -----------------------------
@router.post("/invites", response_model=InviteIssued, status_code=status.HTTP_201_CREATED)
def api_create_invite(
    payload: InviteCreate,
    request: Request,
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(require_company_admin),
):
    principal, ctx = scoped
    invite, raw_token = invite_service.create_invite(
        db, ctx, principal, payload.employee_id, payload.role
    )
    out = _issued(invite, raw_token)

    # --- AUDIT (best-effort) ---
    audit_log(
        db,
        company_id=ctx.company_id,
        user_id=principal.id,
        action="INVITE_CREATED",
        entity_type="invite",
        entity_id=out.invite.id,
        meta={
            "employee_id": out.invite.employee_id,
            "role": out.invite.role,
            "token_suffix": token_suffix(raw_token),
        },
        ip=ip_from_request(request),
    )
    return out


@router.post("/invites/regenerate", response_model=InviteIssued)
def api_regenerate_invite(
    payload: InviteCreate,
    request: Request,
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(require_company_admin),
):
    principal, ctx = scoped
    invite, raw_token = invite_service.regenerate_invite(
        db, ctx, principal, payload.employee_id, payload.role
    )
    out = _issued(invite, raw_token)

    audit_log(
        db,
        company_id=ctx.company_id,
        user_id=principal.id,
        action="INVITE_REGENERATED",
        entity_type="invite",
        entity_id=out.invite.id,
        meta={"employee_id": out.invite.employee_id, "token_suffix": token_suffix(raw_token)},
        ip=ip_from_request(request),
    )
    return out


@router.post("/invites/revoke", response_model=InviteRevokeOut)
def api_revoke_invite(
    payload: InviteEmployeeRef,
    request: Request,
    db: Session = Depends(get_db),
    scoped: Tuple[Principal, ActiveContext] = Depends(require_company_admin),
):
    principal, ctx = scoped
    revoked = invite_service.revoke_for_employee(db, ctx, principal, payload.employee_id)

    if revoked:
        audit_log(
            db,
            company_id=ctx.company_id,
            user_id=principal.id,
            action="INVITE_REVOKED",
            entity_type="employee",
            entity_id=payload.employee_id,
            meta={"count": revoked},
            ip=ip_from_request(request),
        )
    return InviteRevokeOut(success=True, revoked=revoked)


# -----------------------------
# Token side (public link)
# -----------------------------
@router.get("/invites/validate", response_model=InviteValidateOut)
def api_validate_invite(
    token: str = Query(..., description="Invite token from the invite link"),
    db: Session = Depends(get_db),
):
    invite = invite_service.validate_token(db, token)
    company = invite.company
    employee = invite.employee
    return InviteValidateOut(
        valid=True,
        invite={
            "id": invite.id,
            "role": invite.role,
            "expires_at": invite.expires_at.isoformat(),
        },
        company=(
            {"id": company.id, "name": company.name, "logo_url": company.logo_url}
            if company
            else None
        ),
        employee=(
            {
                "id": employee.id,
                "full_name": employee.full_name,
                "email": invite.email or employee.email,
            }
            if employee
            else None
        ),
    )


@router.post("/invites/email")
def api_bind_invite_email(
    payload: InviteEmailIn,
    request: Request,
    db: Session = Depends(get_db),
):
    invite = invite_service.bind_invite_email(db, payload.token, payload.email)
    invite_id, company_id = invite.id, invite.company_id

    audit_log(
        db,
        company_id=company_id,
        user_id=None,
        action="INVITE_EMAIL_BOUND",
        entity_type="invite",
        entity_id=invite_id,
        meta={"token_suffix": token_suffix(payload.token)},
        ip=ip_from_request(request),
    )
    return {"success": True}


@router.post("/invites/accept", response_model=InviteAcceptOut)
def api_accept_invite(
    payload: InviteTokenIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    invite, membership = invite_service.accept_by_token(db, principal, payload.token)
    out = InviteAcceptOut(
        company_id=invite.company_id,
        employee_id=invite.employee_id,
        role=membership.role,
    )
    set_sticky_cookie(response, principal, out.company_id)

    audit_log(
        db,
        company_id=out.company_id,
        user_id=principal.id,
        action="INVITE_ACCEPTED",
        entity_type="invite",
        entity_id=invite.id,
        meta={"via": "token", "token_suffix": token_suffix(payload.token)},
        ip=ip_from_request(request),
    )
    return out


# -----------------------------
# Inbox side (known accounts)
# -----------------------------
@router.post("/invites/accept-by-notification", response_model=InviteAcceptOut)
def api_accept_by_notification(
    payload: InviteNotificationIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    invite, membership = invite_service.accept_by_notification(
        db, principal, payload.notification_id
    )
    out = InviteAcceptOut(
        company_id=invite.company_id,
        employee_id=invite.employee_id,
        role=membership.role,
    )
    set_sticky_cookie(response, principal, out.company_id)

    audit_log(
        db,
        company_id=out.company_id,
        user_id=principal.id,
        action="INVITE_ACCEPTED",
        entity_type="invite",
        entity_id=invite.id,
        meta={"via": "notification", "notification_id": payload.notification_id},
        ip=ip_from_request(request),
    )
    return out


@router.post("/invites/decline-by-notification", response_model=InviteDeclineOut)
def api_decline_by_notification(
    payload: InviteNotificationIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    invite, result = inbox_service.decline_by_notification(
        db, principal, payload.notification_id
    )
    invite_id, company_id = invite.id, invite.company_id

    audit_log(
        db,
        company_id=company_id,
        user_id=principal.id,
        action="INVITE_DECLINED",
        entity_type="invite",
        entity_id=invite_id,
        meta={"status": result, "notification_id": payload.notification_id},
        ip=ip_from_request(request),
    )
    return InviteDeclineOut(success=True, status=result)


@router.get("/invites/inbox", response_model=InboxOut)
def api_inbox(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return InboxOut(data=inbox_service.list_inbox_items(db, principal))


@router.get("/invites/notifications/count", response_model=UnreadCountOut)
def api_unread_count(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return UnreadCountOut(count=inbox_service.unread_count(db, principal))
