# app/services/invites.py
"""
Invite lifecycle.

    (none) --create--> pending --accept--------> accepted
                          |-----revoke/decline--> revoked
                          '-----expires_at <= now-> expired

`invites.status` is the single authority; it is mirrored onto
`employees.invitation_status` in the same transaction. Every move out of
'pending' is a compare-and-set (UPDATE ... WHERE status = 'pending'), so of two
concurrent writers exactly one wins and the other sees a terminal state.

Expiry is lazy: a pending invite past `expires_at` is treated as expired on
every read, and write paths that discover it persist 'expired' before they
reject the caller. The background sweeper only speeds this up.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    StoreFailure,
    ValidationFailed,
)
from app.crud import employee as crud_employee
from app.crud import invite as crud_invite
from app.crud import membership as crud_membership
from app.crud import notification as crud_notification
from app.crud.user_profile import get_profile_by_email, set_last_active_company
from app.db.base import utcnow
from app.models.employee import Employee
from app.models.invite import Invite, TERMINAL_STATUSES
from app.models.membership import Membership
from app.models.notification import UserNotification
from app.models.user import UserProfile
from app.schemas.context import ActiveContext, Principal

log = logging.getLogger("app.invites")

MIN_TOKEN_LENGTH = 32
INVITABLE_ROLES = ("admin", "member")
UNAVAILABLE = "Invite is no longer available."


# ---------------------------------
# Helpers
# ---------------------------------


def normalize_email(email: Optional[str]) -> str:
    try:
        result = validate_email((email or "").strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationFailed("Invalid email.", details={"reason": str(exc)})
    return result.normalized.lower()


def _check_token(raw_token: Optional[str]) -> str:
    token = (raw_token or "").strip()
    if len(token) < MIN_TOKEN_LENGTH:
        raise ValidationFailed("Invalid token.")
    return token


def effective_status(invite: Invite, now: Optional[datetime] = None) -> str:
    """Status as seen at `now`: an overdue pending invite reads as expired."""
    now = now or utcnow()
    if invite.status == "pending" and invite.expires_at <= now:
        return "expired"
    return invite.status


def build_invite_link(raw_token: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.app_base_url).rstrip("/")
    return f"{base}/invite/accept?token={raw_token}"


def _unavailable(status: str) -> InvalidTransition:
    if status == "accepted":
        return InvalidTransition("Invite already accepted.", details={"status": status})
    return InvalidTransition(UNAVAILABLE, details={"status": status})


def _require_admin(ctx: ActiveContext) -> None:
    if not ctx.is_admin:
        raise Forbidden("Only owners and admins can manage invites.")


def _company_employee(db: Session, ctx: ActiveContext, employee_id: int) -> Employee:
    employee = crud_employee.get_company_employee(db, ctx.company_id, employee_id)
    if employee is None:
        raise NotFound("Employee not found.")
    return employee


def _invite_role(employee: Employee, requested: Optional[str]) -> str:
    if requested is not None:
        if requested not in INVITABLE_ROLES:
            raise ValidationFailed("Invalid invite role.")
        return requested
    return employee.role if employee.role in INVITABLE_ROLES else "member"


def mark_expired(db: Session, invite: Invite, now: datetime) -> bool:
    """pending -> expired with the employee mirror. Does not commit."""
    if not crud_invite.transition_from_pending(db, invite.id, "expired"):
        return False
    crud_employee.mirror_invitation_status(db, invite.employee_id, "expired", only_unlinked=True)
    log.warning(
        "invite expired invite_id=%s company_id=%s expires_at=%s",
        invite.id,
        invite.company_id,
        invite.expires_at.isoformat(),
    )
    return True


def _persist_expiry(db: Session, invite: Invite, now: datetime) -> None:
    """Commit the expired status so later reads agree without recomputation."""
    try:
        mark_expired(db, invite, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(invite)


# ---------------------------------
# Notifications for known accounts
# ---------------------------------


def notify_invitee(
    db: Session, invite: Invite, email: Optional[str] = None
) -> Optional[UserNotification]:
    """
    Deliver an inbox entry when the invite email belongs to a known account.
    Until then the invite is reachable only through its token. No commit.
    """
    email = email or invite.email
    if not email:
        return None
    profile = get_profile_by_email(db, email)
    if profile is None:
        return None
    return crud_notification.create_invite_notification(db, user_id=profile.user_id, invite=invite)


def attach_pending_invites(
    db: Session, profile: UserProfile, now: Optional[datetime] = None
) -> int:
    """Notify a newly known account about pending invites bound to its email."""
    now = now or utcnow()
    invites = crud_invite.list_pending_for_email(db, profile.email, now)
    for invite in invites:
        crud_notification.create_invite_notification(db, user_id=profile.user_id, invite=invite)
    if invites:
        log.info("attached %s pending invite(s) to user_id=%s", len(invites), profile.user_id)
    return len(invites)


# ---------------------------------
# Create / regenerate / revoke (company side)
# ---------------------------------


def _issue(
    db: Session,
    ctx: ActiveContext,
    principal: Principal,
    employee: Employee,
    role: str,
    now: datetime,
) -> Tuple[Invite, str]:
    raw_token = crud_invite.generate_token()
    invite = crud_invite.create_invite(
        db,
        company_id=ctx.company_id,
        employee_id=employee.id,
        token_hash=crud_invite.hash_token(raw_token),
        role=role,
        expires_at=now + timedelta(hours=settings.invite_ttl_hours),
        email=employee.email,
        created_by=principal.id,
    )
    crud_employee.mirror_invitation_status(db, employee.id, "pending")
    notify_invitee(db, invite)
    return invite, raw_token


def create_invite(
    db: Session,
    ctx: ActiveContext,
    principal: Principal,
    employee_id: int,
    role: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Invite, str]:
    """
    Issue a pending invite for an employee with no linked user.
    Returns (invite, raw_token); the raw token is never stored.
    """
    _require_admin(ctx)
    now = now or utcnow()
    employee = _company_employee(db, ctx, employee_id)
    if employee.user_id:
        raise Conflict("Employee is already linked to a user.")
    role = _invite_role(employee, role)

    try:
        for pending in crud_invite.list_pending_for_employee(db, employee.id):
            if effective_status(pending, now) == "expired":
                mark_expired(db, pending, now)
            else:
                raise Conflict(
                    "Employee already has a pending invite.",
                    details={"invite_id": pending.id},
                )
        invite, raw_token = _issue(db, ctx, principal, employee, role, now)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Employee already has a pending invite.")
    except Exception:
        db.rollback()
        raise

    db.refresh(invite)
    log.info(
        "invite created invite_id=%s company_id=%s employee_id=%s by=%s",
        invite.id,
        invite.company_id,
        invite.employee_id,
        principal.id,
    )
    return invite, raw_token


def regenerate_invite(
    db: Session,
    ctx: ActiveContext,
    principal: Principal,
    employee_id: int,
    role: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Invite, str]:
    """Revoke whatever is pending for the employee and issue a fresh invite."""
    _require_admin(ctx)
    now = now or utcnow()
    employee = _company_employee(db, ctx, employee_id)
    if employee.user_id:
        raise Conflict("Employee is already linked to a user.")
    role = _invite_role(employee, role)

    try:
        for pending in crud_invite.list_pending_for_employee(db, employee.id):
            if effective_status(pending, now) == "expired":
                mark_expired(db, pending, now)
        crud_invite.revoke_pending_for_employee(db, employee.id, revoked_at=now)
        invite, raw_token = _issue(db, ctx, principal, employee, role, now)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Employee already has a pending invite.")
    except Exception:
        db.rollback()
        raise

    db.refresh(invite)
    log.info(
        "invite regenerated invite_id=%s company_id=%s employee_id=%s by=%s",
        invite.id,
        invite.company_id,
        invite.employee_id,
        principal.id,
    )
    return invite, raw_token


def revoke_pending_invite(
    db: Session, invite: Invite, now: Optional[datetime] = None
) -> Tuple[str, bool]:
    """
    pending -> revoked for one invite. Does not commit.

    Returns (status, written). A terminal invite comes back unchanged with
    written=False (revoking twice is a no-op). An overdue invite is moved to
    'expired' instead (written=True); the caller commits and then rejects.
    Losing the race to another writer converges on the winner's status.
    """
    now = now or utcnow()
    if invite.status in TERMINAL_STATUSES:
        return invite.status, False

    if effective_status(invite, now) == "expired":
        return "expired", mark_expired(db, invite, now)

    if crud_invite.transition_from_pending(
        db, invite.id, "revoked", not_expired_at=now, revoked_at=now
    ):
        crud_employee.mirror_invitation_status(
            db, invite.employee_id, "revoked", only_unlinked=True
        )
        return "revoked", True

    db.refresh(invite)
    if invite.status == "pending":
        # crossed expires_at between the read and the write
        return "expired", mark_expired(db, invite, now)
    log.warning(
        "revoke lost race invite_id=%s current_status=%s", invite.id, invite.status
    )
    return invite.status, False


def revoke_for_employee(
    db: Session,
    ctx: ActiveContext,
    principal: Principal,
    employee_id: int,
    now: Optional[datetime] = None,
) -> int:
    """
    Revoke every pending invite of an employee. Idempotent; returns the count.
    An invite found past its expiry is stored as expired and the call is
    rejected, as with decline.
    """
    _require_admin(ctx)
    now = now or utcnow()
    employee = _company_employee(db, ctx, employee_id)

    revoked = 0
    expired = 0
    try:
        for pending in crud_invite.list_pending_for_employee(db, employee.id):
            status, written = revoke_pending_invite(db, pending, now)
            if not written:
                continue
            if status == "revoked":
                revoked += 1
            elif status == "expired":
                expired += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    if revoked:
        log.info(
            "invite revoked employee_id=%s company_id=%s count=%s by=%s",
            employee.id,
            ctx.company_id,
            revoked,
            principal.id,
        )
    if expired:
        raise _unavailable("expired")
    return revoked


# ---------------------------------
# Token side (invitee)
# ---------------------------------


def get_invite_for_token(db: Session, raw_token: str) -> Invite:
    invite = crud_invite.get_invite_by_token(db, _check_token(raw_token))
    if invite is None:
        raise NotFound("Invite not found.")
    return invite


def validate_token(db: Session, raw_token: str, now: Optional[datetime] = None) -> Invite:
    """Preview: the invite behind a token if it can still be accepted."""
    now = now or utcnow()
    invite = get_invite_for_token(db, raw_token)
    employee = invite.employee

    if invite.status == "accepted" or (employee is not None and employee.user_id):
        raise Conflict("Invite already accepted.", details={"status": invite.status})
    if invite.status != "pending":
        raise _unavailable(invite.status)
    if effective_status(invite, now) == "expired":
        _persist_expiry(db, invite, now)
        raise _unavailable("expired")
    return invite


def bind_invite_email(
    db: Session, raw_token: str, email: str, now: Optional[datetime] = None
) -> Invite:
    """
    Resolve an invite by token and bind an email to it and its employee.
    Re-submitting the bound email is a no-op; a different email is rejected.
    """
    now = now or utcnow()
    email = normalize_email(email)
    invite = get_invite_for_token(db, raw_token)

    if invite.status != "pending":
        raise _unavailable(invite.status)
    if effective_status(invite, now) == "expired":
        _persist_expiry(db, invite, now)
        raise _unavailable("expired")

    employee = invite.employee
    if employee is None:
        raise StoreFailure("Invite references a missing employee.")

    current = invite.email or employee.email
    if current:
        if current.lower() != email:
            raise Conflict("Invite is already bound to another email.")
        return invite

    try:
        employee_bound = crud_employee.bind_email_if_unset(db, employee.id, email)
        invite_bound = crud_invite.bind_email_if_unset(db, invite.id, email)
        if not (employee_bound and invite_bound):
            # a concurrent request bound first; fine only if it bound the same email
            db.rollback()
            db.refresh(invite)
            db.refresh(employee)
            winner = (invite.email or employee.email or "").lower()
            if winner != email:
                raise Conflict("Invite is already bound to another email.")
            return invite
        notify_invitee(db, invite, email=email)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(invite)
    log.info("invite email bound invite_id=%s company_id=%s", invite.id, invite.company_id)
    return invite


# ---------------------------------
# Accept
# ---------------------------------


def _membership_role(invite: Invite) -> str:
    return invite.role if invite.role in INVITABLE_ROLES else "member"


def _reject_lost_race(db: Session, invite: Invite, now: datetime) -> None:
    db.refresh(invite)
    if invite.status == "pending":
        # the conditional update only skips a pending row once it is overdue
        _persist_expiry(db, invite, now)
        raise _unavailable("expired")
    log.warning("accept lost race invite_id=%s current_status=%s", invite.id, invite.status)
    raise Conflict(
        "Invite was changed by another request.", details={"status": invite.status}
    )


def _accept(
    db: Session,
    invite: Invite,
    principal: Principal,
    now: datetime,
) -> Membership:
    """
    pending -> accepted plus every side effect, in one transaction:
    membership active, employee linked and mirrored, the user's notification
    read, sibling pending invites revoked, other users' notifications for this
    invite removed, last active company recorded. All or nothing.
    """
    if invite.status != "pending":
        raise _unavailable(invite.status)
    if effective_status(invite, now) == "expired":
        _persist_expiry(db, invite, now)
        raise _unavailable("expired")

    employee = invite.employee
    if employee is None:
        raise StoreFailure("Invite references a missing employee.")
    if employee.user_id and employee.user_id != principal.id:
        raise Conflict("Invite was already accepted by another user.")
    bound_email = invite.email or employee.email
    if bound_email and bound_email.lower() != principal.email:
        raise Forbidden("Invite is bound to a different email.")

    try:
        won = crud_invite.transition_from_pending(
            db,
            invite.id,
            "accepted",
            not_expired_at=now,
            accepted_at=now,
            accepted_by=principal.id,
        )
        if not won:
            db.rollback()
            _reject_lost_race(db, invite, now)

        membership = crud_membership.upsert_active_membership(
            db,
            user_id=principal.id,
            company_id=invite.company_id,
            role=_membership_role(invite),
        )
        employee.user_id = principal.id
        employee.invitation_status = "accepted"
        if not employee.email:
            employee.email = principal.email
        if not invite.email:
            crud_invite.bind_email_if_unset(db, invite.id, principal.email)

        crud_invite.revoke_pending_for_employee(
            db, employee.id, revoked_at=now, except_invite_id=invite.id
        )
        crud_notification.mark_read_for_invite(db, invite.id, principal.id, now)
        crud_notification.delete_for_invite_except_user(db, invite.id, principal.id)
        set_last_active_company(db, principal.id, invite.company_id)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(invite)
    db.refresh(membership)
    log.info(
        "invite accepted invite_id=%s company_id=%s user_id=%s",
        invite.id,
        invite.company_id,
        principal.id,
    )
    return membership


def accept_by_token(
    db: Session, principal: Principal, raw_token: str, now: Optional[datetime] = None
) -> Tuple[Invite, Membership]:
    """Accept via the emailed token; the principal's email must match the bound one."""
    now = now or utcnow()
    invite = get_invite_for_token(db, raw_token)
    membership = _accept(db, invite, principal, now)
    return invite, membership


def accept_by_notification(
    db: Session, principal: Principal, notification_id: int, now: Optional[datetime] = None
) -> Tuple[Invite, Membership]:
    """
    Accept from the inbox. The notification must belong to the principal and
    the principal's email must still match the one the invite is bound to.
    """
    now = now or utcnow()
    notification = crud_notification.get_owned_notification(db, notification_id, principal.id)
    if notification is None:
        raise NotFound("Invite not found.")
    invite = crud_invite.get_invite(db, notification.entity_id)
    if invite is None:
        raise StoreFailure(
            "Notification references a missing invite.",
            details={"notification_id": notification.id},
        )
    membership = _accept(db, invite, principal, now)
    return invite, membership


# ---------------------------------
# Sweeper
# ---------------------------------


def expire_overdue_invites(db: Session, now: Optional[datetime] = None) -> int:
    """Persist 'expired' for every overdue pending invite. Returns the count."""
    now = now or utcnow()
    expired = 0
    try:
        for invite in crud_invite.list_overdue_pending(db, now):
            if mark_expired(db, invite, now):
                expired += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    return expired
