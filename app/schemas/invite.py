from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

InviteRole = Literal["admin", "member"]


class InviteCreate(BaseModel):
    employee_id: int = Field(ge=1)
    role: Optional[InviteRole] = None


class InviteEmployeeRef(BaseModel):
    employee_id: int = Field(ge=1)


class InviteOut(BaseModel):
    id: int
    company_id: int
    employee_id: int
    email: Optional[str] = None
    role: str
    status: str
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class InviteIssued(BaseModel):
    """Returned once on create/regenerate; the link carries the raw token."""

    invite: InviteOut
    invite_link: str


class InviteTokenIn(BaseModel):
    token: str = Field(min_length=1, max_length=256)


class InviteEmailIn(InviteTokenIn):
    email: EmailStr


class InviteNotificationIn(BaseModel):
    notification_id: int = Field(ge=1)


class InviteRevokeOut(BaseModel):
    success: bool = True
    revoked: int = 0


class InviteValidateOut(BaseModel):
    valid: bool = True
    invite: dict
    company: Optional[dict] = None
    employee: Optional[dict] = None


class InviteAcceptOut(BaseModel):
    success: bool = True
    company_id: int
    employee_id: int
    role: str
    redirect: str = "/dashboard"


class InviteDeclineOut(BaseModel):
    success: bool = True
    status: str
