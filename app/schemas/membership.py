# app/schemas/membership.py
from typing import Literal

from pydantic import BaseModel


class MembershipRoleIn(BaseModel):
    role: Literal["admin", "member"]


class MembershipOut(BaseModel):
    user_id: str
    company_id: int
    role: str
    status: str

    class Config:
        from_attributes = True
