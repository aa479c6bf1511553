# app/schemas/employee.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class EmployeeCreate(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    role: Literal["admin", "member"] = "member"


class EmployeeOut(BaseModel):
    id: int
    company_id: int
    user_id: Optional[str] = None
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str
    invitation_status: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class EmployeeStatusIn(BaseModel):
    status: Literal["active", "inactive"]
