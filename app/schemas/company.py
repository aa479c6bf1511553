from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CompanyRegister(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    owner_name: Optional[str] = Field(default=None, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=120)
    team_size: Optional[str] = Field(default=None, max_length=30)


class CompanyOut(BaseModel):
    id: int
    name: str
    owner_id: str
    email: Optional[str] = None
    industry: Optional[str] = None
    team_size: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
