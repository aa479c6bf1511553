# app/schemas/notification.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class InboxCompany(BaseModel):
    id: int
    name: str


class InboxInvite(BaseModel):
    id: int
    status: str
    expires_at: datetime
    role: str
    created_at: datetime
    company_id: int
    company: Optional[InboxCompany] = None


class InboxItemOut(BaseModel):
    id: int
    read_at: Optional[datetime] = None
    created_at: datetime
    invite: InboxInvite


class InboxOut(BaseModel):
    data: List[InboxItemOut]


class UnreadCountOut(BaseModel):
    count: int


class NotificationOut(BaseModel):
    id: int
    type: str
    entity_id: int
    company_id: int
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
