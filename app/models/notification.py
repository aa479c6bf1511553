# app/models/notification.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.db.base import Base, utcnow

COMPANY_INVITE = "company_invite"


class UserNotification(Base):
    """
    Inbox delivery record. Whether an invite notification is still actionable
    is derived from the referenced invite at read time, not stored here.
    """

    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(40), nullable=False, default=COMPANY_INVITE)

    # invite id for company_invite notifications; invites are never hard-deleted
    entity_id = Column(Integer, nullable=False, index=True)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )

    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
