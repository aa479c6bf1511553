# app/models/membership.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, utcnow

MEMBERSHIP_ROLES = ("owner", "admin", "member")
MEMBERSHIP_STATUSES = ("active", "removed")


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )

    role = Column(String(20), nullable=False, default="member")  # owner / admin / member
    status = Column(String(20), nullable=False, default="active")  # active / removed

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    company = relationship("Company", lazy="joined")

    # never deleted; removal flips status
    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_memberships_user_company"),
    )

    def is_admin(self) -> bool:
        return self.role in ("owner", "admin")
