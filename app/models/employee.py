# app/models/employee.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, text
from app.db.base import Base, utcnow

EMPLOYEE_ROLES = ("owner", "admin", "member")


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # null until the linked invite is accepted
    user_id = Column(String(64), nullable=True, index=True)

    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default="member")

    # mirrors the status of the employee's latest invite
    invitation_status = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=text("1"), default=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
