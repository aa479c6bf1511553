# app/models/invite.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index, text
from sqlalchemy.orm import relationship
from app.db.base import Base, utcnow

INVITE_STATUSES = ("pending", "accepted", "revoked", "expired")
TERMINAL_STATUSES = frozenset({"accepted", "revoked", "expired"})


class Invite(Base):
    __tablename__ = "invites"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    email = Column(String(255), nullable=True, index=True)
    role = Column(String(20), nullable=False, default="member")  # admin / member

    # sha256 hex of the raw token; the raw token is never stored
    token_hash = Column(String(64), unique=True, nullable=False, index=True)

    status = Column(String(20), nullable=False, default="pending")  # pending / accepted / revoked / expired
    expires_at = Column(DateTime, nullable=False)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    accepted_by = Column(String(64), nullable=True)
    revoked_at = Column(DateTime, nullable=True)

    company = relationship("Company")
    employee = relationship("Employee")

    # at most one pending invite per employee
    __table_args__ = (
        Index(
            "uq_invites_pending_employee",
            "employee_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )
