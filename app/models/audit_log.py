# app/models/audit_log.py
from sqlalchemy import Column, Integer, String, DateTime, Text
from app.db.base import Base, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    action = Column(String(60), nullable=False)
    entity_type = Column(String(40), nullable=True)
    entity_id = Column(Integer, nullable=True)
    meta = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
