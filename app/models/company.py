from sqlalchemy import Column, Integer, String, DateTime
from app.db.base import Base, utcnow


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)

    # opaque identity-provider id of the registering user
    owner_id = Column(String(64), nullable=False, index=True)

    email = Column(String(255), nullable=True)
    industry = Column(String(120), nullable=True)
    team_size = Column(String(30), nullable=True)
    logo_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
