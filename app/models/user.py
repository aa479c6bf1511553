# app/models/user.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from app.db.base import Base, utcnow


class UserProfile(Base):
    """
    Local record of a principal issued by the identity provider.

    Credentials live with the provider; this row only lets invites resolve an
    email to a known account and remembers the last company the user acted in.
    """

    __tablename__ = "user_profiles"

    user_id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)

    last_active_company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
