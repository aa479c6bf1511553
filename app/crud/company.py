# app/crud/company.py
from typing import Optional

from sqlalchemy.orm import Session

from app.models.company import Company
from app.models.employee import Employee
from app.models.membership import Membership
from app.crud.user_profile import ensure_profile, set_last_active_company


def get_company(db: Session, company_id: int) -> Optional[Company]:
    return db.get(Company, company_id)


def register_company(
    db: Session,
    *,
    owner_id: str,
    owner_email: str,
    name: str,
    owner_name: Optional[str] = None,
    industry: Optional[str] = None,
    team_size: Optional[str] = None,
) -> Company:
    """
    Company + owner employee + owner membership in one transaction.
    The owner membership is the only one created without an invite.
    """
    try:
        company = Company(
            name=name.strip(),
            owner_id=owner_id,
            email=owner_email,
            industry=industry,
            team_size=team_size,
        )
        db.add(company)
        db.flush()  # need company.id

        db.add(
            Employee(
                company_id=company.id,
                user_id=owner_id,
                full_name=(owner_name or owner_email).strip(),
                email=owner_email,
                role="owner",
                invitation_status="accepted",
                is_active=True,
            )
        )
        db.add(
            Membership(
                user_id=owner_id,
                company_id=company.id,
                role="owner",
                status="active",
            )
        )
        ensure_profile(db, owner_id, owner_email)
        db.flush()
        set_last_active_company(db, owner_id, company.id)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(company)
    return company
