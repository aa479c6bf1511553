"""
Pytest configuration and fixtures for the tenancy tests
"""
import os

# must be set before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_CREATE_ALL"] = "0"
os.environ["ENABLE_SCHEDULER"] = "0"
os.environ["COOKIE_SECURE"] = "0"
os.environ["IDP_JWT_SECRET"] = "test-idp-secret"
os.environ["STICKY_SECRET"] = "test-sticky-secret"
os.environ["APP_BASE_URL"] = "https://app.example.test"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

from app.core.auth import get_db
from app.core.config import settings
from app.crud import membership as crud_membership
from app.crud.company import register_company
from app.crud.employee import create_employee
from app.db.base import Base
from app.db.session import make_engine
from app.main import app as fastapi_app
from app.schemas.context import ActiveContext, Principal


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several sessions see each other's commits"""
    eng = make_engine(f"sqlite:///{tmp_path / 'tenancy.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """TestClient whose requests use the per-test database"""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


# -----------------------------
# Identities
# -----------------------------
def make_token(user_id: str, email: str) -> str:
    return jwt.encode(
        {"sub": user_id, "email": email},
        settings.idp_jwt_secret,
        algorithm=settings.idp_jwt_algorithm,
    )


def bearer(user_id: str, email: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


@pytest.fixture
def owner():
    return Principal(id="user-owner", email="owner@acme.example.com")


@pytest.fixture
def invitee():
    return Principal(id="user-ana", email="ana@acme.example.com")


# -----------------------------
# Tenancy data helpers
# -----------------------------
def make_company(db, principal: Principal, name: str = "Acme Services"):
    return register_company(
        db,
        owner_id=principal.id,
        owner_email=principal.email,
        name=name,
        owner_name="Owner",
    )


def make_employee(db, company_id: int, full_name: str = "Ana Souza", email=None, role="member"):
    employee = create_employee(
        db, company_id=company_id, full_name=full_name, email=email, role=role
    )
    db.commit()
    db.refresh(employee)
    return employee


def add_member(db, company_id: int, principal: Principal, role: str = "member"):
    """Linked employee + active membership, as left behind by an accepted invite"""
    employee = create_employee(
        db,
        company_id=company_id,
        full_name=principal.email.split("@")[0],
        email=principal.email,
        role=role,
        user_id=principal.id,
        invitation_status="accepted",
    )
    membership = crud_membership.upsert_active_membership(
        db, user_id=principal.id, company_id=company_id, role=role
    )
    db.commit()
    db.refresh(employee)
    db.refresh(membership)
    return employee, membership


@pytest.fixture
def company(db, owner):
    return make_company(db, owner)


@pytest.fixture
def owner_ctx(company):
    return ActiveContext(company_id=company.id, role="owner")
