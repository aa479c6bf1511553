"""
HTTP surface: auth, active-company cookie, invite flow and inbox
"""
import json
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

from sqlalchemy import select

from app.core.config import settings
from app.db.base import utcnow
from app.models.audit_log import AuditLog
from app.models.invite import Invite
from tests.conftest import bearer

OWNER = bearer("user-owner", "owner@acme.example.com")
ANA = bearer("user-ana", "ana@acme.example.com")
OTHER = bearer("user-boss", "boss@other.example.com")


def _register(client, headers, name="Acme Services"):
    res = client.post("/api/v1/companies", json={"name": name}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def _add_employee(client, headers, email="ana@acme.example.com", role="member"):
    res = client.post(
        "/api/v1/employees",
        json={"full_name": "Ana Souza", "email": email, "role": role},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def _invite(client, headers, employee_id):
    res = client.post("/api/v1/invites", json={"employee_id": employee_id}, headers=headers)
    assert res.status_code == 201, res.text
    body = res.json()
    token = parse_qs(urlparse(body["invite_link"]).query)["token"][0]
    return body, token


def test_missing_credentials_use_error_envelope(client):
    res = client.get("/api/v1/me/companies")
    assert res.status_code == 401
    body = res.json()
    assert body["ok"] is False
    assert body["error"]["type"] == "unauthenticated"
    assert body["error"]["trace_id"] == res.headers["X-Request-ID"]


def test_bad_token_is_rejected(client):
    res = client.get("/api/v1/me/companies", headers={"Authorization": "Bearer nope"})
    assert res.status_code == 401


def test_register_company_sets_active_cookie(client):
    company = _register(client, OWNER)
    assert client.cookies.get(settings.active_company_cookie)

    res = client.get("/api/v1/me/context", headers=OWNER)
    assert res.status_code == 200
    ctx = res.json()
    assert ctx["context"] == {"company_id": company["id"], "role": "owner"}
    assert ctx["needs_selection"] is False


def test_user_without_memberships_has_no_context(client):
    res = client.get("/api/v1/me/context", headers=ANA)
    assert res.json() == {"context": None, "needs_selection": False, "companies": []}

    res = client.get("/api/v1/employees", headers=ANA)
    assert res.status_code == 403
    assert res.json()["error"]["type"] == "no_active_context"


def test_two_companies_require_explicit_selection(client):
    c1 = _register(client, OWNER, name="Acme Services")
    c2 = _register(client, OWNER, name="Acme North")

    # a fresh browser: no sticky cookie
    client.cookies.clear()
    ctx = client.get("/api/v1/me/context", headers=OWNER).json()
    assert ctx["context"] is None
    assert ctx["needs_selection"] is True
    assert {c["company_id"] for c in ctx["companies"]} == {c1["id"], c2["id"]}

    res = client.get("/api/v1/employees", headers=OWNER)
    assert res.status_code == 403
    error = res.json()["error"]
    assert error["type"] == "no_active_context"
    assert error["details"]["needs_selection"] is True

    res = client.post("/api/v1/me/active-company", json={"company_id": c2["id"]}, headers=OWNER)
    assert res.status_code == 200
    assert res.json() == {"company_id": c2["id"], "role": "owner"}

    ctx = client.get("/api/v1/me/context", headers=OWNER).json()
    assert ctx["context"]["company_id"] == c2["id"]
    employees = client.get("/api/v1/employees", headers=OWNER).json()
    assert {e["company_id"] for e in employees} == {c2["id"]}


def test_cookie_from_another_user_is_ignored(client):
    _register(client, OWNER, name="Acme Services")
    _register(client, OWNER, name="Acme North")

    # the jar now holds the other user's hint, which must not scope the owner
    _register(client, OTHER, name="Other Co")
    _register(client, OTHER, name="Other North")
    ctx = client.get("/api/v1/me/context", headers=OWNER).json()
    assert ctx["context"] is None
    assert ctx["needs_selection"] is True


def test_select_company_without_membership_is_forbidden(client):
    foreign = _register(client, OTHER, name="Other Co")
    res = client.post(
        "/api/v1/me/active-company", json={"company_id": foreign["id"]}, headers=ANA
    )
    assert res.status_code == 403
    assert res.json()["error"]["type"] == "forbidden"


def test_forget_active_company_clears_cookie(client):
    _register(client, OWNER)
    assert client.cookies.get(settings.active_company_cookie)
    res = client.delete("/api/v1/me/active-company", headers=OWNER)
    assert res.status_code == 204
    assert client.cookies.get(settings.active_company_cookie) is None


def test_invite_flow_by_token(client):
    company = _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    issued, token = _invite(client, OWNER, employee["id"])
    assert issued["invite"]["status"] == "pending"
    assert issued["invite_link"].startswith("https://app.example.test/invite/accept?token=")

    res = client.get("/api/v1/invites/validate", params={"token": token})
    assert res.status_code == 200
    preview = res.json()
    assert preview["company"]["name"] == "Acme Services"
    assert preview["employee"]["email"] == "ana@acme.example.com"

    assert client.get("/api/v1/invites/validate", params={"token": "short"}).status_code == 400
    assert client.get("/api/v1/invites/validate", params={"token": "x" * 43}).status_code == 404

    res = client.post("/api/v1/invites/email", json={"token": token, "email": "ana@acme.example.com"})
    assert res.status_code == 200

    client.cookies.clear()
    res = client.post("/api/v1/invites/accept", json={"token": token}, headers=ANA)
    assert res.status_code == 200, res.text
    assert res.json()["company_id"] == company["id"]
    assert res.json()["role"] == "member"
    assert client.cookies.get(settings.active_company_cookie)

    ctx = client.get("/api/v1/me/context", headers=ANA).json()
    assert ctx["context"] == {"company_id": company["id"], "role": "member"}

    again = client.post("/api/v1/invites/accept", json={"token": token}, headers=ANA)
    assert again.status_code == 410
    assert again.json()["error"]["type"] == "invalid_transition"

    assert client.get("/api/v1/invites/validate", params={"token": token}).status_code == 409


def test_accept_with_wrong_account_is_forbidden(client):
    _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    _, token = _invite(client, OWNER, employee["id"])

    res = client.post("/api/v1/invites/accept", json={"token": token}, headers=OTHER)
    assert res.status_code == 403


def test_member_cannot_invite(client):
    _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    _, token = _invite(client, OWNER, employee["id"])
    client.post("/api/v1/invites/accept", json={"token": token}, headers=ANA)

    other = _add_employee(client, OWNER, email="rui@acme.example.com")
    res = client.post("/api/v1/invites", json={"employee_id": other["id"]}, headers=ANA)
    assert res.status_code == 403
    assert res.json()["error"]["type"] == "forbidden"


def test_second_invite_for_same_employee_conflicts(client):
    _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    _invite(client, OWNER, employee["id"])

    res = client.post("/api/v1/invites", json={"employee_id": employee["id"]}, headers=OWNER)
    assert res.status_code == 409

    res = client.post(
        "/api/v1/invites/regenerate", json={"employee_id": employee["id"]}, headers=OWNER
    )
    assert res.status_code == 200
    assert res.json()["invite"]["status"] == "pending"

    res = client.post("/api/v1/invites/revoke", json={"employee_id": employee["id"]}, headers=OWNER)
    assert res.json() == {"success": True, "revoked": 1}


def test_inbox_flow_for_known_account(client):
    # ana signs in once before being invited, so her account is known
    assert client.get("/api/v1/me/companies", headers=ANA).json() == []

    company = _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    _invite(client, OWNER, employee["id"])

    assert client.get("/api/v1/invites/notifications/count", headers=ANA).json() == {"count": 1}
    inbox = client.get("/api/v1/invites/inbox", headers=ANA).json()["data"]
    assert len(inbox) == 1
    item = inbox[0]
    assert item["invite"]["company"]["name"] == "Acme Services"

    # nobody else can read or act on it
    assert client.post(f"/api/v1/notifications/{item['id']}/read", headers=OTHER).status_code == 404
    res = client.post(
        "/api/v1/invites/accept-by-notification",
        json={"notification_id": item["id"]},
        headers=OTHER,
    )
    assert res.status_code == 404

    res = client.post(f"/api/v1/notifications/{item['id']}/read", headers=ANA)
    assert res.status_code == 200
    assert res.json()["read_at"] is not None
    assert client.get("/api/v1/invites/notifications/count", headers=ANA).json() == {"count": 0}

    res = client.post(
        "/api/v1/invites/accept-by-notification",
        json={"notification_id": item["id"]},
        headers=ANA,
    )
    assert res.status_code == 200, res.text
    assert res.json()["company_id"] == company["id"]
    assert client.get("/api/v1/invites/inbox", headers=ANA).json() == {"data": []}


def test_invite_created_before_sign_up_reaches_inbox(client):
    _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    _invite(client, OWNER, employee["id"])

    # first authenticated request creates the profile and attaches the invite
    inbox = client.get("/api/v1/invites/inbox", headers=ANA).json()["data"]
    assert len(inbox) == 1

    res = client.post(
        "/api/v1/invites/decline-by-notification",
        json={"notification_id": inbox[0]["id"]},
        headers=ANA,
    )
    assert res.json() == {"success": True, "status": "revoked"}
    assert client.get("/api/v1/invites/inbox", headers=ANA).json() == {"data": []}


def test_health_echoes_request_id(client):
    res = client.get("/api/healthz", headers={"X-Request-ID": "abc123"})
    assert res.status_code == 200
    assert res.json()["ok"] is True
    assert res.headers["X-Request-ID"] == "abc123"

    assert client.get("/api/readyz").json()["db"] == "up"


def test_malformed_body_is_a_400_validation_error(client):
    _register(client, OWNER)
    for body in ({"company_id": "abc"}, {"company_id": 0}, {}):
        res = client.post("/api/v1/me/active-company", json=body, headers=OWNER)
        assert res.status_code == 400
        error = res.json()["error"]
        assert error["type"] == "validation_error"
        assert error["status"] == 400
        assert error["details"]


def test_revoking_an_overdue_invite_is_gone(client, session_factory, monkeypatch):
    _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    issued, _ = _invite(client, OWNER, employee["id"])

    late = utcnow() + timedelta(days=365)
    monkeypatch.setattr("app.services.invites.utcnow", lambda: late)
    res = client.post("/api/v1/invites/revoke", json={"employee_id": employee["id"]}, headers=OWNER)
    assert res.status_code == 410
    assert res.json()["error"]["details"] == {"status": "expired"}

    with session_factory() as db:
        assert db.get(Invite, issued["invite"]["id"]).status == "expired"


def test_decline_is_audited_against_the_invite(client, session_factory):
    company = _register(client, OWNER)
    employee = _add_employee(client, OWNER)
    issued, _ = _invite(client, OWNER, employee["id"])

    item = client.get("/api/v1/invites/inbox", headers=ANA).json()["data"][0]
    res = client.post(
        "/api/v1/invites/decline-by-notification",
        json={"notification_id": item["id"]},
        headers=ANA,
    )
    assert res.status_code == 200

    with session_factory() as db:
        row = db.execute(
            select(AuditLog).where(AuditLog.action == "INVITE_DECLINED")
        ).scalar_one()
    assert row.company_id == company["id"]
    assert row.user_id == "user-ana"
    assert row.entity_type == "invite"
    assert row.entity_id == issued["invite"]["id"]
    assert json.loads(row.meta) == {"status": "revoked", "notification_id": item["id"]}
