"""
Invite inbox: live filtering, ownership, read state and decline
"""
from datetime import timedelta

import pytest

from app.core.errors import NotFound, StoreFailure
from app.crud import notification as crud_notification
from app.crud.user_profile import ensure_profile
from app.models.invite import Invite
from app.models.notification import UserNotification
from app.schemas.context import ActiveContext, Principal
from app.services import invites as svc
from app.services import notifications as inbox
from tests.conftest import make_company, make_employee


@pytest.fixture
def known_invitee(db, invitee):
    ensure_profile(db, invitee.id, invitee.email)
    db.commit()
    return invitee


@pytest.fixture
def delivered(db, owner, owner_ctx, company, known_invitee):
    """A pending invite already delivered to the invitee's inbox"""
    employee = make_employee(db, company.id, email=known_invitee.email)
    invite, raw = svc.create_invite(db, owner_ctx, owner, employee.id)
    notification = crud_notification.list_invite_rows(db, known_invitee.id)[0][0]
    return invite, raw, notification, employee


class TestInbox:
    def test_pending_invite_is_listed_with_company(self, db, company, known_invitee, delivered):
        invite, _, notification, _ = delivered
        items = inbox.list_inbox_items(db, known_invitee)

        assert len(items) == 1
        assert items[0].id == notification.id
        assert items[0].invite.id == invite.id
        assert items[0].invite.status == "pending"
        assert items[0].invite.company.name == company.name

    def test_revoked_invite_disappears_but_row_persists(self, db, owner, owner_ctx, known_invitee, delivered):
        _, _, notification, employee = delivered
        svc.revoke_for_employee(db, owner_ctx, owner, employee.id)

        assert inbox.list_inbox_items(db, known_invitee) == []
        assert db.get(UserNotification, notification.id) is not None

    def test_overdue_invite_is_hidden_and_written_back(self, db, known_invitee, delivered):
        invite, _, _, _ = delivered
        late = invite.expires_at + timedelta(seconds=1)

        assert inbox.list_inbox_items(db, known_invitee, now=late) == []
        db.expire_all()
        assert db.get(Invite, invite.id).status == "expired"

    def test_newest_first_across_companies(self, db, owner, known_invitee, delivered):
        first_invite = delivered[0]
        other_owner = Principal(id="user-boss", email="boss@other.example.com")
        other = make_company(db, other_owner, name="Other Co")
        other_ctx = ActiveContext(company_id=other.id, role="owner")
        employee = make_employee(db, other.id, email=known_invitee.email)
        second_invite, _ = svc.create_invite(db, other_ctx, other_owner, employee.id)

        items = inbox.list_inbox_items(db, known_invitee)
        assert [i.invite.id for i in items] == [second_invite.id, first_invite.id]

    def test_dangling_notification_is_a_store_failure(self, db, company, known_invitee):
        db.add(
            UserNotification(
                user_id=known_invitee.id,
                entity_id=987654,
                company_id=company.id,
            )
        )
        db.commit()
        with pytest.raises(StoreFailure):
            inbox.list_inbox_items(db, known_invitee)

    def test_other_users_see_nothing(self, db, delivered):
        stranger = Principal(id="user-stranger", email="stranger@example.com")
        assert inbox.list_inbox_items(db, stranger) == []


class TestReadState:
    def test_mark_read_is_idempotent(self, db, known_invitee, delivered):
        _, _, notification, _ = delivered
        assert inbox.unread_count(db, known_invitee) == 1

        first = inbox.mark_read(db, known_invitee, notification.id)
        read_at = first.read_at
        assert read_at is not None

        again = inbox.mark_read(db, known_invitee, notification.id)
        assert again.read_at == read_at
        assert inbox.unread_count(db, known_invitee) == 0

    def test_only_owner_can_mark_read(self, db, delivered):
        _, _, notification, _ = delivered
        stranger = Principal(id="user-stranger", email="stranger@example.com")
        with pytest.raises(NotFound):
            inbox.mark_read(db, stranger, notification.id)


class TestDecline:
    def test_decline_revokes_and_marks_read(self, db, known_invitee, delivered):
        invite, _, notification, employee = delivered

        assert inbox.decline_by_notification(db, known_invitee, notification.id)[1] == "revoked"
        db.expire_all()
        assert db.get(Invite, invite.id).status == "revoked"
        assert db.get(UserNotification, notification.id).read_at is not None
        assert inbox.list_inbox_items(db, known_invitee) == []
        db.refresh(employee)
        assert employee.invitation_status == "revoked"

    def test_decline_twice_is_a_no_op(self, db, known_invitee, delivered):
        _, _, notification, _ = delivered
        inbox.decline_by_notification(db, known_invitee, notification.id)
        assert inbox.decline_by_notification(db, known_invitee, notification.id)[1] == "revoked"

    def test_cannot_decline_through_someone_elses_notification(self, db, known_invitee, delivered):
        invite, _, notification, _ = delivered
        stranger = Principal(id="user-stranger", email="stranger@example.com")
        with pytest.raises(NotFound):
            inbox.decline_by_notification(db, stranger, notification.id)
        db.refresh(invite)
        assert invite.status == "pending"

    def test_scenario_d_admin_revoke_races_decline(
        self, session_factory, db, owner, owner_ctx, known_invitee, delivered
    ):
        invite, _, notification, employee = delivered

        admin_session = session_factory()
        invitee_session = session_factory()
        try:
            # the invitee has loaded the pending invite before the admin acts
            assert invitee_session.get(Invite, invite.id).status == "pending"

            assert svc.revoke_for_employee(admin_session, owner_ctx, owner, employee.id) == 1
            _, result = inbox.decline_by_notification(invitee_session, known_invitee, notification.id)
            assert result == "revoked"
        finally:
            admin_session.close()
            invitee_session.close()

        db.expire_all()
        stored = db.get(Invite, invite.id)
        assert stored.status == "revoked"
        assert db.get(UserNotification, notification.id).read_at is not None

    def test_decline_after_accept_reports_accepted(self, db, known_invitee, delivered):
        _, raw, notification, _ = delivered
        svc.accept_by_token(db, known_invitee, raw)
        assert inbox.decline_by_notification(db, known_invitee, notification.id)[1] == "accepted"
