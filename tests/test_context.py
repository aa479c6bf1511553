"""
Active-company resolution and explicit selection
"""
import pytest
from jose import jwt

from app.core.errors import Forbidden
from app.core.scoping import (
    describe_context,
    make_sticky_hint,
    read_sticky_hint,
    resolve_context,
    select_active_company,
)
from app.crud import membership as crud_membership
from app.crud.user_profile import get_profile
from app.schemas.context import Principal
from tests.conftest import add_member, make_company


@pytest.fixture
def alice():
    return Principal(id="user-alice", email="alice@example.com")


@pytest.fixture
def bob():
    return Principal(id="user-bob", email="bob@example.com")


@pytest.fixture
def two_companies(db, alice, bob):
    """alice owns c1 and is a member of bob's c2"""
    c1 = make_company(db, alice, name="Alice Plumbing")
    c2 = make_company(db, bob, name="Bob Electric")
    add_member(db, c2.id, alice)
    return c1, c2


class TestResolveContext:
    def test_no_membership_means_no_context(self, db, alice):
        assert resolve_context(db, alice, None) is None
        info = describe_context(db, alice, None)
        assert info.context is None
        assert info.needs_selection is False
        assert info.companies == []

    def test_single_membership_ignores_any_hint(self, db, alice):
        company = make_company(db, alice)
        forged = jwt.encode({"sub": alice.id, "cid": company.id + 1}, "wrong-secret", algorithm="HS256")
        hints = [
            None,
            "",
            "garbage",
            forged,
            make_sticky_hint(alice.id, company.id + 100),
            make_sticky_hint("someone-else", company.id),
        ]
        for hint in hints:
            ctx = resolve_context(db, alice, hint)
            assert ctx is not None
            assert ctx.company_id == company.id
            assert ctx.role == "owner"

    def test_several_memberships_without_hint_need_selection(self, db, alice, two_companies):
        assert resolve_context(db, alice, None) is None
        assert resolve_context(db, alice, "not-a-token") is None

        info = describe_context(db, alice, None)
        assert info.context is None
        assert info.needs_selection is True
        assert {c.company_name for c in info.companies} == {"Alice Plumbing", "Bob Electric"}

    def test_several_memberships_with_matching_hint(self, db, alice, two_companies):
        c1, c2 = two_companies
        ctx = resolve_context(db, alice, make_sticky_hint(alice.id, c2.id))
        assert ctx.company_id == c2.id
        assert ctx.role == "member"

        ctx = resolve_context(db, alice, make_sticky_hint(alice.id, c1.id))
        assert ctx.company_id == c1.id
        assert ctx.role == "owner"

    def test_hint_for_company_outside_memberships_is_ignored(self, db, alice, bob, two_companies):
        c3 = make_company(db, bob, name="Bob Gardening")
        assert resolve_context(db, alice, make_sticky_hint(alice.id, c3.id)) is None

    def test_hint_of_another_user_is_ignored(self, db, alice, bob, two_companies):
        _, c2 = two_companies
        assert resolve_context(db, alice, make_sticky_hint(bob.id, c2.id)) is None

    def test_removed_membership_is_not_a_context(self, db, alice, two_companies):
        c1, c2 = two_companies
        membership = crud_membership.get_membership(db, alice.id, c2.id)
        crud_membership.set_membership_status(db, membership, "removed")
        db.commit()

        # only c1 remains, so the stale hint for c2 no longer matters
        ctx = resolve_context(db, alice, make_sticky_hint(alice.id, c2.id))
        assert ctx.company_id == c1.id


class TestStickyHint:
    def test_round_trip_is_bound_to_user(self):
        hint = make_sticky_hint("u-1", 42)
        assert read_sticky_hint(hint, "u-1") == 42
        assert read_sticky_hint(hint, "u-2") is None

    def test_tampered_or_missing_hint(self):
        assert read_sticky_hint(None, "u-1") is None
        assert read_sticky_hint("abc.def.ghi", "u-1") is None
        forged = jwt.encode({"sub": "u-1", "cid": 42}, "other-secret", algorithm="HS256")
        assert read_sticky_hint(forged, "u-1") is None

    def test_non_integer_company_is_rejected(self):
        from app.core.config import settings

        odd = jwt.encode({"sub": "u-1", "cid": "42"}, settings.sticky_secret, algorithm="HS256")
        assert read_sticky_hint(odd, "u-1") is None


class TestSelectActiveCompany:
    def test_select_member_company_records_last_active(self, db, alice, two_companies):
        _, c2 = two_companies
        ctx = select_active_company(db, alice, c2.id)
        assert ctx.company_id == c2.id
        assert ctx.role == "member"

        db.expire_all()
        assert get_profile(db, alice.id).last_active_company_id == c2.id

    def test_select_without_membership_is_forbidden(self, db, alice, bob, two_companies):
        c3 = make_company(db, bob, name="Bob Gardening")
        with pytest.raises(Forbidden):
            select_active_company(db, alice, c3.id)

    def test_select_removed_membership_is_forbidden(self, db, alice, two_companies):
        _, c2 = two_companies
        membership = crud_membership.get_membership(db, alice.id, c2.id)
        crud_membership.set_membership_status(db, membership, "removed")
        db.commit()
        with pytest.raises(Forbidden):
            select_active_company(db, alice, c2.id)
