from datetime import date

import pytest

from conftest import make_admin, make_member
from dependencies import principal_from_token, resolve_capabilities
from errors import ConflictOrNotFound, NotAuthenticated, UpstreamFailure, ValidationError
from models import Profile, User, UserRole
from schemas import ProfileUpdate, UserLogin, UserSignup
from services import identity, members
from storage import LocalBlobStore


def test_signup_creates_one_profile_and_member_role(db):
    member = make_member(db)
    assert db.query(Profile).filter(Profile.id == member.user_id).count() == 1
    roles = [r.role for r in db.query(UserRole).filter(UserRole.user_id == member.user_id)]
    assert roles == ["member"]


def test_capabilities(db):
    member = make_member(db)
    admin = make_admin(db)

    assert resolve_capabilities(db, None).is_authenticated is False
    assert resolve_capabilities(db, member).is_admin is False
    assert resolve_capabilities(db, admin).is_admin is True


def test_sign_out_revokes_token(db):
    make_member(db, email="asha@example.com")
    token, _ = identity.sign_in(db, UserLogin(email="asha@example.com", password="secret123"))

    principal = principal_from_token(db, token)
    assert principal is not None

    identity.sign_out(db, principal)
    assert principal_from_token(db, token) is None


def test_garbage_token_is_no_session(db):
    assert principal_from_token(db, "not-a-jwt") is None


def test_auth_events_published(db):
    seen = []
    unsubscribe = identity.auth_events.subscribe(lambda event, principal: seen.append((event, principal.email)))
    try:
        make_member(db, email="asha@example.com")
        identity.sign_in(db, UserLogin(email="asha@example.com", password="secret123"))
    finally:
        unsubscribe()

    assert seen == [("SIGNED_UP", "asha@example.com"), ("SIGNED_IN", "asha@example.com")]


def test_failing_subscriber_does_not_break_sign_in(db):
    def broken(event, principal):
        raise RuntimeError("boom")

    unsubscribe = identity.auth_events.subscribe(broken)
    try:
        make_member(db, email="asha@example.com")
    finally:
        unsubscribe()


def test_bad_password(db):
    make_member(db, email="asha@example.com")
    with pytest.raises(NotAuthenticated):
        identity.sign_in(db, UserLogin(email="asha@example.com", password="wrong-pass"))


@pytest.mark.parametrize("dob", [date(1890, 1, 1), date.today()])
def test_implausible_dob(dob):
    with pytest.raises(ValidationError) as exc:
        identity.validate_date_of_birth(dob)
    assert exc.value.reason == "implausible-dob"


def test_contact_lookup(db):
    member = make_member(db, email="asha@example.com")
    assert identity.lookup_contact_address(db, member.user_id) == "asha@example.com"
    assert identity.lookup_contact_address(db, "missing") is None


def test_update_own_profile(db):
    member = make_member(db)
    updated = members.update_profile(db, member, ProfileUpdate(occupation="Architect", full_name=None))

    assert updated.occupation == "Architect"
    assert updated.full_name == "Asha Rao"
    with pytest.raises(NotAuthenticated):
        members.update_profile(db, None, ProfileUpdate(bio="hi"))


def test_malformed_row_is_rejected(db):
    member = make_member(db)
    db.get(Profile, member.user_id).full_name = "   "
    db.commit()

    with pytest.raises(UpstreamFailure):
        members.get_member(db, member.user_id)
    with pytest.raises(ConflictOrNotFound):
        members.get_member(db, "missing")


def test_blob_paths_cannot_escape_root(tmp_path):
    store = LocalBlobStore(tmp_path / "uploads")
    with pytest.raises(UpstreamFailure):
        store.put("../outside.png", b"x")


def test_duplicate_email_caught_at_insert(db, monkeypatch):
    make_member(db, email="asha@example.com")

    real_query = db.query

    class NoMatch:
        def filter(self, *criteria):
            return self

        def first(self):
            return None

    # The existence check runs before a racing sign-up commits
    def query(*entities):
        if entities == (User,):
            return NoMatch()
        return real_query(*entities)

    monkeypatch.setattr(db, "query", query)
    with pytest.raises(ValidationError) as exc:
        identity.sign_up(db, UserSignup(
            email="Asha@example.com",
            password="secret123",
            full_name="Asha R",
            batch_year="2011",
            date_of_birth=date(1994, 5, 1)
        ))
    monkeypatch.undo()

    assert exc.value.reason == "email-taken"
    assert db.query(User).count() == 1
    assert db.query(Profile).count() == 1
