from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_admin, make_member
from errors import ConflictOrNotFound, NotAuthenticated, NotAuthorized, ValidationError
from models import Event, EventRSVP
from schemas import EventCreate
from services import events as event_service


def _create_event(db, admin, days=7, title="Annual Reunion"):
    return event_service.create_event(db, admin, EventCreate(
        title=title,
        event_date=datetime.utcnow() + timedelta(days=days),
        location="School Auditorium",
    ))


def _rsvp_rows(db, event_id, user_id):
    return db.query(EventRSVP).filter(
        EventRSVP.event_id == event_id, EventRSVP.user_id == user_id
    ).count()


def test_toggle_confirms_then_cancels(db):
    admin = make_admin(db)
    member = make_member(db)
    event = _create_event(db, admin)

    first = event_service.toggle_rsvp(db, member, event.id)
    assert first.status == "confirmed"
    assert first.attending is True
    assert _rsvp_rows(db, event.id, member.user_id) == 1

    second = event_service.toggle_rsvp(db, member, event.id)
    assert second.status == "cancelled"
    assert second.attending is False
    assert _rsvp_rows(db, event.id, member.user_id) == 0


@pytest.mark.parametrize("times", [1, 2, 3, 4, 5])
def test_toggle_parity(db, times):
    admin = make_admin(db)
    member = make_member(db)
    event = _create_event(db, admin)

    for _ in range(times):
        event_service.toggle_rsvp(db, member, event.id)
        assert _rsvp_rows(db, event.id, member.user_id) <= 1

    assert _rsvp_rows(db, event.id, member.user_id) == times % 2


def test_toggle_requires_session(db):
    admin = make_admin(db)
    event = _create_event(db, admin)

    with pytest.raises(NotAuthenticated):
        event_service.toggle_rsvp(db, None, event.id)
    assert db.query(EventRSVP).count() == 0


def test_toggle_unknown_event(db):
    member = make_member(db)
    with pytest.raises(ConflictOrNotFound):
        event_service.toggle_rsvp(db, member, "no-such-event")


def test_rsvp_unique_per_event_and_member(db):
    admin = make_admin(db)
    member = make_member(db)
    event = _create_event(db, admin)

    db.add(EventRSVP(event_id=event.id, user_id=member.user_id, status="attending"))
    db.commit()
    db.add(EventRSVP(event_id=event.id, user_id=member.user_id, status="attending"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_non_admin_cannot_create_event(db):
    member = make_member(db)
    with pytest.raises(NotAuthorized):
        _create_event(db, member)
    assert db.query(Event).count() == 0


def test_anonymous_cannot_create_event(db):
    with pytest.raises(NotAuthenticated):
        _create_event(db, None)
    assert db.query(Event).count() == 0


def test_listing_marks_past_and_attendance(db):
    admin = make_admin(db)
    member = make_member(db)
    past = _create_event(db, admin, days=-30, title="Last Year's Meetup")
    upcoming = _create_event(db, admin, days=30, title="Reunion")
    event_service.toggle_rsvp(db, member, upcoming.id)

    listings = event_service.list_events(db, member)
    assert [e.id for e in listings] == [past.id, upcoming.id]
    assert listings[0].is_past is True
    assert listings[1].is_past is False
    assert listings[1].attendee_count == 1
    assert listings[1].is_attending is True
    assert listings[0].is_attending is False

    anonymous = event_service.list_events(db, None)
    assert anonymous[1].is_attending is None


def test_admin_status_is_rechecked(db):
    from models import UserRole

    admin = make_admin(db)
    _create_event(db, admin)
    db.query(UserRole).filter(UserRole.user_id == admin.user_id, UserRole.role == "admin").delete()
    db.commit()

    with pytest.raises(NotAuthorized):
        _create_event(db, admin, title="Should not exist")
    assert db.query(Event).count() == 1


def test_past_event_rejects_new_rsvp(db):
    admin = make_admin(db)
    member = make_member(db)
    past = _create_event(db, admin, days=-30, title="Last Year's Meetup")

    with pytest.raises(ValidationError) as exc:
        event_service.toggle_rsvp(db, member, past.id)
    assert exc.value.reason == "event-past"
    assert _rsvp_rows(db, past.id, member.user_id) == 0


def test_past_event_rsvp_can_still_be_cancelled(db):
    admin = make_admin(db)
    member = make_member(db)
    past = _create_event(db, admin, days=-30, title="Last Year's Meetup")
    db.add(EventRSVP(event_id=past.id, user_id=member.user_id, status="attending"))
    db.commit()

    result = event_service.toggle_rsvp(db, member, past.id)
    assert result.status == "cancelled"
    assert _rsvp_rows(db, past.id, member.user_id) == 0


def test_racing_insert_reports_already_attending(db, monkeypatch):
    admin = make_admin(db)
    member = make_member(db)
    event = _create_event(db, admin)

    # Another request inserted the row after this one looked for it
    db.add(EventRSVP(event_id=event.id, user_id=member.user_id, status="attending"))
    db.commit()

    real_query = db.query

    class StaleLookup:
        def __init__(self, query):
            self._query = query

        def filter(self, *criteria):
            return StaleLookup(self._query.filter(*criteria))

        def first(self):
            return None

    def query(*entities):
        q = real_query(*entities)
        if entities == (EventRSVP,):
            return StaleLookup(q)
        return q

    monkeypatch.setattr(db, "query", query)
    result = event_service.toggle_rsvp(db, member, event.id)
    monkeypatch.undo()

    assert result.status == "confirmed"
    assert result.attending is True
    assert _rsvp_rows(db, event.id, member.user_id) == 1
