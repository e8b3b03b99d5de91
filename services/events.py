"""Events and the RSVP ledger."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dependencies import Principal, require_admin
from errors import ConflictOrNotFound, NotAuthenticated, ValidationError
from models import Event, EventRSVP, utcnow
from schemas import (
    Event as EventSchema, EventCreate, EventListing, RSVP as RSVPSchema, RSVPToggleResult
)
from services.rows import parse_row, row_dict, store_call

logger = logging.getLogger(__name__)

ATTENDING = "attending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"


def as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _get_event_row(db: Session, event_id: str) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise ConflictOrNotFound("Event not found")
    return event


def list_events(db: Session, principal: Optional[Principal] = None) -> List[EventListing]:
    """All events in date order, split into past/upcoming by the current time."""
    now = utcnow()
    events = db.query(Event).order_by(Event.event_date.asc()).all()

    counts = dict(
        db.query(EventRSVP.event_id, func.count(EventRSVP.id)).group_by(EventRSVP.event_id).all()
    )
    attending = set()
    if principal is not None:
        attending = {
            row[0] for row in
            db.query(EventRSVP.event_id).filter(EventRSVP.user_id == principal.user_id).all()
        }

    listings = []
    for event in events:
        data = row_dict(event)
        data.update(
            is_past=event.event_date < now,
            attendee_count=counts.get(event.id, 0),
            is_attending=(event.id in attending) if principal is not None else None
        )
        listings.append(parse_row(EventListing, data))
    return listings


def get_event(db: Session, event_id: str) -> EventSchema:
    return parse_row(EventSchema, _get_event_row(db, event_id))


def create_event(db: Session, principal: Optional[Principal], data: EventCreate) -> EventSchema:
    """Create an event (admin only)."""
    require_admin(db, principal)

    with store_call(db, "create event"):
        db_event = Event(
            title=data.title,
            event_date=as_utc_naive(data.event_date),
            location=data.location,
            description=data.description,
            image_url=data.image_url,
            created_by=principal.user_id
        )
        db.add(db_event)
        db.commit()
        db.refresh(db_event)

    logger.info(f"Event {db_event.id} '{db_event.title}' created by {principal.user_id}")
    return parse_row(EventSchema, db_event)


def toggle_rsvp(db: Session, principal: Optional[Principal], event_id: str) -> RSVPToggleResult:
    """
    Flip the caller's attendance for an event.

    An existing row is removed ("cancelled"); otherwise a row is inserted ("confirmed").
    Past events accept cancellations but no new RSVPs. The (event, member) unique key turns
    a racing duplicate insert into "already attending".
    """
    if principal is None:
        raise NotAuthenticated("You need to be logged in to RSVP to events.")
    event = _get_event_row(db, event_id)

    existing = db.query(EventRSVP).filter(
        EventRSVP.event_id == event_id,
        EventRSVP.user_id == principal.user_id
    ).first()
    if existing is None and event.event_date < utcnow():
        raise ValidationError("This event has already taken place.", reason="event-past")

    with store_call(db, "update RSVP"):
        if existing is not None:
            db.delete(existing)
            db.commit()
            logger.info(f"RSVP cancelled: event={event_id} member={principal.user_id}")
            return RSVPToggleResult(status=CANCELLED, attending=False)

        db.add(EventRSVP(event_id=event_id, user_id=principal.user_id, status=ATTENDING))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Duplicate RSVP insert for event={event_id} member={principal.user_id}; already attending")
        else:
            logger.info(f"RSVP confirmed: event={event_id} member={principal.user_id}")
        return RSVPToggleResult(status=CONFIRMED, attending=True)


def list_rsvps(db: Session, event_id: str) -> List[RSVPSchema]:
    _get_event_row(db, event_id)
    rows = db.query(EventRSVP).filter(EventRSVP.event_id == event_id).order_by(EventRSVP.created_at).all()
    return [parse_row(RSVPSchema, row) for row in rows]
