from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from schemas import Event as EventSchema, EventCreate, EventListing, RSVP, RSVPToggleResult
from dependencies import Principal, get_current_user, get_session
from services import events as event_service


router = APIRouter()

@router.get("/", response_model=List[EventListing])
async def get_events(
    db: Session = Depends(get_db),
    current_user: Optional[Principal] = Depends(get_session)
):
    """
    List events in date order
    - is_past: the event has already started
    - is_attending: only present for signed-in callers
    """
    return event_service.list_events(db, current_user)

@router.post("/", response_model=EventSchema, status_code=status.HTTP_201_CREATED)
async def create_event(
    event: EventCreate,
    db: Session = Depends(get_db),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Create a new event (admin only)"""
    return event_service.create_event(db, current_user, event)

@router.get("/{event_id}", response_model=EventSchema)
async def get_event(event_id: str, db: Session = Depends(get_db)):
    """Get a specific event by ID"""
    return event_service.get_event(db, event_id)

@router.post("/{event_id}/rsvp", response_model=RSVPToggleResult)
async def toggle_rsvp(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Confirm attendance, or cancel it if already attending"""
    return event_service.toggle_rsvp(db, current_user, event_id)

@router.get("/{event_id}/rsvps", response_model=List[RSVP])
async def get_rsvps(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user)
):
    """Attendees of an event"""
    return event_service.list_rsvps(db, event_id)
