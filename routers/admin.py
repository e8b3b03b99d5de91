from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from schemas import Donation, Event as EventSchema, EventCreate
from dependencies import Principal, get_blob_store, get_session
from services import donations as donation_service
from services import events as event_service
from storage import BlobStore

router = APIRouter()

# Admin checks run inside each service call against the current role table,
# so a revoked admin loses access on the very next request.

@router.post("/events/", response_model=EventSchema, status_code=status.HTTP_201_CREATED)
async def create_event(
    event: EventCreate,
    db: Session = Depends(get_db),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Create a new event (admin only)"""
    return event_service.create_event(db, current_user, event)

@router.get("/donations/pending", response_model=List[Donation])
async def get_pending_donations(
    db: Session = Depends(get_db),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Donations waiting for verification, newest first (admin only)"""
    return donation_service.pending_donations(db, current_user)

@router.post("/donations/{donation_id}/verify", response_model=Donation)
async def verify_donation(
    donation_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Confirm a donation was received; it then shows on the donor wall (admin only)"""
    return donation_service.verify_donation(db, current_user, donation_id)

@router.delete("/donations/{donation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reject_donation(
    donation_id: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Reject and remove an unverified donation (admin only)"""
    donation_service.reject_donation(db, blobs, current_user, donation_id)
