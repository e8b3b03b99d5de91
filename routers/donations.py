from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from schemas import Donation, DonationTotal, DonationWallEntry
from dependencies import Principal, get_blob_store, get_current_user, get_session
from services import donations as donation_service
from services.uploads import IncomingFile
from storage import BlobStore

router = APIRouter()

@router.post("/", response_model=Donation, status_code=status.HTTP_201_CREATED)
async def submit_donation(
    amount: str = Form(...),
    donor_name: Optional[str] = Form(None),
    message: Optional[str] = Form(None),
    is_anonymous: bool = Form(False),
    transaction_id: Optional[str] = Form(None),
    payment_method: Optional[str] = Form(None),
    proof: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Record a donation; it stays pending until an admin verifies it"""
    incoming = None
    if proof is not None and proof.filename:
        incoming = IncomingFile(proof.filename, proof.content_type, await proof.read())
    return donation_service.submit_donation(
        db, blobs, current_user,
        amount=amount,
        donor_name=donor_name,
        message=message,
        is_anonymous=is_anonymous,
        transaction_id=transaction_id,
        payment_method=payment_method,
        proof=incoming
    )

@router.get("/wall", response_model=List[DonationWallEntry])
async def get_donor_wall(limit: int = 10, db: Session = Depends(get_db)):
    """Verified donations, newest first"""
    return donation_service.donor_wall(db, limit=limit)

@router.get("/total", response_model=DonationTotal)
async def get_total(db: Session = Depends(get_db)):
    """Total raised from verified donations"""
    return donation_service.donation_total(db)

@router.get("/mine", response_model=List[Donation])
async def get_my_donations(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user)
):
    return donation_service.my_donations(db, current_user)
