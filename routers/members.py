from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from schemas import Profile, ProfileUpdate
from dependencies import Principal, get_current_user
from services import members as member_service

router = APIRouter()

@router.get("/", response_model=List[Profile])
async def get_members(
    search: Optional[str] = None,
    batch: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Alumni directory
    - search: matches name, location or occupation
    - batch: batch label, or "all"
    """
    return member_service.list_members(db, search=search, batch=batch)

@router.get("/batches", response_model=List[str])
async def get_batches(db: Session = Depends(get_db)):
    return member_service.batch_years(db)

@router.put("/me", response_model=Profile)
async def update_me(
    update: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user)
):
    """Update your own profile"""
    return member_service.update_profile(db, current_user, update)

@router.get("/{member_id}", response_model=Profile)
async def get_member(member_id: str, db: Session = Depends(get_db)):
    return member_service.get_member(db, member_id)
