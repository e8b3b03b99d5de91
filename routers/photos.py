from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from schemas import Photo, PhotoQuota
from dependencies import Principal, get_blob_store, get_current_user, get_session
from services import photos as photo_service
from services.uploads import IncomingFile
from storage import BlobStore

router = APIRouter()

@router.get("/", response_model=List[Photo])
async def get_photos(
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store)
):
    return photo_service.list_photos(db, blobs)

@router.get("/quota", response_model=PhotoQuota)
async def get_quota(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user)
):
    return photo_service.photo_quota(db, current_user)

@router.post("/", response_model=Photo, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Upload a photo to the gallery (at most 3 per member, images up to 5 MB)"""
    incoming = IncomingFile(file.filename or "", file.content_type, await file.read())
    return photo_service.upload_photo(db, blobs, current_user, incoming, title, description)

@router.delete("/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(
    photo_id: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    current_user: Optional[Principal] = Depends(get_session)
):
    """Delete one of your own photos"""
    photo_service.delete_photo(db, blobs, current_user, photo_id)
