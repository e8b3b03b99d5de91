"""Gallery uploads behind a per-member quota."""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from database import settings
from dependencies import Principal
from errors import ConflictOrNotFound, NotAuthenticated, NotAuthorized, UpstreamFailure, ValidationError
from models import Photo
from schemas import Photo as PhotoSchema, PhotoQuota
from services.rows import parse_row, row_dict, store_call
from services.uploads import IncomingFile, unique_blob_path, validate_image
from storage import BlobStore

logger = logging.getLogger(__name__)

PHOTO_PREFIX = "photos"


def _to_schema(blobs: BlobStore, photo: Photo) -> PhotoSchema:
    data = row_dict(photo)
    data["url"] = blobs.get_public_url(photo.storage_path)
    return parse_row(PhotoSchema, data)


def _count_owned(db: Session, user_id: str) -> int:
    return db.query(Photo).filter(Photo.uploaded_by == user_id).count()


def photo_quota(db: Session, principal: Optional[Principal]) -> PhotoQuota:
    if principal is None:
        raise NotAuthenticated()
    used = _count_owned(db, principal.user_id)
    limit = settings.PHOTO_QUOTA
    return PhotoQuota(used=used, limit=limit, remaining=max(0, limit - used))


def list_photos(db: Session, blobs: BlobStore) -> List[PhotoSchema]:
    rows = db.query(Photo).order_by(Photo.created_at.desc()).all()
    return [_to_schema(blobs, row) for row in rows]


def upload_photo(
    db: Session,
    blobs: BlobStore,
    principal: Optional[Principal],
    file: IncomingFile,
    title: str,
    description: Optional[str] = None
) -> PhotoSchema:
    """
    Add a photo to the gallery.

    Order matters: the quota is checked before the file is even looked at, so a member at
    the limit never causes a blob write. The row is inserted only after the blob is stored.
    """
    if principal is None:
        raise NotAuthenticated("You need to be logged in to upload photos.")

    limit = settings.PHOTO_QUOTA
    if _count_owned(db, principal.user_id) >= limit:
        raise ValidationError(
            f"You can upload at most {limit} photos. Delete one to add another.",
            reason="quota-exceeded"
        )

    title = (title or "").strip()
    if not title:
        raise ValidationError("Please give your photo a title.", reason="missing-field")

    ext = validate_image(file)
    path = unique_blob_path(PHOTO_PREFIX, principal.user_id, ext)
    blobs.put(path, file.data, file.content_type)

    try:
        with store_call(db, "save photo"):
            photo = Photo(
                storage_path=path,
                title=title,
                description=(description or "").strip() or None,
                uploaded_by=principal.user_id
            )
            db.add(photo)
            db.flush()
            # Recount with our own row in place; racing uploads may both have passed the first check
            owned = db.query(Photo).filter(Photo.uploaded_by == principal.user_id).count()
            if owned > limit:
                db.rollback()
                raise ValidationError(
                    f"You can upload at most {limit} photos. Delete one to add another.",
                    reason="quota-exceeded"
                )
            db.commit()
            db.refresh(photo)
    except (UpstreamFailure, ValidationError):
        try:
            blobs.delete(path)
        except UpstreamFailure as e:
            logger.error(f"Could not remove blob {path} after failed insert: {e.message}")
        raise

    logger.info(f"Photo {photo.id} uploaded by {principal.user_id}")
    return _to_schema(blobs, photo)


def delete_photo(db: Session, blobs: BlobStore, principal: Optional[Principal], photo_id: str) -> None:
    """
    Remove a photo and its blob; only the uploader may do this.

    The blob goes first. If that fails the row stays, so a row never points at a missing blob.
    """
    if principal is None:
        raise NotAuthenticated()
    photo = db.get(Photo, photo_id)
    if photo is None:
        raise ConflictOrNotFound("Photo not found")
    if photo.uploaded_by != principal.user_id:
        logger.warning(f"User {principal.user_id} tried to delete photo {photo_id} owned by {photo.uploaded_by}")
        raise NotAuthorized("You can only delete your own photos")

    blobs.delete(photo.storage_path)

    with store_call(db, "delete photo"):
        db.delete(photo)
        db.commit()
    logger.info(f"Photo {photo_id} deleted by {principal.user_id}")
