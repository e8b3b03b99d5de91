"""Membership registry and directory search."""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from dependencies import Principal
from errors import ConflictOrNotFound, NotAuthenticated
from models import Event, Profile, utcnow
from schemas import Profile as ProfileSchema, ProfileUpdate, Stats
from services.donations import public_total
from services.identity import validate_date_of_birth
from services.rows import parse_row, store_call

logger = logging.getLogger(__name__)


def list_members(db: Session, search: Optional[str] = None, batch: Optional[str] = None) -> List[ProfileSchema]:
    """
    Directory listing, newest batch first then by name.
    - search: case-insensitive match on name, location or occupation
    - batch: exact batch label; "all" disables the filter
    """
    rows = db.query(Profile).order_by(Profile.batch_year.desc(), Profile.full_name).all()
    members = [parse_row(ProfileSchema, row) for row in rows]

    if batch and batch != "all":
        members = [m for m in members if m.batch_year == batch]

    if search:
        term = search.lower()
        members = [
            m for m in members
            if term in m.full_name.lower()
            or (m.location and term in m.location.lower())
            or (m.occupation and term in m.occupation.lower())
        ]
    return members


def batch_years(db: Session) -> List[str]:
    rows = db.query(Profile.batch_year).distinct().all()
    return sorted({row[0] for row in rows}, reverse=True)


def get_member(db: Session, member_id: str) -> ProfileSchema:
    profile = db.get(Profile, member_id)
    if profile is None:
        raise ConflictOrNotFound("Member not found")
    return parse_row(ProfileSchema, profile)


def update_profile(db: Session, principal: Optional[Principal], update: ProfileUpdate) -> ProfileSchema:
    """Only the owning member edits a profile, so the target is always the caller's own row."""
    if principal is None:
        raise NotAuthenticated()
    profile = db.get(Profile, principal.user_id)
    if profile is None:
        raise ConflictOrNotFound("Profile not found")

    update_data = update.model_dump(exclude_unset=True)
    if update_data.get("date_of_birth") is not None:
        validate_date_of_birth(update_data["date_of_birth"])
    for field in ("full_name", "batch_year"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    with store_call(db, "update profile"):
        for field, value in update_data.items():
            setattr(profile, field, value)
        db.commit()
        db.refresh(profile)

    logger.info(f"Member {principal.user_id} updated fields {sorted(update_data)}")
    return parse_row(ProfileSchema, profile)


def landing_stats(db: Session) -> Stats:
    total, _ = public_total(db)
    return Stats(
        total_members=db.query(Profile).count(),
        total_donations=total,
        upcoming_events=db.query(Event).filter(Event.event_date >= utcnow()).count()
    )
