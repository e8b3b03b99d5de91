import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
)
from sqlalchemy.sql import func
from database import Base


def utcnow():
    # Naive UTC so values compare the same way on sqlite and postgres
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


class User(Base):
    """Identity owned by the identity provider."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class Profile(Base):
    """Member profile; keyed by the identity id so there is exactly one per identity."""
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    full_name = Column(String, nullable=False)
    batch_year = Column(String, nullable=False, index=True)
    location = Column(String, nullable=True)
    occupation = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, onupdate=func.now())


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # "member" or "admin"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    event_date = Column(DateTime, nullable=False, index=True)
    location = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class EventRSVP(Base):
    __tablename__ = "event_rsvps"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="attending")
    created_at = Column(DateTime, default=utcnow)


class Donation(Base):
    __tablename__ = "donations"

    id = Column(String(36), primary_key=True, default=new_id)
    donor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    donor_name = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    message = Column(Text, nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False, index=True)
    transaction_id = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)
    screenshot_path = Column(String, nullable=True)
    screenshot_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Photo(Base):
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=new_id)
    storage_path = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)


class BirthdayWish(Base):
    """Ledger row: the member has been sent a birthday wish for this year."""
    __tablename__ = "birthday_wishes"
    __table_args__ = (UniqueConstraint("user_id", "year", name="uq_birthday_wishes_user_year"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    sent_at = Column(DateTime, default=utcnow)


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    jti = Column(String, primary_key=True)
    user_id = Column(String(36), nullable=False)
    revoked_at = Column(DateTime, default=utcnow)
