from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal


def _not_blank(value):
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value.strip() if value is not None else value


# Member schemas
class ProfileBase(BaseModel):
    full_name: str
    batch_year: str
    location: Optional[str] = None
    occupation: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    date_of_birth: Optional[date] = None

    @field_validator("full_name", "batch_year")
    @classmethod
    def required_text(cls, value):
        return _not_blank(value)


class Profile(ProfileBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    batch_year: Optional[str] = None
    location: Optional[str] = None
    occupation: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    date_of_birth: Optional[date] = None

    @field_validator("full_name", "batch_year")
    @classmethod
    def required_text(cls, value):
        return _not_blank(value)


class Capabilities(BaseModel):
    is_authenticated: bool
    is_admin: bool
    user_id: Optional[str] = None


class Me(BaseModel):
    user: Profile
    email: EmailStr
    capabilities: Capabilities


# Event schemas
class EventBase(BaseModel):
    title: str
    event_date: datetime
    location: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("title")
    @classmethod
    def required_title(cls, value):
        return _not_blank(value)


class EventCreate(EventBase):
    pass


class Event(EventBase):
    id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventListing(Event):
    is_past: bool
    attendee_count: int = 0
    is_attending: Optional[bool] = None


class RSVP(BaseModel):
    event_id: str
    user_id: str
    status: str

    class Config:
        from_attributes = True


class RSVPToggleResult(BaseModel):
    status: str  # "confirmed" or "cancelled"
    attending: bool


# Donation schemas
class Donation(BaseModel):
    id: str
    donor_id: str
    donor_name: str
    amount: Decimal
    message: Optional[str] = None
    is_anonymous: bool = False
    verified: bool = False
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    screenshot_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("amount")
    @classmethod
    def positive_amount(cls, value):
        if value <= 0:
            raise ValueError("amount must be positive")
        return value


class DonationWallEntry(BaseModel):
    id: str
    donor_name: str
    amount: Decimal
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class DonationTotal(BaseModel):
    total: Decimal
    donor_count: int


# Photo schemas
class Photo(BaseModel):
    id: str
    storage_path: str
    url: str
    title: str
    description: Optional[str] = None
    uploaded_by: str
    created_at: Optional[datetime] = None


class PhotoQuota(BaseModel):
    used: int
    limit: int
    remaining: int


class Stats(BaseModel):
    total_members: int
    total_donations: Decimal
    upcoming_events: int


# Birthday job
class SentWish(BaseModel):
    user_id: str
    name: str
    batch: str
    status: str = "sent"


class FailedWish(BaseModel):
    user_id: str
    name: str
    error: str


class SweepResult(BaseModel):
    run_date: date
    year: int
    message: str = "No birthdays today"
    eligible: int = 0
    sent: List[SentWish] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[FailedWish] = Field(default_factory=list)


# Authentication schemas
class Token(BaseModel):
    access_token: str
    token_type: str
    user: Optional[Profile] = None


class TokenData(BaseModel):
    user_id: Optional[str] = None
    jti: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserSignup(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str
    batch_year: str
    date_of_birth: date

    @field_validator("full_name", "batch_year")
    @classmethod
    def required_text(cls, value):
        return _not_blank(value)
