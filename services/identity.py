"""Identity provider: sign-up, sign-in, sign-out and contact lookup."""
import logging
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dependencies import (
    MEMBER_ROLE, Principal, create_access_token, get_password_hash, verify_password
)
from errors import NotAuthenticated, ValidationError
from models import Profile, RevokedToken, User, UserRole
from schemas import Profile as ProfileSchema, UserLogin, UserSignup
from services.rows import parse_row, store_call

logger = logging.getLogger(__name__)

MIN_AGE = 10
MAX_AGE = 120

SIGNED_UP = "SIGNED_UP"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


class AuthEvents:
    """Subscribers notified after sign-up, sign-in and sign-out."""

    def __init__(self):
        self._subscribers: List[Callable[[str, Principal], None]] = []

    def subscribe(self, callback: Callable[[str, Principal], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def publish(self, event: str, principal: Principal) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, principal)
            except Exception as e:
                logger.error(f"Auth subscriber failed on {event}: {e}")


auth_events = AuthEvents()


def validate_date_of_birth(date_of_birth: date, today: Optional[date] = None) -> None:
    today = today or date.today()
    age = today.year - date_of_birth.year
    if age < MIN_AGE or age > MAX_AGE:
        raise ValidationError("Please provide a valid date of birth.", reason="implausible-dob")


def sign_up(db: Session, data: UserSignup):
    """Create an identity and its member profile. Returns (token, profile)."""
    validate_date_of_birth(data.date_of_birth)
    email = data.email.lower()

    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already registered", reason="email-taken")

    with store_call(db, "create account"):
        user = User(email=email, password=get_password_hash(data.password))
        db.add(user)
        try:
            db.flush()
            profile = Profile(
                id=user.id,
                full_name=data.full_name,
                batch_year=data.batch_year,
                date_of_birth=data.date_of_birth
            )
            db.add(profile)
            db.add(UserRole(user_id=user.id, role=MEMBER_ROLE))
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("Email already registered", reason="email-taken")
        db.refresh(profile)

    logger.info(f"New member signed up: {user.id} ({profile.batch_year})")
    principal = Principal(user_id=user.id, email=user.email)
    auth_events.publish(SIGNED_UP, principal)
    token = create_access_token(data={"sub": user.id})
    return token, parse_row(ProfileSchema, profile)


def sign_in(db: Session, credentials: UserLogin):
    user = db.query(User).filter(User.email == credentials.email.lower()).first()
    if not user or not verify_password(credentials.password, user.password):
        raise NotAuthenticated("Incorrect email or password")

    profile = db.get(Profile, user.id)
    logger.info(f"User {user.id} signed in")
    auth_events.publish(SIGNED_IN, Principal(user_id=user.id, email=user.email))
    token = create_access_token(data={"sub": user.id})
    return token, parse_row(ProfileSchema, profile) if profile else None


def sign_out(db: Session, principal: Principal) -> None:
    """Revoke the token the principal presented."""
    if principal.jti and db.get(RevokedToken, principal.jti) is None:
        with store_call(db, "sign out"):
            db.add(RevokedToken(jti=principal.jti, user_id=principal.user_id))
            db.commit()
    logger.info(f"User {principal.user_id} signed out")
    auth_events.publish(SIGNED_OUT, principal)


def lookup_contact_address(db: Session, member_id: str) -> Optional[str]:
    """Privileged lookup of a member's email address."""
    user = db.get(User, member_id)
    return user.email if user else None
