import logging
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from database import get_db, settings
from errors import NotAuthenticated, NotAuthorized
from models import RevokedToken, User, UserRole, utcnow
from schemas import Capabilities, TokenData
from storage import BlobStore, LocalBlobStore
from mailer import Mailer, mailer_from_settings

logger = logging.getLogger(__name__)

# Security setup
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    """The signed-in caller, threaded explicitly into every operation."""
    user_id: str
    email: str
    jti: Optional[str] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def verify_token(token: str) -> Optional[TokenData]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected token: {e}")
        return None
    user_id = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id, jti=payload.get("jti"))


def principal_from_token(db: Session, token: str) -> Optional[Principal]:
    token_data = verify_token(token)
    if token_data is None:
        return None
    if token_data.jti and db.get(RevokedToken, token_data.jti) is not None:
        return None
    user = db.get(User, token_data.user_id)
    if user is None:
        return None
    return Principal(user_id=user.id, email=user.email, jti=token_data.jti)


async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[Principal]:
    """Current principal, or None for anonymous callers."""
    if credentials is None:
        return None
    return principal_from_token(db, credentials.credentials)


async def get_current_user(principal: Optional[Principal] = Depends(get_session)) -> Principal:
    if principal is None:
        raise NotAuthenticated()
    return principal


def is_admin(db: Session, user_id: str) -> bool:
    return db.query(UserRole).filter(
        UserRole.user_id == user_id, UserRole.role == ADMIN_ROLE
    ).first() is not None


def resolve_capabilities(db: Session, principal: Optional[Principal]) -> Capabilities:
    """Session -> capabilities. Roles are re-read on every call."""
    if principal is None:
        return Capabilities(is_authenticated=False, is_admin=False)
    return Capabilities(
        is_authenticated=True,
        is_admin=is_admin(db, principal.user_id),
        user_id=principal.user_id
    )


def require_admin(db: Session, principal: Optional[Principal]) -> Principal:
    capabilities = resolve_capabilities(db, principal)
    if not capabilities.is_authenticated:
        raise NotAuthenticated()
    if not capabilities.is_admin:
        logger.warning(f"User {principal.user_id} attempted an admin-only action")
        raise NotAuthorized("Only administrators can do that")
    return principal


def grant_role(db: Session, user_id: str, role: str = ADMIN_ROLE) -> None:
    exists = db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.role == role).first()
    if exists is None:
        db.add(UserRole(user_id=user_id, role=role))
        db.commit()


_blob_store = None
_mailer = None


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore(settings.UPLOAD_DIR, settings.PUBLIC_BASE_URL)
    return _blob_store


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = mailer_from_settings(settings)
    return _mailer
