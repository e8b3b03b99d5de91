from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from database import get_db
from errors import ConflictOrNotFound
from models import Profile
from schemas import UserLogin, UserSignup, Token, Me, Profile as ProfileSchema
from dependencies import Principal, get_current_user, resolve_capabilities
from services import identity
from services.rows import parse_row

router = APIRouter()

@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(user: UserSignup, db: Session = Depends(get_db)):
    access_token, profile = identity.sign_up(db, user)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": profile
    }

@router.post("/login", response_model=Token)
async def login(user_credentials: UserLogin, db: Session = Depends(get_db)):
    access_token, profile = identity.sign_in(db, user_credentials)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": profile
    }

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Revoke the bearer token used for this request"""
    identity.sign_out(db, current_user)

@router.get("/me", response_model=Me)
async def read_users_me(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get current user information
    """
    profile = db.get(Profile, current_user.user_id)
    if profile is None:
        raise ConflictOrNotFound("Profile not found")
    return {
        "user": parse_row(ProfileSchema, profile),
        "email": current_user.email,
        "capabilities": resolve_capabilities(db, current_user)
    }
