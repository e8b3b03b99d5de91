from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from typing import Optional
import hmac
import logging
from database import get_db, settings
from schemas import SweepResult
from dependencies import Principal, get_mailer, get_session, require_admin
from mailer import Mailer
from services.birthdays import run_birthday_sweep

logger = logging.getLogger(__name__)

router = APIRouter()

def _is_service_caller(service_key: Optional[str]) -> bool:
    return bool(settings.SERVICE_ROLE_KEY and service_key
                and hmac.compare_digest(service_key, settings.SERVICE_ROLE_KEY))

@router.post("/birthday-wishes", response_model=SweepResult)
def send_birthday_wishes(
    x_service_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    current_user: Optional[Principal] = Depends(get_session)
):
    """
    Run today's birthday sweep.

    Called once a day by the scheduler with the service key; admins may also run it by hand.
    Running it again on the same day sends nothing new.
    """
    if not _is_service_caller(x_service_key):
        require_admin(db, current_user)
    return run_birthday_sweep(db, mailer)
