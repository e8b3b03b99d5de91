"""Daily birthday sweep.

Per member and year the state moves NotEligible -> Eligible -> Notified. The ledger row in
``birthday_wishes`` is the only record of Notified: it is checked before every send and
written only after a send succeeds, so re-running the sweep (or resuming after a crash) can
leave a member un-notified but never notifies them twice.
"""
import calendar
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import UpstreamFailure
from mailer import Mailer, birthday_message
from models import BirthdayWish, Profile
from schemas import FailedWish, SentWish, SweepResult
from services.identity import lookup_contact_address

logger = logging.getLogger(__name__)


def is_birthday(date_of_birth: date, today: date) -> bool:
    if (date_of_birth.month, date_of_birth.day) == (today.month, today.day):
        return True
    # 29 February birthdays are celebrated on 28 February in common years
    return (
        date_of_birth.month == 2 and date_of_birth.day == 29
        and today.month == 2 and today.day == 28
        and not calendar.isleap(today.year)
    )


def todays_birthdays(db: Session, today: date) -> List[Profile]:
    try:
        profiles = db.query(Profile).filter(Profile.date_of_birth.isnot(None)) \
            .order_by(Profile.full_name).all()
    except SQLAlchemyError as e:
        raise UpstreamFailure(f"Failed to load member birthdays: {e}") from e
    return [p for p in profiles if is_birthday(p.date_of_birth, today)]


def already_notified(db: Session, user_id: str, year: int) -> bool:
    return db.query(BirthdayWish).filter(
        BirthdayWish.user_id == user_id, BirthdayWish.year == year
    ).first() is not None


def record_wish(db: Session, user_id: str, year: int) -> None:
    db.add(BirthdayWish(user_id=user_id, year=year))
    try:
        db.commit()
    except IntegrityError:
        # Another run recorded it first; the ledger already says Notified
        db.rollback()
        logger.warning(f"Birthday wish for {user_id} in {year} was already recorded")


def run_birthday_sweep(db: Session, mailer: Mailer, today: Optional[date] = None) -> SweepResult:
    """Send today's birthday wishes. Safe to run any number of times per day."""
    today = today or date.today()
    year = today.year
    result = SweepResult(run_date=today, year=year)

    birthdays = todays_birthdays(db, today)
    result.eligible = len(birthdays)
    logger.info(f"Birthday sweep for {today.isoformat()}: {len(birthdays)} eligible")
    if not birthdays:
        return result

    for person in birthdays:
        if already_notified(db, person.id, year):
            result.skipped.append(person.id)
            continue

        address = lookup_contact_address(db, person.id)
        if not address:
            logger.error(f"No contact address for member {person.id}")
            result.failed.append(FailedWish(user_id=person.id, name=person.full_name, error="No contact address"))
            continue

        subject, html, text = birthday_message(person.full_name, person.batch_year)
        try:
            mailer.send(address, subject, html, text, to_name=person.full_name)
        except Exception as e:
            # Stays Eligible; the next run retries
            logger.error(f"Birthday wish for {person.full_name} ({person.id}) failed: {e}")
            result.failed.append(FailedWish(user_id=person.id, name=person.full_name, error=str(e)))
            continue

        try:
            record_wish(db, person.id, year)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Sent birthday wish to {person.id} but could not record it: {e}")
            result.failed.append(FailedWish(
                user_id=person.id, name=person.full_name, error="Sent but not recorded"
            ))
            continue

        logger.info(f"Birthday wish sent to {person.full_name} (Batch {person.batch_year})")
        result.sent.append(SentWish(user_id=person.id, name=person.full_name, batch=person.batch_year))

    result.message = "Birthday wishes processed"
    logger.info(
        f"Birthday sweep done: sent={len(result.sent)} skipped={len(result.skipped)} failed={len(result.failed)}"
    )
    return result
