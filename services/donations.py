"""Donation admission: unverified claims, admin verification, public totals."""
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from dependencies import Principal, require_admin
from errors import ConflictOrNotFound, NotAuthenticated, UpstreamFailure, ValidationError
from models import Donation
from schemas import Donation as DonationSchema, DonationTotal, DonationWallEntry
from services.rows import parse_row, store_call
from services.uploads import IncomingFile, unique_blob_path, validate_image
from storage import BlobStore

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"
PROOF_PREFIX = "donation-proofs"
WALL_LIMIT = 10
MAX_WALL_LIMIT = 100
# Largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(raw) -> Decimal:
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Please enter a valid donation amount.", reason="invalid-amount")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Donation amount must be greater than zero.", reason="invalid-amount")
    if amount.normalize().as_tuple().exponent < -2:
        raise ValidationError("Donation amount can have at most two decimal places.", reason="invalid-amount")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"Donation amount cannot exceed {MAX_AMOUNT:,}.", reason="invalid-amount")
    return amount


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def submit_donation(
    db: Session,
    blobs: BlobStore,
    principal: Optional[Principal],
    amount,
    donor_name: Optional[str] = None,
    message: Optional[str] = None,
    is_anonymous: bool = False,
    transaction_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    proof: Optional[IncomingFile] = None
) -> DonationSchema:
    """
    Record a claimed donation as unverified.

    The proof image is stored first; if that fails nothing is written. If the insert fails
    after the upload, the uploaded proof is removed again.
    """
    if principal is None:
        raise NotAuthenticated("You need to be logged in to make a donation.")

    value = parse_amount(amount)
    name = _optional(donor_name)
    if is_anonymous:
        name = ANONYMOUS
    elif not name:
        raise ValidationError("Please provide your name.", reason="missing-field")

    proof_path = None
    proof_url = None
    if proof is not None:
        ext = validate_image(proof)
        proof_path = unique_blob_path(PROOF_PREFIX, principal.user_id, ext)
        proof_url = blobs.put(proof_path, proof.data, proof.content_type)

    try:
        with store_call(db, "record donation"):
            donation = Donation(
                donor_id=principal.user_id,
                donor_name=name,
                amount=value,
                message=_optional(message),
                is_anonymous=is_anonymous,
                verified=False,
                transaction_id=_optional(transaction_id),
                payment_method=_optional(payment_method),
                screenshot_path=proof_path,
                screenshot_url=proof_url
            )
            db.add(donation)
            db.commit()
            db.refresh(donation)
    except UpstreamFailure:
        if proof_path:
            _discard_blob(blobs, proof_path)
        raise

    logger.info(f"Donation {donation.id} of {value} recorded for {principal.user_id}, pending verification")
    return parse_row(DonationSchema, donation)


def _discard_blob(blobs: BlobStore, path: str) -> None:
    try:
        blobs.delete(path)
    except UpstreamFailure as e:
        logger.error(f"Could not remove blob {path}; it is now orphaned: {e.message}")


def _get_donation_row(db: Session, donation_id: str) -> Donation:
    donation = db.get(Donation, donation_id)
    if donation is None:
        raise ConflictOrNotFound("Donation not found")
    return donation


def verify_donation(db: Session, principal: Optional[Principal], donation_id: str) -> DonationSchema:
    """Mark a claim as genuinely received (admin only). Verified is terminal."""
    require_admin(db, principal)
    donation = _get_donation_row(db, donation_id)
    if donation.verified:
        raise ConflictOrNotFound("Donation is already verified", reason="already-verified", conflict=True)

    with store_call(db, "verify donation"):
        donation.verified = True
        db.commit()
        db.refresh(donation)

    logger.info(f"Donation {donation_id} verified by {principal.user_id}")
    return parse_row(DonationSchema, donation)


def reject_donation(db: Session, blobs: BlobStore, principal: Optional[Principal], donation_id: str) -> None:
    """Discard an unverified claim and its proof image (admin only)."""
    require_admin(db, principal)
    donation = _get_donation_row(db, donation_id)
    if donation.verified:
        raise ConflictOrNotFound("Verified donations cannot be rejected", reason="already-verified", conflict=True)

    proof_path = donation.screenshot_path
    with store_call(db, "reject donation"):
        db.delete(donation)
        db.commit()

    if proof_path:
        _discard_blob(blobs, proof_path)
    logger.info(f"Donation {donation_id} rejected by {principal.user_id}")


def _verified_rows(db: Session):
    return db.query(Donation).filter(Donation.verified.is_(True)).order_by(Donation.created_at.desc())


def public_total(db: Session) -> Tuple[Decimal, int]:
    """Sum of verified amounts, recomputed from the current rows on every call."""
    rows = [parse_row(DonationSchema, row) for row in _verified_rows(db).all()]
    total = sum((row.amount for row in rows), Decimal("0"))
    return total, len(rows)


def donation_total(db: Session) -> DonationTotal:
    total, count = public_total(db)
    return DonationTotal(total=total, donor_count=count)


def donor_wall(db: Session, limit: int = WALL_LIMIT) -> List[DonationWallEntry]:
    limit = min(MAX_WALL_LIMIT, max(1, limit))
    entries = []
    for row in _verified_rows(db).limit(limit).all():
        donation = parse_row(DonationSchema, row)
        entries.append(DonationWallEntry(
            id=donation.id,
            donor_name=ANONYMOUS if donation.is_anonymous else donation.donor_name,
            amount=donation.amount,
            message=donation.message,
            created_at=donation.created_at
        ))
    return entries


def my_donations(db: Session, principal: Optional[Principal]) -> List[DonationSchema]:
    if principal is None:
        raise NotAuthenticated()
    rows = db.query(Donation).filter(Donation.donor_id == principal.user_id) \
        .order_by(Donation.created_at.desc()).all()
    return [parse_row(DonationSchema, row) for row in rows]


def pending_donations(db: Session, principal: Optional[Principal]) -> List[DonationSchema]:
    require_admin(db, principal)
    rows = db.query(Donation).filter(Donation.verified.is_(False)) \
        .order_by(Donation.created_at.desc()).all()
    return [parse_row(DonationSchema, row) for row in rows]
