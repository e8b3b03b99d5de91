"""Helpers at the record-store boundary."""
import logging
from contextlib import contextmanager

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import UpstreamFailure

logger = logging.getLogger(__name__)


def parse_row(schema, row):
    """Validate a store row (ORM object or dict) into its value type."""
    try:
        return schema.model_validate(row, from_attributes=not isinstance(row, dict))
    except PydanticValidationError as e:
        row_id = row.get("id") if isinstance(row, dict) else getattr(row, "id", None)
        logger.error(f"Malformed {schema.__name__} row {row_id}: {e}")
        raise UpstreamFailure(f"Malformed {schema.__name__.lower()} record") from e


def row_dict(row) -> dict:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


@contextmanager
def store_call(db: Session, action: str):
    """Roll back and surface store errors as UpstreamFailure."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Record store failure while trying to {action}: {e}")
        raise UpstreamFailure(f"Failed to {action}") from e
