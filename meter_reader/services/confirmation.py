"""Confirmation service: the customer accepts or corrects an extracted value."""

from decimal import Decimal

from sqlalchemy.orm import Session

from meter_reader.core.errors import InvalidInput
from meter_reader.models.reading import Reading
from meter_reader.services import reading_store
from meter_reader.services.vision import MAX_READING_VALUE, VALUE_QUANTUM


def _validate_value(confirmed_value: object) -> Decimal:
    if isinstance(confirmed_value, bool) or not isinstance(confirmed_value, (int, float, Decimal)):
        raise InvalidInput("Confirmed value must be a number")
    # str() keeps the float's shortest repr instead of its binary expansion
    value = Decimal(str(confirmed_value)) if isinstance(confirmed_value, float) else Decimal(confirmed_value)
    if not value.is_finite():
        raise InvalidInput("Confirmed value must be finite")
    if value < 0:
        raise InvalidInput("Confirmed value cannot be negative")
    if value > MAX_READING_VALUE:
        raise InvalidInput("Confirmed value is out of range")
    return value.quantize(VALUE_QUANTUM)


def confirm(db: Session, reading_id: str | None, confirmed_value: object) -> Reading:
    """
    Finalize a pending reading with the value the customer saw on the meter.

    Confirmation happens once. Confirming again, even with the same value,
    raises AlreadyConfirmed and leaves the stored value untouched.

    Raises:
        InvalidInput: Missing id or a value that is not a finite non-negative number
        NotFound: No reading has that id
        AlreadyConfirmed: The reading was already confirmed

    """
    if not reading_id or not reading_id.strip():
        raise InvalidInput("Reading id is required")
    value = _validate_value(confirmed_value)
    return reading_store.confirm(db, reading_id.strip(), value)
