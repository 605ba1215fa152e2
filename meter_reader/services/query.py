"""Read-only access to readings."""

from sqlalchemy.orm import Session

from meter_reader.core.errors import InvalidInput, NotFound
from meter_reader.models.enums import MeterKind
from meter_reader.models.reading import Reading
from meter_reader.services import reading_store
from meter_reader.services.ingestion import parse_meter_kind


def list_for_customer(
    db: Session,
    customer_code: str | None,
    meter_kind: str | MeterKind | None = None,
) -> list[Reading]:
    """List a customer's readings, newest first; an unknown customer gets an empty list."""
    code = (customer_code or "").strip()
    if not code:
        raise InvalidInput("Customer code is required")
    kind = parse_meter_kind(meter_kind) if meter_kind else None
    return reading_store.list_by_customer(db, code, kind)


def get_reading(db: Session, reading_id: str) -> Reading:
    reading = reading_store.find_by_id(db, reading_id)
    if reading is None:
        raise NotFound(f"Reading {reading_id} not found")
    return reading
