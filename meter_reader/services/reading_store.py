"""Reading store: persistence and lifecycle invariants for readings.

Uniqueness of (customer_code, meter_kind, period) is enforced by the
database constraint at insert time, so a check done earlier in a request
is only an optimisation. Confirmation is a single conditional UPDATE bound
to the reading id and to the PENDING state.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from meter_reader.core.errors import AlreadyConfirmed, DuplicatePeriod, NotFound, StoreUnavailable
from meter_reader.models.enums import MeterKind, ReadingState
from meter_reader.models.reading import Reading

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(db: Session, operation: str) -> Iterator[None]:
    """Roll back and raise StoreUnavailable on database connectivity failures."""
    try:
        yield
    except OperationalError as exc:
        db.rollback()
        logger.error("Reading store %s failed: %s", operation, exc.orig)
        raise StoreUnavailable(f"Reading store unavailable during {operation}") from exc


def find_by_period(
    db: Session,
    customer_code: str,
    meter_kind: MeterKind,
    period: str,
) -> Reading | None:
    """Get the reading for a customer, meter kind and billing period, if any."""
    with _store_errors(db, "period lookup"):
        return db.scalars(
            select(Reading).where(
                Reading.customer_code == customer_code,
                Reading.meter_kind == meter_kind.value,
                Reading.period == period,
            )
        ).one_or_none()


def create(
    db: Session,
    customer_code: str,
    meter_kind: MeterKind,
    period: str,
    value: Decimal,
    image_ref: str,
    submitted_at: datetime,
) -> Reading:
    """
    Insert a new pending reading.

    Args:
        db: Database session
        customer_code: Opaque customer identifier
        meter_kind: WATER or GAS
        period: Billing period as "YYYY-MM"
        value: Extracted reading value
        image_ref: Reference to the stored photo
        submitted_at: Submission timestamp

    Returns:
        The created reading with a freshly generated id

    Raises:
        DuplicatePeriod: If a reading already exists for the triple
        StoreUnavailable: On database connectivity failures

    """
    reading = Reading(
        customer_code=customer_code,
        meter_kind=meter_kind.value,
        period=period,
        value=value,
        image_ref=image_ref,
        submitted_at=submitted_at,
        confirmed_at=None,
        state=ReadingState.PENDING.value,
    )
    with _store_errors(db, "create"):
        db.add(reading)
        try:
            db.flush()
            # Detached with every column loaded, so nothing is reloaded after commit
            db.expunge(reading)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicatePeriod(
                f"A {meter_kind.value} reading already exists for this customer in {period}"
            ) from exc

    logger.info(
        "Created pending reading",
        extra={
            "reading_id": reading.id,
            "customer_code": customer_code,
            "meter_kind": meter_kind.value,
            "period": period,
        },
    )
    return reading


def find_by_id(db: Session, reading_id: str) -> Reading | None:
    """Get a reading by ID."""
    with _store_errors(db, "lookup"):
        return db.get(Reading, reading_id)


def confirm(
    db: Session,
    reading_id: str,
    confirmed_value: Decimal,
    clock: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> Reading:
    """
    Set the final value of a pending reading and mark it confirmed.

    Only one concurrent caller can win: the UPDATE matches the row only
    while it is still PENDING.

    Raises:
        NotFound: If no reading has that id
        AlreadyConfirmed: If the reading was confirmed before
        StoreUnavailable: On database connectivity failures

    """
    with _store_errors(db, "confirm"):
        result = db.execute(
            update(Reading)
            .where(
                Reading.id == reading_id,
                Reading.state == ReadingState.PENDING.value,
            )
            .values(
                value=confirmed_value,
                state=ReadingState.CONFIRMED.value,
                confirmed_at=clock(),
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()

        if result.rowcount == 0:
            existing = db.get(Reading, reading_id)
            if existing is None:
                raise NotFound(f"Reading {reading_id} not found")
            raise AlreadyConfirmed(f"Reading {reading_id} is already confirmed")

        reading = db.get(Reading, reading_id, populate_existing=True)

    if reading is None:
        raise NotFound(f"Reading {reading_id} not found")
    logger.info("Confirmed reading", extra={"reading_id": reading_id})
    return reading


def list_by_customer(
    db: Session,
    customer_code: str,
    meter_kind: MeterKind | None = None,
) -> list[Reading]:
    """Get a customer's readings, most recent submission first."""
    query = select(Reading).where(Reading.customer_code == customer_code)
    if meter_kind is not None:
        query = query.where(Reading.meter_kind == meter_kind.value)
    query = query.order_by(Reading.submitted_at.desc(), Reading.id)

    with _store_errors(db, "listing"):
        return list(db.scalars(query).all())
