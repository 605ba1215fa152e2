"""Reading database model - one extracted meter value per customer, kind and month."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from meter_reader.core.database import Base
from meter_reader.models.enums import MeterKind, ReadingState


def _new_reading_id() -> str:
    return str(uuid.uuid4())


class Reading(Base):
    """Meter reading extracted from a photo, pending until the customer confirms it."""

    __tablename__ = "readings"
    __table_args__ = (
        UniqueConstraint(
            "customer_code",
            "meter_kind",
            "period",
            name="uq_readings_customer_kind_period",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_reading_id)

    customer_code: Mapped[str] = mapped_column(String(64), index=True)
    meter_kind: Mapped[MeterKind] = mapped_column(String(10))
    period: Mapped[str] = mapped_column(String(7))  # "YYYY-MM"

    # Timestamps
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Extracted value, overwritten once on confirmation
    value: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=3))

    image_ref: Mapped[str] = mapped_column(String(255))
    state: Mapped[ReadingState] = mapped_column(String(10), default=ReadingState.PENDING.value)
