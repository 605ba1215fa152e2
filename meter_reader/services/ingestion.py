"""Ingestion service: meter photo in, pending reading out."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from meter_reader.core.config import settings
from meter_reader.core.errors import DuplicatePeriod, ExtractionFailed, InvalidInput, ReadingError
from meter_reader.models.enums import MeterKind
from meter_reader.models.reading import Reading
from meter_reader.services import image_storage, reading_store
from meter_reader.services.vision import VisionExtractor, parse_reading_value

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def period_for(moment: datetime) -> str:
    """Billing period ("YYYY-MM") a submission time falls in, in UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC)
    return f"{moment.year:04d}-{moment.month:02d}"


def parse_meter_kind(raw: str | MeterKind | None) -> MeterKind:
    """Validate a meter kind coming from a caller."""
    if isinstance(raw, MeterKind):
        return raw
    candidate = (raw or "").strip().upper()
    try:
        return MeterKind(candidate)
    except ValueError:
        allowed = ", ".join(kind.value for kind in MeterKind)
        raise InvalidInput(f"Invalid meter kind {raw!r}; expected one of {allowed}") from None


def _validate_image(image_bytes: bytes, content_type: str | None) -> None:
    if not image_bytes:
        raise InvalidInput("Image is empty")
    if len(image_bytes) > settings.MAX_IMAGE_BYTES:
        raise InvalidInput(f"Image exceeds {settings.MAX_IMAGE_BYTES} bytes")
    if content_type and not content_type.startswith("image/"):
        raise InvalidInput(f"Unsupported content type {content_type!r}; an image is required")


def ingest(
    db: Session,
    extractor: VisionExtractor,
    image_bytes: bytes,
    meter_kind: str | MeterKind | None,
    customer_code: str | None,
    content_type: str | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Reading:
    """
    Read a meter photo and store the value as a pending reading.

    The early period lookup only avoids a pointless model call; the unique
    constraint checked by reading_store.create() is what decides a race.
    No transaction is open while the model is being called.

    Raises:
        InvalidInput: Bad meter kind, customer code or image
        DuplicatePeriod: The customer already has this meter kind read this month
        ExtractionFailed: The model failed or its answer is not a number
        StoreUnavailable: On database connectivity failures

    """
    kind = parse_meter_kind(meter_kind)
    code = (customer_code or "").strip()
    if not code:
        raise InvalidInput("Customer code is required")
    _validate_image(image_bytes, content_type)

    submitted_at = clock()
    period = period_for(submitted_at)
    context = {"customer_code": code, "meter_kind": kind.value, "period": period}

    if reading_store.find_by_period(db, code, kind, period) is not None:
        logger.warning("Duplicate reading rejected before extraction", extra=context)
        raise DuplicatePeriod(f"A {kind.value} reading already exists for this customer in {period}")
    # Release the read transaction before the slow model call
    db.rollback()

    try:
        raw_answer = extractor.extract(image_bytes, kind, content_type)
        value = parse_reading_value(raw_answer)
    except ExtractionFailed as exc:
        logger.warning("Extraction failed: %s", exc.message, extra={**context, "kind": exc.kind})
        raise
    except Exception as exc:
        logger.warning("Vision extractor error: %r", exc, extra={**context, "kind": type(exc).__name__})
        raise ExtractionFailed("Vision model request failed") from exc

    image_ref = image_storage.save_image(image_bytes, content_type)
    try:
        reading = reading_store.create(db, code, kind, period, value, image_ref, submitted_at)
    except ReadingError as exc:
        image_storage.delete_image(image_ref)
        logger.warning("Reading not stored: %s", exc.message, extra={**context, "kind": exc.kind})
        raise
    except Exception:
        image_storage.delete_image(image_ref)
        raise

    return reading
