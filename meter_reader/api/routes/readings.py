"""Reading routes: photo ingestion, confirmation and listing."""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from meter_reader.core.database import get_db
from meter_reader.schemas.reading import (
    ConfirmRequest,
    ConfirmResponse,
    IngestResponse,
    ReadingList,
    ReadingResponse,
)
from meter_reader.services import confirmation, ingestion, query
from meter_reader.services.image_storage import image_url
from meter_reader.services.vision import VisionExtractor, get_vision_extractor

router = APIRouter(prefix="/readings", tags=["readings"])


@router.post("", response_model=IngestResponse)
def upload_reading(
    image: UploadFile = File(..., description="Photo of the meter register"),
    meter_kind: str | None = Form(None, alias="meterKind"),
    customer_code: str | None = Form(None, alias="customerCode"),
    db: Session = Depends(get_db),
    extractor: VisionExtractor = Depends(get_vision_extractor),
) -> IngestResponse:
    """
    Read a meter photo and store the value as a pending reading.

    Only one reading per customer, meter kind and calendar month is accepted.
    """
    reading = ingestion.ingest(
        db,
        extractor,
        image.file.read(),
        meter_kind,
        customer_code,
        content_type=image.content_type,
    )
    return IngestResponse(
        reading_id=reading.id,
        extracted_value=reading.value,
        image_ref=reading.image_ref,
        image_url=image_url(reading.image_ref),
        period=reading.period,
        state=reading.state,
    )


@router.patch("/confirm", response_model=ConfirmResponse)
def confirm_reading(
    request: ConfirmRequest,
    db: Session = Depends(get_db),
) -> ConfirmResponse:
    """Confirm or correct the extracted value of a pending reading."""
    reading = confirmation.confirm(db, request.reading_id, request.confirmed_value)
    return ConfirmResponse(reading=ReadingResponse.model_validate(reading))


@router.get("", response_model=ReadingList)
def list_readings(
    customer_code: str | None = Query(None, alias="customerCode"),
    meter_kind: str | None = Query(None, alias="meterKind"),
    db: Session = Depends(get_db),
) -> ReadingList:
    """List a customer's readings, most recent submission first."""
    readings = query.list_for_customer(db, customer_code, meter_kind)
    return ReadingList(
        customer_code=customer_code.strip() if customer_code else "",
        readings=[ReadingResponse.model_validate(r) for r in readings],
    )


@router.get("/{reading_id}", response_model=ReadingResponse)
def get_reading(
    reading_id: str,
    db: Session = Depends(get_db),
) -> ReadingResponse:
    """Get a single reading."""
    return ReadingResponse.model_validate(query.get_reading(db, reading_id))
