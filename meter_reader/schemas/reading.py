"""Reading Pydantic schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from meter_reader.models.enums import MeterKind, ReadingState


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadingResponse(CamelModel):
    """Schema for a stored reading."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    customer_code: str
    meter_kind: MeterKind
    period: str
    submitted_at: datetime
    confirmed_at: datetime | None
    value: Decimal
    image_ref: str
    state: ReadingState


class IngestResponse(CamelModel):
    """Returned after a photo was read and stored as a pending reading."""

    reading_id: str
    extracted_value: Decimal
    image_ref: str
    image_url: str
    period: str
    state: ReadingState


class ConfirmRequest(CamelModel):
    """Customer confirmation (or correction) of an extracted value."""

    reading_id: str = Field(..., min_length=1)
    confirmed_value: Decimal = Field(..., ge=0, allow_inf_nan=False)

    @field_validator("confirmed_value", mode="before")
    @classmethod
    def validate_is_number(cls, v: object) -> object:
        """Only JSON numbers are accepted, not numeric strings or booleans."""
        if isinstance(v, bool) or not isinstance(v, (int, float, Decimal)):
            raise ValueError("Confirmed value must be a number")
        return v


class ConfirmResponse(CamelModel):
    success: bool = True
    reading: ReadingResponse


class ReadingList(CamelModel):
    """Readings of one customer, newest submission first."""

    customer_code: str
    readings: list[ReadingResponse]
