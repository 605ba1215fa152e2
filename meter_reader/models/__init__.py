"""Database models."""

from meter_reader.models.enums import MeterKind, ReadingState
from meter_reader.models.reading import Reading

__all__ = ["MeterKind", "Reading", "ReadingState"]
