"""Enum definitions for meter kinds and reading states."""

from enum import Enum


class MeterKind(str, Enum):
    """Utility meter photographed by the customer."""

    WATER = "WATER"
    GAS = "GAS"


class ReadingState(str, Enum):
    """Lifecycle of a reading."""

    PENDING = "PENDING"  # Extracted, waiting for the customer
    CONFIRMED = "CONFIRMED"  # Terminal
