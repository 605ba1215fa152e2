"""Meter photo ingestion and reading confirmation service."""

__version__ = "0.1.0"
