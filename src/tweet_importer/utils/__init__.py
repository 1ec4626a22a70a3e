"""Utility functions for the import system."""

from .logger import setup_logging, ProgressLogger
from .dates import parse_datetime, to_iso, utc_now
from .ids import uuid7, new_id

__all__ = [
    "setup_logging",
    "ProgressLogger",
    "parse_datetime",
    "to_iso",
    "utc_now",
    "uuid7",
    "new_id"
]
