"""Shared types, enums, and base models used across dpwtool domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# Sentinel for numeric IDs the backend has not (yet) resolved.
UNKNOWN_ID = -1


# --- Shared enums ---


class ValidationStatus(StrEnum):
    """Verdict submitted for a mapper's work."""

    VALIDATED = "Validated"
    REJECTED = "Rejected"


class ErrorType(StrEnum):
    """Closed set of error categories counted during validation.

    Declaration order is the order used on the wire.
    """

    HANGING_NODES = "Hanging Nodes"
    OVERLAPPING_BUILDINGS = "Overlapping Buildings"
    BUILDINGS_CROSSING_HIGHWAY = "Buildings Crossing Highway"
    MISSING_TAGS = "Missing Tags"
    IMPROPER_TAGS = "Improper Tags"
    FEATURES_MISIDENTIFIED = "Features Misidentified"
    MISSING_BUILDINGS = "Missing Buildings"
    BUILDING_INSIDE_BUILDING = "Building Inside Building"
    BUILDING_CROSSING_RESIDENTIAL = "Building Crossing Residential"
    IMPROPERLY_DRAWN = "Improperly Drawn"

    @property
    def field_name(self) -> str:
        """Snake-case key used in the submission JSON."""
        return self.value.lower().replace(" ", "_")


# --- Base model ---


class DPWBase(BaseModel):
    """Base model with common configuration for all dpwtool Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "str_strip_whitespace": True,
        "protected_namespaces": (),
    }
