"""Validation submission and cloud upload request models."""

import json
import re
from pathlib import Path

from pydantic import Field, field_validator

from dpwtool.models.common import DPWBase, ErrorType, ValidationStatus

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def empty_error_counts() -> dict[ErrorType, int]:
    """All ten error types, in wire order, set to zero."""
    return {error_type: 0 for error_type in ErrorType}


class SubmissionPayload(DPWBase):
    """Body of POST /api/validation-log."""

    task_id: str = ""
    mapper_username: str = Field(..., min_length=1)
    validator_username: str = Field(..., min_length=1)
    date: str = Field(..., description="Validation date, YYYY-MM-DD.")
    settlement: str = ""
    error_counts: dict[ErrorType, int] = Field(default_factory=empty_error_counts)
    total_buildings: int = Field(..., gt=0)
    status: ValidationStatus = ValidationStatus.VALIDATED
    comments: str = ""

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        if not _DATE_RE.match(value):
            msg = f"date must be YYYY-MM-DD, got {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("error_counts")
    @classmethod
    def _complete_counts(cls, value: dict[ErrorType, int]) -> dict[ErrorType, int]:
        counts = empty_error_counts()
        for error_type, count in value.items():
            if count < 0:
                msg = f"{error_type.value} count cannot be negative"
                raise ValueError(msg)
            counts[error_type] = count
        return counts

    @property
    def total_errors(self) -> int:
        return sum(self.error_counts.values())

    def to_wire(self) -> dict[str, object]:
        """Ordered mapping with the backend's field names."""
        body: dict[str, object] = {
            "task_id": self.task_id,
            "mapper_osm_username": self.mapper_username,
            "validator_osm_username": self.validator_username,
            "validation_date": self.date,
            "settlement": self.settlement,
            "total_buildings": self.total_buildings,
            "validation_status": self.status.value,
            "validator_comments": self.comments,
        }
        for error_type in ErrorType:
            body[error_type.field_name] = self.error_counts[error_type]
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


class UploadRequest(DPWBase):
    """Multipart upload of the exported OSM file, keyed on a submission."""

    filename: str = Field(..., min_length=1)
    file_path: Path | None = None
    file_bytes: bytes | None = None
    validation_log_id: int
    mapper_user_id: int
    validator_user_id: int
    task_id: str | None = None
    settlement: str | None = None

    @classmethod
    def from_path(cls, path: Path, **kwargs: object) -> "UploadRequest":
        return cls(filename=path.name, file_path=path, **kwargs)

    def unresolved_ids(self) -> list[str]:
        """Names of numeric IDs that are not positive."""
        ids = {
            "validation_log_id": self.validation_log_id,
            "mapper_user_id": self.mapper_user_id,
            "validator_user_id": self.validator_user_id,
        }
        return [name for name, value in ids.items() if value <= 0]
