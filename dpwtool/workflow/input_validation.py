"""Form-field validation and sanitizing.

Each validator trims its input and either returns the cleaned value or
raises InputValidationError with an operator-facing message. Optional
fields return "" when blank.
"""

import re
from typing import NoReturn
from urllib.parse import urlsplit

from dpwtool.models.common import ErrorType, ValidationStatus

TASK_ID_MAX_LENGTH = 100
USERNAME_MAX_LENGTH = 255
SETTLEMENT_MAX_LENGTH = 255
COMMENTS_MAX_LENGTH = 1000

_TASK_ID_RE = re.compile(r"^[A-Za-z0-9-]+$")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_ -]+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# Control characters except tab, newline and carriage return
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_THIRTY_DAY_MONTHS = frozenset({4, 6, 9, 11})


class InputValidationError(ValueError):
    """A form field value was rejected."""


def _fail(message: str) -> NoReturn:
    raise InputValidationError(message)


def validate_task_id(value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        _fail("Task ID cannot be empty")
    if len(text) > TASK_ID_MAX_LENGTH:
        _fail(f"Task ID is too long (max {TASK_ID_MAX_LENGTH} characters)")
    if not _TASK_ID_RE.match(text):
        _fail("Task ID contains invalid characters. Only alphanumeric and hyphens allowed.")
    return text


def validate_username(value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        _fail("Username cannot be empty")
    if len(text) > USERNAME_MAX_LENGTH:
        _fail(f"Username is too long (max {USERNAME_MAX_LENGTH} characters)")
    if not _USERNAME_RE.match(text):
        _fail(
            "Username contains invalid characters. "
            "Only alphanumeric, spaces, underscores, and hyphens allowed."
        )
    return text


def validate_settlement(value: str | None) -> str:
    text = (value or "").strip()
    if len(text) > SETTLEMENT_MAX_LENGTH:
        _fail(f"Settlement name is too long (max {SETTLEMENT_MAX_LENGTH} characters)")
    return text


def validate_comments(value: str | None) -> str:
    """Trim, enforce the length limit, then strip control characters."""
    text = (value or "").strip()
    if len(text) > COMMENTS_MAX_LENGTH:
        _fail(f"Comments are too long (max {COMMENTS_MAX_LENGTH} characters)")
    return _CONTROL_RE.sub("", text)


def _parse_int(text: str, invalid: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise InputValidationError(invalid) from None


def validate_total_buildings(value: str | None) -> int:
    text = (value or "").strip()
    if not text:
        _fail("Total buildings count cannot be empty")
    count = _parse_int(text, "Total buildings must be a valid number")
    if count <= 0:
        _fail("Total buildings must be greater than 0")
    return count


def validate_error_count(value: str | None, error_type: ErrorType) -> int:
    """Empty means zero."""
    text = (value or "").strip()
    if not text:
        return 0
    count = _parse_int(text, f"{error_type.value} count must be a valid number")
    if count < 0:
        _fail(f"{error_type.value} count cannot be negative")
    return count


def validate_date(value: str | None) -> str:
    """YYYY-MM-DD with year 2000-2100 and plausible month/day.

    February accepts 29 in every year.
    """
    text = (value or "").strip()
    if not text:
        _fail("Date cannot be empty")
    if not _DATE_RE.match(text):
        _fail("Date must be in YYYY-MM-DD format")

    year, month, day = (int(part) for part in text.split("-"))
    if not 2000 <= year <= 2100:
        _fail("Year must be between 2000 and 2100")
    if not 1 <= month <= 12:
        _fail("Month must be between 1 and 12")
    if not 1 <= day <= 31:
        _fail("Day must be between 1 and 31")
    if month in _THIRTY_DAY_MONTHS and day > 30:
        _fail(f"Invalid day for month {month}")
    if month == 2 and day > 29:
        _fail("February cannot have more than 29 days")
    return text


def validate_url(value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        return ""
    parts = urlsplit(text)
    if parts.scheme not in ("http", "https"):
        _fail("URL must start with http:// or https://")
    if not parts.netloc:
        _fail("Invalid URL format: missing host")
    return text


def validate_status(value: str | None) -> ValidationStatus:
    text = (value or "").strip()
    if not text:
        _fail("Validation status cannot be empty")
    try:
        return ValidationStatus(text)
    except ValueError:
        msg = f"Status must be '{ValidationStatus.VALIDATED}' or '{ValidationStatus.REJECTED}'"
        raise InputValidationError(msg) from None
