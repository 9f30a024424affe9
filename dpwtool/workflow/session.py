"""Validation session state machine.

One session per validator action:
IDLE → FETCHING_USERS → USERS_LOADED → ISOLATING → ISOLATED → SUBMITTED → EXPORTED

There is no error state. A failed remote call leaves the session where it
was (or returns it to the state it came from) and records a message for the
operator. Every transition is checked against VALID_SESSION_TRANSITIONS and
appended to an audit history.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from uuid import UUID

from dpwtool.models.common import (
    UNKNOWN_ID,
    ErrorType,
    ValidationStatus,
    new_uuid7,
    utc_now,
)
from dpwtool.models.outcome import Failure, Outcome, Success
from dpwtool.models.records import SubmissionReceipt, UserRecord
from dpwtool.models.submission import SubmissionPayload, UploadRequest, empty_error_counts
from dpwtool.workflow.input_validation import (
    validate_comments,
    validate_date,
    validate_settlement,
    validate_task_id,
    validate_username,
)

logger = logging.getLogger(__name__)


class ValidationState(StrEnum):
    """Workflow states of a validation session."""

    IDLE = "IDLE"
    FETCHING_USERS = "FETCHING_USERS"
    USERS_LOADED = "USERS_LOADED"
    ISOLATING = "ISOLATING"
    ISOLATED = "ISOLATED"
    SUBMITTED = "SUBMITTED"
    EXPORTED = "EXPORTED"


VALID_SESSION_TRANSITIONS: dict[ValidationState, frozenset[ValidationState]] = {
    ValidationState.IDLE: frozenset({
        ValidationState.FETCHING_USERS,
    }),
    ValidationState.FETCHING_USERS: frozenset({
        ValidationState.USERS_LOADED,
        ValidationState.IDLE,
    }),
    ValidationState.USERS_LOADED: frozenset({
        ValidationState.FETCHING_USERS,
        ValidationState.ISOLATING,
    }),
    ValidationState.ISOLATING: frozenset({
        ValidationState.ISOLATED,
        ValidationState.USERS_LOADED,
    }),
    ValidationState.ISOLATED: frozenset({
        ValidationState.SUBMITTED,
    }),
    ValidationState.SUBMITTED: frozenset({
        ValidationState.EXPORTED,
    }),
    ValidationState.EXPORTED: frozenset(),
}


@dataclass(frozen=True)
class TransitionLog:
    """Immutable audit record for a session transition."""

    from_state: ValidationState
    to_state: ValidationState
    reason: str
    timestamp: datetime


def _clean(value: str | None) -> str:
    return value.strip() if value else ""


class ValidationSession:
    """Form data, error counts and workflow state for one validation.

    Mutated from a single thread only: the controller applies remote
    outcomes here after the worker hands them back.
    """

    def __init__(self, *, validator_username: str = "") -> None:
        self._session_id = new_uuid7()
        self._state = ValidationState.IDLE
        self._history: list[TransitionLog] = []
        self._refresh_origin = ValidationState.IDLE
        self.validator_username = validator_username
        self.users: list[UserRecord] = []
        self._clear_form()

    def _clear_form(self) -> None:
        self._task_id = ""
        self._settlement = ""
        self._mapper_username = ""
        self._date = ""
        self._total_buildings = 0
        self._comments = ""
        self._status = ValidationStatus.VALIDATED
        self._error_counts = empty_error_counts()
        self.log_id = UNKNOWN_ID
        self.mapper_display_name = ""
        self.validator_display_name = ""
        self.drive_url: str | None = None
        self.last_message = ""

    # ----- Identity / state -----

    @property
    def session_id(self) -> UUID:
        return self._session_id

    @property
    def state(self) -> ValidationState:
        return self._state

    @property
    def history(self) -> list[TransitionLog]:
        return list(self._history)

    @property
    def is_isolated(self) -> bool:
        return self._state in (
            ValidationState.ISOLATED,
            ValidationState.SUBMITTED,
            ValidationState.EXPORTED,
        )

    def _transition(self, to_state: ValidationState, reason: str) -> None:
        """Move to ``to_state``.

        Raises:
            ValueError: If the transition is not in VALID_SESSION_TRANSITIONS.
        """
        allowed = VALID_SESSION_TRANSITIONS.get(self._state, frozenset())
        if to_state not in allowed:
            msg = (
                f"Cannot transition from {self._state} to {to_state}. "
                f"Allowed: {sorted(s.value for s in allowed)}."
            )
            raise ValueError(msg)
        self._record(to_state, reason)

    def _record(self, to_state: ValidationState, reason: str) -> None:
        self._history.append(TransitionLog(
            from_state=self._state,
            to_state=to_state,
            reason=reason,
            timestamp=utc_now(),
        ))
        logger.debug("Session %s: %s -> %s (%s)", self._session_id, self._state, to_state, reason)
        self._state = to_state

    def require_state(self, *states: ValidationState) -> None:
        """Raises ValueError unless the session is in one of ``states``."""
        if self._state not in states:
            msg = f"Session is {self._state}, expected one of {sorted(s.value for s in states)}."
            raise ValueError(msg)

    # ----- Form fields -----

    @property
    def task_id(self) -> str:
        return self._task_id

    @task_id.setter
    def task_id(self, value: str | None) -> None:
        self._task_id = _clean(value)

    @property
    def settlement(self) -> str:
        return self._settlement

    @settlement.setter
    def settlement(self, value: str | None) -> None:
        self._settlement = _clean(value)

    @property
    def mapper_username(self) -> str:
        return self._mapper_username

    @mapper_username.setter
    def mapper_username(self, value: str | None) -> None:
        self._mapper_username = _clean(value)

    @property
    def date(self) -> str:
        return self._date

    @date.setter
    def date(self, value: str | None) -> None:
        self._date = _clean(value)

    @property
    def total_buildings(self) -> int:
        return self._total_buildings

    @total_buildings.setter
    def total_buildings(self, value: int) -> None:
        self._total_buildings = max(0, value)

    @property
    def comments(self) -> str:
        return self._comments

    @comments.setter
    def comments(self, value: str | None) -> None:
        self._comments = _clean(value)

    @property
    def status(self) -> ValidationStatus:
        return self._status

    @status.setter
    def status(self, value: ValidationStatus | str) -> None:
        # ValidationStatus() raises ValueError for anything but the two verdicts
        self._status = ValidationStatus(value)

    # ----- Error counts -----

    def error_count(self, error_type: ErrorType) -> int:
        return self._error_counts[error_type]

    def set_error_count(self, error_type: ErrorType, count: int) -> None:
        self._error_counts[error_type] = max(0, count)

    @property
    def error_counts(self) -> dict[ErrorType, int]:
        return dict(self._error_counts)

    @property
    def total_errors(self) -> int:
        return sum(self._error_counts.values())

    @property
    def has_errors(self) -> bool:
        return self.total_errors > 0

    def clear_errors(self) -> None:
        self._error_counts = empty_error_counts()

    # ----- Users -----

    def find_user(self, osm_username: str) -> UserRecord | None:
        wanted = _clean(osm_username).lower()
        for user in self.users:
            if user.osm_username.lower() == wanted:
                return user
        return None

    def begin_user_refresh(self) -> None:
        self._refresh_origin = self._state
        self._transition(ValidationState.FETCHING_USERS, "refresh mapper list")

    def apply_user_refresh(self, outcome: Outcome[list[UserRecord]]) -> None:
        """Apply the mapper-list fetch result.

        Success keeps the users and loads the session; a failure returns to
        the state the refresh started from.
        """
        self.require_state(ValidationState.FETCHING_USERS)
        if isinstance(outcome, Success):
            self.users = list(outcome.payload)
            self.last_message = f"Loaded {len(self.users)} authorized mappers"
            self._transition(ValidationState.USERS_LOADED, self.last_message)
            return
        self.last_message = outcome.describe()
        self._transition(self._refresh_origin, f"refresh failed: {outcome.message}")

    # ----- Isolation (local) -----

    def begin_isolation(self) -> None:
        self._transition(ValidationState.ISOLATING, f"isolate work of {self._mapper_username or '?'}")

    def complete_isolation(self, succeeded: bool, message: str = "") -> None:
        if succeeded:
            self.last_message = message or "Work isolated"
            self._transition(ValidationState.ISOLATED, self.last_message)
        else:
            self.last_message = message or "Isolation failed"
            self._transition(ValidationState.USERS_LOADED, self.last_message)

    # ----- Submission -----

    def can_submit(self) -> bool:
        """Required fields are present; error counts play no part."""
        return bool(self._mapper_username) and bool(self._date) and self._total_buildings > 0

    def missing_fields(self) -> list[str]:
        """Messages for the required fields that block can_submit()."""
        messages: list[str] = []
        if not self._mapper_username:
            messages.append("Mapper username is required")
        if not self._date:
            messages.append("Filter date is required")
        if self._total_buildings <= 0:
            messages.append("Total buildings must be greater than 0")
        return messages

    def validate(self) -> list[str]:
        """Advisory messages for the form; an empty list means nothing to flag."""
        messages: list[str] = []
        if not self._task_id:
            messages.append("Task ID is recommended but not required")
        messages.extend(self.missing_fields())
        if self.has_errors and not self._comments:
            messages.append("Validator comments recommended when errors are present")
        return messages

    def normalize_fields(self) -> None:
        """Run the field rules over the form and keep the cleaned values.

        Task ID, settlement and comments are optional; comments lose their
        control characters.

        Raises:
            InputValidationError: For the first field that breaks its rule.
        """
        if self._task_id:
            self._task_id = validate_task_id(self._task_id)
        self._mapper_username = validate_username(self._mapper_username)
        if self.validator_username:
            self.validator_username = validate_username(self.validator_username)
        self._date = validate_date(self._date)
        self._settlement = validate_settlement(self._settlement)
        self._comments = validate_comments(self._comments)

    def build_payload(self) -> SubmissionPayload:
        """Snapshot the form as a submission payload.

        Raises:
            ValueError: If the form does not pass payload validation.
        """
        return SubmissionPayload(
            task_id=self._task_id,
            mapper_username=self._mapper_username,
            validator_username=self.validator_username,
            date=self._date,
            settlement=self._settlement,
            error_counts=self._error_counts,
            total_buildings=self._total_buildings,
            status=self._status,
            comments=self._comments,
        )

    def apply_submission(self, outcome: Outcome[SubmissionReceipt]) -> None:
        """Success records the log ID and moves to SUBMITTED; failure keeps ISOLATED."""
        self.require_state(ValidationState.ISOLATED)
        if isinstance(outcome, Failure):
            self.last_message = outcome.describe()
            return
        receipt = outcome.payload
        self.log_id = receipt.log_id
        self.mapper_display_name = receipt.mapper_name
        self.validator_display_name = receipt.validator_name
        self.last_message = f"Validation logged (log ID {receipt.log_id})"
        self._transition(ValidationState.SUBMITTED, self.last_message)

    # ----- Export / upload -----

    def upload_request(
        self,
        file_path: Path,
        *,
        mapper_user_id: int,
        validator_user_id: int,
    ) -> UploadRequest:
        """Upload request for the exported file, keyed on this session's log ID."""
        self.require_state(ValidationState.SUBMITTED)
        return UploadRequest.from_path(
            file_path,
            validation_log_id=self.log_id,
            mapper_user_id=mapper_user_id,
            validator_user_id=validator_user_id,
            task_id=self._task_id or None,
            settlement=self._settlement or None,
        )

    def apply_upload(self, outcome: Outcome[str]) -> None:
        self.require_state(ValidationState.SUBMITTED)
        if isinstance(outcome, Failure):
            self.last_message = outcome.describe()
            return
        self.drive_url = outcome.payload
        self.last_message = "Uploaded to cloud storage"

    def mark_exported(self) -> None:
        self._transition(ValidationState.EXPORTED, "exported")

    def reset(self) -> None:
        """Back to IDLE from any state with all fields and counts cleared.

        The mapper list is kept; the session gets a fresh ID.
        """
        self._record(ValidationState.IDLE, "reset")
        self._session_id = new_uuid7()
        self._clear_form()
