"""Tests for the validation session state machine.

IDLE → FETCHING_USERS → USERS_LOADED → ISOLATING → ISOLATED → SUBMITTED →
EXPORTED, with reset() back to IDLE from anywhere.
"""

from pathlib import Path

import pytest

from dpwtool.models.common import ErrorType, ValidationStatus
from dpwtool.models.outcome import ServerError, Success, TransportError
from dpwtool.models.records import SubmissionReceipt, UserRecord
from dpwtool.workflow.input_validation import InputValidationError
from dpwtool.workflow.session import (
    VALID_SESSION_TRANSITIONS,
    TransitionLog,
    ValidationSession,
    ValidationState,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

USERS = [UserRecord(osm_username="alice", settlement="Kibera", user_id=5)]


def _loaded() -> ValidationSession:
    session = ValidationSession(validator_username="val")
    session.begin_user_refresh()
    session.apply_user_refresh(Success(USERS))
    return session


def _isolated() -> ValidationSession:
    session = _loaded()
    session.mapper_username = "alice"
    session.date = "2025-01-15"
    session.total_buildings = 40
    session.begin_isolation()
    session.complete_isolation(True)
    return session


def _submitted() -> ValidationSession:
    session = _isolated()
    session.apply_submission(Success(SubmissionReceipt(log_id=123, mapper_name="Alice", validator_name="Val")))
    return session


# ===================================================================
# Transition table
# ===================================================================


class TestTransitionTable:
    """Every state has an entry; EXPORTED is terminal except for reset."""

    def test_all_states_covered(self) -> None:
        assert set(VALID_SESSION_TRANSITIONS) == set(ValidationState)

    def test_exported_terminal(self) -> None:
        assert VALID_SESSION_TRANSITIONS[ValidationState.EXPORTED] == frozenset()

    def test_illegal_transition_raises(self) -> None:
        session = ValidationSession()
        with pytest.raises(ValueError, match="Cannot transition from IDLE to ISOLATING"):
            session.begin_isolation()

    def test_submit_requires_isolated(self) -> None:
        session = _loaded()
        with pytest.raises(ValueError):
            session.apply_submission(Success(SubmissionReceipt(log_id=1)))


# ===================================================================
# User refresh
# ===================================================================


class TestUserRefresh:
    """FETCHING_USERS resolves to USERS_LOADED or back to where it started."""

    def test_success_loads_users(self) -> None:
        session = _loaded()
        assert session.state == ValidationState.USERS_LOADED
        assert session.find_user("ALICE") == USERS[0]

    def test_failure_from_idle_returns_to_idle(self) -> None:
        session = ValidationSession()
        session.begin_user_refresh()
        session.apply_user_refresh(TransportError("Connection refused"))
        assert session.state == ValidationState.IDLE
        assert session.last_message == "Network error: Connection refused"

    def test_failure_from_loaded_keeps_users(self) -> None:
        session = _loaded()
        session.begin_user_refresh()
        session.apply_user_refresh(ServerError("maintenance", status_code=503))
        assert session.state == ValidationState.USERS_LOADED
        assert session.users == USERS

    def test_refresh_not_allowed_while_isolated(self) -> None:
        with pytest.raises(ValueError):
            _isolated().begin_user_refresh()


# ===================================================================
# Isolation and submission
# ===================================================================


class TestIsolationAndSubmission:

    def test_failed_isolation_returns_to_loaded(self) -> None:
        session = _loaded()
        session.begin_isolation()
        session.complete_isolation(False, "No data for mapper")
        assert session.state == ValidationState.USERS_LOADED
        assert session.last_message == "No data for mapper"

    def test_can_submit_ignores_error_counts(self) -> None:
        session = _isolated()
        assert session.can_submit() is True
        session.set_error_count(ErrorType.MISSING_TAGS, 3)
        assert session.can_submit() is True

    @pytest.mark.parametrize("field", ["mapper_username", "date"])
    def test_cannot_submit_without_required_field(self, field: str) -> None:
        session = _isolated()
        setattr(session, field, "   ")
        assert session.can_submit() is False

    def test_cannot_submit_without_buildings(self) -> None:
        session = _isolated()
        session.total_buildings = -5
        assert session.total_buildings == 0
        assert session.can_submit() is False

    def test_successful_submission(self) -> None:
        session = _submitted()
        assert session.state == ValidationState.SUBMITTED
        assert session.log_id == 123
        assert session.mapper_display_name == "Alice"
        assert session.validator_display_name == "Val"

    def test_failed_submission_keeps_state(self) -> None:
        session = _isolated()
        session.apply_submission(ServerError("db down", status_code=500))
        assert session.state == ValidationState.ISOLATED
        assert session.last_message == "Server error: db down"

    def test_build_payload(self) -> None:
        session = _isolated()
        session.task_id = " T-1 "
        session.status = "Rejected"
        session.set_error_count(ErrorType.HANGING_NODES, 2)
        payload = session.build_payload()
        assert payload.task_id == "T-1"
        assert payload.validator_username == "val"
        assert payload.status == ValidationStatus.REJECTED
        assert payload.error_counts[ErrorType.HANGING_NODES] == 2
        assert payload.total_errors == 2

    def test_invalid_status_rejected(self) -> None:
        with pytest.raises(ValueError):
            ValidationSession().status = "Approved"


# ===================================================================
# Advisory validation
# ===================================================================


class TestValidate:

    def test_empty_form(self) -> None:
        messages = ValidationSession().validate()
        assert "Task ID is recommended but not required" in messages
        assert "Mapper username is required" in messages
        assert "Filter date is required" in messages
        assert "Total buildings must be greater than 0" in messages

    def test_comments_recommended_with_errors(self) -> None:
        session = _isolated()
        session.task_id = "T-1"
        session.set_error_count(ErrorType.IMPROPER_TAGS, 1)
        assert session.validate() == ["Validator comments recommended when errors are present"]
        session.comments = "see tags"
        assert session.validate() == []

    def test_negative_count_clamped(self) -> None:
        session = ValidationSession()
        session.set_error_count(ErrorType.HANGING_NODES, -4)
        assert session.error_count(ErrorType.HANGING_NODES) == 0


# ===================================================================
# Field rules
# ===================================================================


class TestNormalizeFields:
    """Field rules run over the whole form before a payload is built."""

    def test_cleans_comments(self) -> None:
        session = _isolated()
        session.comments = "ok\x01 then"
        session.normalize_fields()
        assert session.comments == "ok then"

    def test_blank_optional_fields_pass(self) -> None:
        session = _isolated()
        session.normalize_fields()
        assert session.task_id == ""
        assert session.settlement == ""

    def test_rejects_impossible_date(self) -> None:
        session = _isolated()
        session.date = "2025-04-31"
        with pytest.raises(InputValidationError, match="Invalid day for month 4"):
            session.normalize_fields()

    def test_rejects_bad_validator_name(self) -> None:
        session = _isolated()
        session.validator_username = "val@example"
        with pytest.raises(InputValidationError):
            session.normalize_fields()


# ===================================================================
# Export, upload and reset
# ===================================================================


class TestExportAndReset:

    def test_upload_request_keyed_on_log_id(self, tmp_path: Path) -> None:
        session = _submitted()
        session.settlement = "Kibera"
        request = session.upload_request(tmp_path / "task.osm", mapper_user_id=5, validator_user_id=7)
        assert request.validation_log_id == 123
        assert request.filename == "task.osm"
        assert request.task_id is None
        assert request.settlement == "Kibera"

    def test_upload_before_submission_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            _isolated().upload_request(tmp_path / "t.osm", mapper_user_id=1, validator_user_id=1)

    def test_apply_upload(self) -> None:
        session = _submitted()
        session.apply_upload(Success("https://drive.test/f/1"))
        assert session.drive_url == "https://drive.test/f/1"
        session.mark_exported()
        assert session.state == ValidationState.EXPORTED

    def test_reset_from_any_state(self) -> None:
        session = _submitted()
        old_id = session.session_id
        session.set_error_count(ErrorType.MISSING_BUILDINGS, 4)
        session.reset()

        assert session.state == ValidationState.IDLE
        assert session.session_id != old_id
        assert session.mapper_username == ""
        assert session.total_buildings == 0
        assert session.total_errors == 0
        assert session.log_id == -1
        assert session.status == ValidationStatus.VALIDATED

    def test_history_records_every_transition(self) -> None:
        session = _submitted()
        session.mark_exported()
        session.reset()
        history = session.history
        assert all(isinstance(entry, TransitionLog) for entry in history)
        assert [entry.to_state for entry in history] == [
            ValidationState.FETCHING_USERS,
            ValidationState.USERS_LOADED,
            ValidationState.ISOLATING,
            ValidationState.ISOLATED,
            ValidationState.SUBMITTED,
            ValidationState.EXPORTED,
            ValidationState.IDLE,
        ]
        assert history[-1].from_state == ValidationState.EXPORTED
