"""Parse validation-log and upload responses."""

from dpwtool.data.json_scan import find_int_field, find_string_field
from dpwtool.models.outcome import ParseError, Success
from dpwtool.models.records import SubmissionReceipt


def parse_submission_receipt(json: str) -> Success[SubmissionReceipt] | ParseError:
    """Parse ``{log_id, mapper_name, validator_name}`` from a 201 body."""
    log_id = find_int_field(json, "log_id")
    if log_id is None or log_id <= 0:
        return ParseError("No log_id in response")
    return Success(SubmissionReceipt(
        log_id=log_id,
        mapper_name=find_string_field(json, "mapper_name") or "",
        validator_name=find_string_field(json, "validator_name") or "",
    ))


def parse_drive_url(json: str) -> Success[str] | ParseError:
    """Parse ``drive_file_url`` from an upload response."""
    url = find_string_field(json, "drive_file_url")
    if not url:
        return ParseError("No Drive URL in response")
    return Success(url)
