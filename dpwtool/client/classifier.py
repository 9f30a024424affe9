"""Response classification: status code + body → typed outcome.

Pure functions; no network, no shared state.
"""

from dpwtool.data.json_scan import find_string_field
from dpwtool.models.outcome import (
    ApiOutcome,
    ClientError,
    ClientErrorReason,
    ServerError,
    Success,
    TransportError,
)

NO_ERROR_DETAILS = "No error details"


def extract_error_message(body: str) -> str:
    """Human-readable message from an error body.

    Prefers an ``"error"`` string field, then ``"message"``, then the raw
    body, then a fixed placeholder for an empty body.
    """
    for field in ("error", "message"):
        value = find_string_field(body, field)
        if value:
            return value
    stripped = body.strip()
    return stripped if stripped else NO_ERROR_DETAILS


def classify(status_code: int, body: str) -> ApiOutcome[str]:
    """Map an HTTP status and body onto an ApiOutcome.

    2xx → Success(body); 400 → ClientError(BAD_REQUEST);
    404 → ClientError(NOT_FOUND); 5xx → ServerError;
    anything else → ClientError(UNEXPECTED).
    """
    if 200 <= status_code < 300:
        return Success(body)

    message = extract_error_message(body)
    if status_code >= 500:
        return ServerError(message, status_code=status_code)
    if status_code == 400:
        return ClientError(message, status_code=status_code, reason=ClientErrorReason.BAD_REQUEST)
    if status_code == 404:
        return ClientError(message, status_code=status_code, reason=ClientErrorReason.NOT_FOUND)
    return ClientError(message, status_code=status_code, reason=ClientErrorReason.UNEXPECTED)


def classify_exception(exc: BaseException) -> TransportError:
    """Convert a transport-level fault (refused, timeout, bad URL, IO) to data."""
    detail = str(exc).strip() or type(exc).__name__
    return TransportError(detail)
