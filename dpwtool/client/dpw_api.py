"""DPW Manager API client.

Endpoints:
- GET  {base}/users?exclude_managers=true&status=Active     → mapper list
- GET  {base}/api/users?osm_username=..&exclude_managers=true → user_id lookup
- POST {base}/api/validation-log  (JSON)                      → 201 {log_id, ...}
- POST {base}/api/upload-osm      (multipart)                 → 200 {drive_file_url}

``exclude_managers=true`` is always sent: managers must never appear as
mappers or be looked up as such.
"""

import logging

import httpx

from dpwtool.client.base import classify_raw, log_failure, require_base_url
from dpwtool.client.classifier import extract_error_message
from dpwtool.client.http import Endpoint, HttpRequester, MultipartForm, RawResponse
from dpwtool.config.settings import Settings, Timeouts
from dpwtool.data.parsers.submissions import parse_drive_url, parse_submission_receipt
from dpwtool.data.parsers.users import parse_user_id, parse_user_list
from dpwtool.models.outcome import (
    BusinessRuleError,
    ClientError,
    ClientErrorReason,
    Failure,
    Outcome,
    Success,
)
from dpwtool.models.records import SubmissionReceipt, UserRecord
from dpwtool.models.submission import SubmissionPayload, UploadRequest

logger = logging.getLogger(__name__)

HTTP_CREATED = 201


class DPWApiClient:
    """Stateless client for the DPW Manager backend."""

    def __init__(
        self,
        base_url: str,
        requester: HttpRequester,
        *,
        submit_timeouts: Timeouts | None = None,
        upload_timeouts: Timeouts | None = None,
    ) -> None:
        self._base_url = require_base_url(base_url, "DPW_API_BASE_URL")
        self._requester = requester
        self._submit_timeouts = submit_timeouts
        self._upload_timeouts = upload_timeouts

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
    ) -> "DPWApiClient":
        requester = HttpRequester(
            user_agent=settings.user_agent,
            timeouts=settings.json_timeouts,
            rate_limit_low_water=settings.RATE_LIMIT_LOW_WATER,
            transport=transport,
        )
        return cls(
            settings.DPW_API_BASE_URL,
            requester,
            submit_timeouts=settings.submit_timeouts,
            upload_timeouts=settings.upload_timeouts,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _endpoint(self, path: str) -> Endpoint:
        return Endpoint(self._base_url, path)

    # ----- Users -----

    def fetch_authorized_mappers(self) -> Outcome[list[UserRecord]]:
        """Active, non-manager users allowed to be validated."""
        endpoint = self._endpoint("/users").with_params(exclude_managers="true", status="Active")
        logger.debug("Fetching authorized mappers from %s", endpoint.url)

        outcome = classify_raw(self._requester.get(endpoint))
        if isinstance(outcome, Failure):
            log_failure("Fetch authorized mappers", outcome)
            return outcome

        parsed = parse_user_list(outcome.payload)
        if isinstance(parsed, Success):
            logger.info("Loaded %d authorized mappers", len(parsed.payload))
        else:
            log_failure("Parse authorized mappers", parsed)
        return parsed

    def get_user_id(self, osm_username: str) -> Outcome[int]:
        """Database user_id for an OSM username."""
        username = (osm_username or "").strip()
        if not username:
            return BusinessRuleError("OSM username is required to look up a user_id")

        endpoint = self._endpoint("/api/users").with_params(
            osm_username=username, exclude_managers="true",
        )
        outcome = classify_raw(self._requester.get(endpoint))
        if isinstance(outcome, Failure):
            log_failure(f"Fetch user_id for {username}", outcome)
            return outcome

        parsed = parse_user_id(outcome.payload, username)
        if isinstance(parsed, Success):
            logger.info("Found user_id=%d for %s", parsed.payload, username)
        else:
            logger.warning("No user_id found in response for %s", username)
        return parsed

    # ----- Validation log -----

    def submit_validation(self, payload: SubmissionPayload) -> Outcome[SubmissionReceipt]:
        """POST the validation verdict; success is a 201 carrying the log ID."""
        endpoint = self._endpoint("/api/validation-log")
        logger.info("Submitting validation for %s to %s", payload.mapper_username, endpoint.url)
        body = payload.to_json()
        logger.debug("Validation payload: %s", body)

        raw = self._requester.post_json(endpoint, body, timeouts=self._submit_timeouts)
        outcome = classify_raw(raw)
        if isinstance(outcome, Success) and isinstance(raw, RawResponse) and raw.status_code != HTTP_CREATED:
            # only 201 Created carries a new log entry
            outcome = ClientError(
                extract_error_message(raw.body),
                status_code=raw.status_code,
                reason=ClientErrorReason.UNEXPECTED,
            )
        if isinstance(outcome, Failure):
            log_failure("Validation submission", outcome)
            return outcome

        parsed = parse_submission_receipt(outcome.payload)
        if isinstance(parsed, Success):
            logger.info("Validation logged with log_id=%d", parsed.payload.log_id)
        else:
            log_failure("Parse submission response", parsed)
        return parsed

    # ----- Cloud upload -----

    def upload_to_cloud(self, upload: UploadRequest) -> Outcome[str]:
        """Upload the exported OSM file; returns the Drive URL."""
        unresolved = upload.unresolved_ids()
        if unresolved:
            return BusinessRuleError(
                f"Cannot upload before IDs are resolved: {', '.join(unresolved)}"
            )
        source = upload.file_path if upload.file_path is not None else upload.file_bytes
        if source is None:
            return BusinessRuleError("No file to upload")

        form = MultipartForm()
        form.add_field("validation_log_id", upload.validation_log_id)
        form.add_field("mapper_user_id", upload.mapper_user_id)
        form.add_field("validator_user_id", upload.validator_user_id)
        form.add_optional_field("task_id", upload.task_id)
        form.add_optional_field("settlement", upload.settlement)
        form.set_file("file", upload.filename, source)

        logger.info("Uploading %s to cloud storage", upload.filename)
        outcome = classify_raw(
            self._requester.post_multipart(
                self._endpoint("/api/upload-osm"), form, timeouts=self._upload_timeouts,
            )
        )
        if isinstance(outcome, Failure):
            log_failure("Cloud upload", outcome)
            return outcome

        parsed = parse_drive_url(outcome.payload)
        if isinstance(parsed, Success):
            logger.info("Upload successful, Drive URL: %s", parsed.payload)
        else:
            logger.warning("Upload succeeded but response has no drive_file_url")
        return parsed
