"""Tests for the DPW Manager API client against a mock transport."""

import json
from pathlib import Path

import httpx
import pytest

from dpwtool.client.base import ConfigurationError
from dpwtool.client.dpw_api import DPWApiClient
from dpwtool.client.http import HttpRequester
from dpwtool.models.common import ErrorType
from dpwtool.models.outcome import (
    BusinessRuleError,
    ClientError,
    ClientErrorReason,
    ParseError,
    ServerError,
    Success,
    TransportError,
)
from dpwtool.models.submission import SubmissionPayload, UploadRequest

DPW_BASE = "https://dpw.test/api"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client(requester: HttpRequester) -> DPWApiClient:
    return DPWApiClient(DPW_BASE, requester)


def _payload(**overrides) -> SubmissionPayload:
    fields = {
        "task_id": "T-1",
        "mapper_username": "alice",
        "validator_username": "val",
        "date": "2025-01-15",
        "settlement": "Kibera",
        "error_counts": {ErrorType.HANGING_NODES: 2},
        "total_buildings": 40,
        "status": "Rejected",
        "comments": "fix nodes",
    }
    fields.update(overrides)
    return SubmissionPayload(**fields)


def _upload(**overrides) -> UploadRequest:
    fields = {
        "filename": "task.osm",
        "file_bytes": b"<osm/>",
        "validation_log_id": 123,
        "mapper_user_id": 5,
        "validator_user_id": 7,
    }
    fields.update(overrides)
    return UploadRequest(**fields)


# ===================================================================
# Construction
# ===================================================================


class TestConstruction:

    @pytest.mark.parametrize("url", ["", "dpw.test/api", "ftp://dpw.test", "https://"])
    def test_malformed_base_url(self, url: str, requester: HttpRequester) -> None:
        with pytest.raises(ConfigurationError):
            DPWApiClient(url, requester)

    def test_trailing_slash_stripped(self, requester: HttpRequester) -> None:
        assert DPWApiClient(DPW_BASE + "/", requester).base_url == DPW_BASE

    def test_from_settings(self, settings, recorder) -> None:
        recorder.reply(200, '{"data": []}')
        client = DPWApiClient.from_settings(settings, recorder.transport)
        client.fetch_authorized_mappers()
        assert recorder.last.headers["User-Agent"] == "DPW-JOSM-Plugin/3.2.0"


# ===================================================================
# Users
# ===================================================================


class TestFetchAuthorizedMappers:
    """GET /users?exclude_managers=true&status=Active."""

    def test_success(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(200, '{"success": true, "data": [{"osm_username": "alice", "user_id": 5}], "count": 1}')
        result = _client(requester).fetch_authorized_mappers()

        assert isinstance(result, Success)
        assert [u.osm_username for u in result.payload] == ["alice"]
        sent = recorder.last
        assert sent.url.path == "/api/users"
        assert sent.url.params["exclude_managers"] == "true"
        assert sent.url.params["status"] == "Active"

    def test_missing_data_array(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(200, '{"success": true}')
        assert isinstance(_client(requester).fetch_authorized_mappers(), ParseError)

    def test_server_error(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(503, '{"error": "maintenance"}')
        result = _client(requester).fetch_authorized_mappers()
        assert result == ServerError("maintenance", status_code=503)

    def test_connection_refused(self, recorder, requester: HttpRequester) -> None:
        recorder.fail(httpx.ConnectError("Connection refused"))
        assert isinstance(_client(requester).fetch_authorized_mappers(), TransportError)


class TestGetUserId:
    """GET /api/users?osm_username=..&exclude_managers=true."""

    def test_found(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(200, '{"data": [{"osm_username": "alice", "user_id": 5}]}')
        assert _client(requester).get_user_id(" alice ") == Success(5)
        params = recorder.last.url.params
        assert params["osm_username"] == "alice"
        assert params["exclude_managers"] == "true"

    def test_blank_username_no_request(self, recorder, requester: HttpRequester) -> None:
        result = _client(requester).get_user_id("   ")
        assert isinstance(result, BusinessRuleError)
        assert recorder.requests == []

    def test_not_found(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(404, '{"error": "user not found"}')
        result = _client(requester).get_user_id("ghost")
        assert result == ClientError("user not found", status_code=404, reason=ClientErrorReason.NOT_FOUND)


# ===================================================================
# Submission
# ===================================================================


class TestSubmitValidation:
    """POST /api/validation-log with the JSON payload."""

    def test_created(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(201, '{"success": true, "log_id": 123, "mapper_name": "Alice", "validator_name": "Val"}')
        result = _client(requester).submit_validation(_payload())

        assert isinstance(result, Success)
        assert result.payload.log_id == 123
        sent = recorder.last
        assert sent.method == "POST"
        assert sent.url.path == "/api/api/validation-log"
        body = json.loads(sent.content)
        assert body["mapper_osm_username"] == "alice"
        assert body["validation_status"] == "Rejected"
        assert body["hanging_nodes"] == 2
        assert body["improperly_drawn"] == 0
        assert list(body)[:8] == [
            "task_id", "mapper_osm_username", "validator_osm_username", "validation_date",
            "settlement", "total_buildings", "validation_status", "validator_comments",
        ]

    def test_bad_request(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(400, '{"error": "Invalid mapper"}')
        result = _client(requester).submit_validation(_payload())
        assert isinstance(result, ClientError)
        assert result.describe() == "Invalid data: Invalid mapper"

    def test_ok_status_is_not_created(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(200, '{"success": true, "log_id": 123}')
        result = _client(requester).submit_validation(_payload())
        assert isinstance(result, ClientError)
        assert result.reason == ClientErrorReason.UNEXPECTED
        assert result.status_code == 200
        assert result.describe().startswith("HTTP 200: ")

    def test_created_without_log_id(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(201, '{"success": true}')
        assert isinstance(_client(requester).submit_validation(_payload()), ParseError)


# ===================================================================
# Upload
# ===================================================================


class TestUploadToCloud:
    """POST /api/upload-osm multipart."""

    def test_uploads_bytes(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(200, '{"success": true, "drive_file_url": "https://drive.test/f/1"}')
        result = _client(requester).upload_to_cloud(_upload(task_id="T-1", settlement="Kibera"))

        assert result == Success("https://drive.test/f/1")
        sent = recorder.last
        assert sent.url.path == "/api/api/upload-osm"
        assert sent.headers["Content-Type"].startswith("multipart/form-data; boundary=----DPWBoundary")
        assert b'name="validation_log_id"\r\n\r\n123\r\n' in sent.content
        assert b'name="task_id"\r\n\r\nT-1\r\n' in sent.content
        assert b'filename="task.osm"' in sent.content

    def test_uploads_path(self, recorder, requester: HttpRequester, tmp_path: Path) -> None:
        source = tmp_path / "export.osm"
        source.write_bytes(b"<osm version='0.6'/>")
        recorder.reply(200, '{"drive_file_url": "u"}')
        upload = UploadRequest.from_path(
            source, validation_log_id=1, mapper_user_id=2, validator_user_id=3,
        )
        _client(requester).upload_to_cloud(upload)
        assert b"<osm version='0.6'/>" in recorder.last.content
        assert b'name="task_id"' not in recorder.last.content

    @pytest.mark.parametrize("field", ["validation_log_id", "mapper_user_id", "validator_user_id"])
    def test_unresolved_ids_no_request(self, field: str, recorder, requester: HttpRequester) -> None:
        result = _client(requester).upload_to_cloud(_upload(**{field: -1}))
        assert isinstance(result, BusinessRuleError)
        assert field in result.message
        assert recorder.requests == []

    def test_no_file(self, recorder, requester: HttpRequester) -> None:
        result = _client(requester).upload_to_cloud(_upload(file_bytes=None))
        assert result == BusinessRuleError("No file to upload")

    def test_missing_drive_url(self, recorder, requester: HttpRequester) -> None:
        recorder.reply(200, '{"success": true}')
        assert isinstance(_client(requester).upload_to_cloud(_upload()), ParseError)
