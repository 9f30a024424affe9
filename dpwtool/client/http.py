"""HTTP request builder shared by the DPW, Tasking Manager and release clients.

Three request shapes:

- GET with query parameters
- POST with a UTF-8 JSON body
- POST multipart/form-data (named fields + one streamed file part)

Every call opens its own ``httpx.Client`` and closes it on every exit path.
Socket-level faults come back as TransportError, never as exceptions.
Rate-limit headers are logged when present, and each request emits one
structured log line.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

import httpx
import structlog

from dpwtool.client.classifier import classify_exception
from dpwtool.config.settings import Timeouts
from dpwtool.models.common import new_uuid7
from dpwtool.models.outcome import TransportError

logger = logging.getLogger(__name__)
request_log = structlog.get_logger("dpwtool.http")

JSON_CONTENT_TYPE = "application/json; charset=UTF-8"
FILE_CONTENT_TYPE = "application/xml"
CHUNK_SIZE = 8192

_TRANSPORT_FAULTS = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, OSError)


# ---------------------------------------------------------------------------
# Request values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Endpoint:
    """Base URL + path + query parameters. Immutable per call."""

    base_url: str
    path: str = ""
    params: tuple[tuple[str, str], ...] = ()

    @property
    def url(self) -> str:
        if not self.path:
            return self.base_url
        return f"{self.base_url.rstrip('/')}/{self.path.lstrip('/')}"

    def with_params(self, **params: str) -> "Endpoint":
        return replace(self, params=self.params + tuple(params.items()))


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DownloadResponse:
    """Outcome of streaming a response body to disk."""

    status_code: int
    bytes_written: int = 0
    cancelled: bool = False
    body: str = ""


# ---------------------------------------------------------------------------
# Rate limit headers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimit:
    remaining: int
    limit: str
    reset: str | None

    def is_low(self, low_water: int) -> bool:
        return self.remaining < low_water


def inspect_rate_limit(headers: Mapping[str, str], low_water: int) -> RateLimit | None:
    """Log X-RateLimit-* headers and warn when the quota is nearly spent."""
    remaining = headers.get("X-RateLimit-Remaining")
    limit = headers.get("X-RateLimit-Limit")
    if remaining is None or limit is None:
        return None

    reset = headers.get("X-RateLimit-Reset")
    logger.info("API rate limit: %s/%s (resets at %s)", remaining, limit, reset)
    try:
        rate = RateLimit(remaining=int(remaining), limit=limit, reset=reset)
    except ValueError:
        return None
    if rate.is_low(low_water):
        logger.warning("API rate limit nearly reached: %d requests remaining", rate.remaining)
    return rate


# ---------------------------------------------------------------------------
# Multipart body
# ---------------------------------------------------------------------------


class MultipartForm:
    """multipart/form-data body with ordered text fields and one file part.

    The boundary is unique per form. File content is copied verbatim in
    CHUNK_SIZE pieces; a path source is read lazily while the body streams.
    """

    def __init__(self, boundary: str | None = None) -> None:
        self.boundary = boundary or f"----DPWBoundary{new_uuid7().hex}"
        self._fields: list[tuple[str, str]] = []
        self._file: tuple[str, str, Path | bytes, str] | None = None

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def field_names(self) -> list[str]:
        return [name for name, _ in self._fields]

    def add_field(self, name: str, value: object) -> None:
        self._fields.append((name, str(value)))

    def add_optional_field(self, name: str, value: str | None) -> None:
        """Add ``name`` only when ``value`` is non-blank (trimmed)."""
        if value is not None and value.strip():
            self._fields.append((name, value.strip()))

    def set_file(
        self,
        name: str,
        filename: str,
        source: Path | bytes,
        content_type: str = FILE_CONTENT_TYPE,
    ) -> None:
        self._file = (name, filename, source, content_type)

    def _part_header(self, name: str, filename: str | None = None, content_type: str | None = None) -> bytes:
        disposition = f'Content-Disposition: form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        lines = [f"--{self.boundary}", disposition]
        if content_type is not None:
            lines.append(f"Content-Type: {content_type}")
        return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")

    def iter_bytes(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        for name, value in self._fields:
            yield self._part_header(name)
            yield value.encode("utf-8") + b"\r\n"

        if self._file is not None:
            name, filename, source, content_type = self._file
            yield self._part_header(name, filename, content_type)
            if isinstance(source, bytes):
                for start in range(0, len(source), chunk_size):
                    yield source[start:start + chunk_size]
            else:
                with source.open("rb") as fh:
                    while chunk := fh.read(chunk_size):
                        yield chunk
            yield b"\r\n"

        yield f"--{self.boundary}--\r\n".encode("utf-8")

    def to_bytes(self) -> bytes:
        return b"".join(self.iter_bytes())


# ---------------------------------------------------------------------------
# Requester
# ---------------------------------------------------------------------------


def _httpx_timeout(timeouts: Timeouts) -> httpx.Timeout:
    return httpx.Timeout(timeouts.read, connect=timeouts.connect)


def _content_length(headers: Mapping[str, str]) -> int | None:
    raw = headers.get("Content-Length", "")
    return int(raw) if raw.isdigit() and int(raw) > 0 else None


class HttpRequester:
    """Sends requests and returns RawResponse or TransportError.

    ``transport`` is passed straight to ``httpx.Client`` so tests can plug in
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        timeouts: Timeouts,
        rate_limit_low_water: int = 10,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._user_agent = user_agent
        self._timeouts = timeouts
        self._low_water = rate_limit_low_water
        self._transport = transport

    def _headers(self, extra: Mapping[str, str] | None, *, accept_json: bool = True) -> dict[str, str]:
        headers = {"User-Agent": self._user_agent}
        if accept_json:
            headers["Accept"] = "application/json"
        if extra:
            headers.update(extra)
        return headers

    def _client(self, timeouts: Timeouts | None) -> httpx.Client:
        return httpx.Client(
            transport=self._transport,
            timeout=_httpx_timeout(timeouts or self._timeouts),
            follow_redirects=True,
        )

    def get(
        self,
        endpoint: Endpoint,
        headers: Mapping[str, str] | None = None,
        *,
        timeouts: Timeouts | None = None,
    ) -> RawResponse | TransportError:
        return self._send(
            "GET", endpoint,
            headers=self._headers(headers),
            timeouts=timeouts,
        )

    def post_json(
        self,
        endpoint: Endpoint,
        body: str,
        headers: Mapping[str, str] | None = None,
        *,
        timeouts: Timeouts | None = None,
    ) -> RawResponse | TransportError:
        merged = self._headers(headers)
        merged["Content-Type"] = JSON_CONTENT_TYPE
        return self._send(
            "POST", endpoint,
            headers=merged,
            content=body.encode("utf-8"),
            timeouts=timeouts,
        )

    def post_multipart(
        self,
        endpoint: Endpoint,
        form: MultipartForm,
        headers: Mapping[str, str] | None = None,
        *,
        timeouts: Timeouts | None = None,
    ) -> RawResponse | TransportError:
        merged = self._headers(headers, accept_json=False)
        merged["Content-Type"] = form.content_type
        return self._send(
            "POST", endpoint,
            headers=merged,
            content=form.iter_bytes(),
            timeouts=timeouts,
        )

    def _send(
        self,
        method: str,
        endpoint: Endpoint,
        *,
        headers: dict[str, str],
        content: bytes | Iterator[bytes] | None = None,
        timeouts: Timeouts | None,
    ) -> RawResponse | TransportError:
        started = time.monotonic()
        try:
            with self._client(timeouts) as client:
                resp = client.request(
                    method,
                    endpoint.url,
                    params=list(endpoint.params) or None,
                    headers=headers,
                    content=content,
                )
                body = resp.text.strip()
        except _TRANSPORT_FAULTS as exc:
            failure = classify_exception(exc)
            request_log.warning(
                "http_request_failed",
                method=method, url=endpoint.url, error=failure.message,
            )
            return failure

        request_log.info(
            "http_request",
            method=method,
            url=str(resp.request.url),
            status=resp.status_code,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        inspect_rate_limit(resp.headers, self._low_water)
        return RawResponse(status_code=resp.status_code, body=body, headers=dict(resp.headers))

    def download(
        self,
        url: str,
        target: Path,
        *,
        timeouts: Timeouts | None = None,
        cancel: threading.Event | None = None,
        progress: Callable[[int, int | None], None] | None = None,
    ) -> DownloadResponse | TransportError:
        """Stream a GET response body into ``target``.

        Non-2xx bodies are read as text and nothing is written. Setting
        ``cancel`` stops the copy between chunks; the partial file is left
        for the caller to remove.
        """
        written = 0
        try:
            with self._client(timeouts) as client:
                with client.stream("GET", url, headers=self._headers(None, accept_json=False)) as resp:
                    if not 200 <= resp.status_code < 300:
                        resp.read()
                        return DownloadResponse(status_code=resp.status_code, body=resp.text.strip())

                    total = _content_length(resp.headers)
                    with target.open("wb") as out:
                        for chunk in resp.iter_bytes(CHUNK_SIZE):
                            if cancel is not None and cancel.is_set():
                                return DownloadResponse(
                                    status_code=resp.status_code,
                                    bytes_written=written,
                                    cancelled=True,
                                )
                            out.write(chunk)
                            written += len(chunk)
                            if progress is not None:
                                progress(written, total)
        except _TRANSPORT_FAULTS as exc:
            failure = classify_exception(exc)
            request_log.warning("http_download_failed", url=url, error=failure.message)
            return failure

        request_log.info("http_download", url=url, status=resp.status_code, bytes=written)
        return DownloadResponse(status_code=resp.status_code, bytes_written=written)
