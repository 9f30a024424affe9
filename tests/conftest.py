"""Shared pytest fixtures for the dpwtool test suite.

Provides:
- settings: Settings pointing at test hosts
- recorder: httpx.MockTransport that replays queued replies and keeps every
  request it saw
- requester: HttpRequester wired to the recorder
"""

import httpx
import pytest

from dpwtool.client.http import HttpRequester
from dpwtool.config.settings import Settings, Timeouts

DPW_BASE = "https://dpw.test/api"
TM_BASE = "https://tm.test/api/v2"
RELEASES_URL = "https://gh.test/repos/org/plugin/releases/latest"


class Recorder:
    """Canned-reply transport; replies are consumed in order."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._replies: list[httpx.Response | Exception] = []

    def reply(
        self,
        status_code: int = 200,
        body: str | bytes = "",
        headers: dict[str, str] | None = None,
    ) -> "Recorder":
        content = body.encode("utf-8") if isinstance(body, str) else body
        self._replies.append(httpx.Response(status_code, content=content, headers=headers))
        return self

    def fail(self, exc: Exception) -> "Recorder":
        self._replies.append(exc)
        return self

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._replies:
            msg = f"Unexpected request: {request.method} {request.url}"
            raise AssertionError(msg)
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def requester(recorder: Recorder) -> HttpRequester:
    return HttpRequester(
        user_agent="DPW-JOSM-Plugin/3.2.0",
        timeouts=Timeouts(connect=1.0, read=1.0),
        transport=recorder.transport,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DPW_API_BASE_URL=DPW_BASE,
        TM_API_BASE_URL=TM_BASE,
        TM_INTEGRATION_ENABLED=True,
        RELEASES_API_URL=RELEASES_URL,
        CURRENT_VERSION="3.2.0",
    )
