"""Self-update check against the GitHub release feed.

check_for_updates() compares the latest release with the running version.
download_update() streams the release asset next to the installed file and
swaps it in:

    <name>.tmp  ← download
    <name>      → <name>.bak   (if present)
    <name>.tmp  → <name>
    <name>.bak  removed
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path

import httpx

from dpwtool.client.base import classify_raw, log_failure, require_base_url
from dpwtool.client.classifier import classify
from dpwtool.client.http import DownloadResponse, Endpoint, HttpRequester
from dpwtool.config.settings import Settings, Timeouts
from dpwtool.data.parsers.releases import parse_release
from dpwtool.models.outcome import BusinessRuleError, Failure, Outcome, Success
from dpwtool.models.records import UpdateInfo
from dpwtool.updates.version import is_newer

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = {"Accept": "application/vnd.github.v3+json"}
DEFAULT_ASSET_NAME = "DPWValidationTool.jar"


class UpdateChecker:
    """Checks the release feed and installs newer plugin builds."""

    def __init__(
        self,
        releases_url: str,
        current_version: str,
        requester: HttpRequester,
        *,
        asset_extension: str = ".jar",
        download_timeouts: Timeouts | None = None,
    ) -> None:
        self._releases_url = require_base_url(releases_url, "RELEASES_API_URL")
        self._current_version = current_version
        self._requester = requester
        self._asset_extension = asset_extension
        self._download_timeouts = download_timeouts

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
    ) -> "UpdateChecker":
        requester = HttpRequester(
            user_agent=settings.user_agent,
            timeouts=settings.json_timeouts,
            rate_limit_low_water=settings.RATE_LIMIT_LOW_WATER,
            transport=transport,
        )
        return cls(
            settings.RELEASES_API_URL,
            settings.CURRENT_VERSION,
            requester,
            asset_extension=settings.RELEASE_ASSET_EXTENSION,
            download_timeouts=settings.download_timeouts,
        )

    @property
    def current_version(self) -> str:
        return self._current_version

    def check_for_updates(self) -> Outcome[UpdateInfo]:
        """Fetch the latest release and decide whether it is an update."""
        outcome = classify_raw(
            self._requester.get(Endpoint(self._releases_url), headers=GITHUB_ACCEPT)
        )
        if isinstance(outcome, Failure):
            log_failure("Update check", outcome)
            return outcome

        parsed = parse_release(outcome.payload, self._asset_extension)
        if isinstance(parsed, Failure):
            log_failure("Parse release feed", parsed)
            return parsed

        release = parsed.payload
        logger.info(
            "Latest release %s (running %s), download URL: %s",
            release.version, self._current_version, release.download_url or "not found",
        )
        return Success(UpdateInfo(
            update_available=is_newer(release.version, self._current_version),
            latest_version=release.version,
            current_version=self._current_version,
            release_name=release.name,
            release_notes=release.notes,
            download_url=release.download_url,
        ))

    def download_update(
        self,
        info: UpdateInfo,
        target_dir: Path,
        *,
        asset_name: str = DEFAULT_ASSET_NAME,
        cancel: threading.Event | None = None,
        progress: Callable[[int, int | None], None] | None = None,
    ) -> Outcome[Path]:
        """Download the release asset and replace ``target_dir / asset_name``."""
        if not info.download_url:
            return BusinessRuleError(
                "Download URL not found. The release may not have a plugin file attached."
            )

        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / asset_name
        temp = target.with_name(asset_name + ".tmp")
        backup = target.with_name(asset_name + ".bak")

        logger.info("Downloading %s from %s", info.latest_version, info.download_url)
        result = self._requester.download(
            info.download_url, temp,
            timeouts=self._download_timeouts, cancel=cancel, progress=progress,
        )
        if not isinstance(result, DownloadResponse):
            temp.unlink(missing_ok=True)
            log_failure("Update download", result)
            return result
        if result.cancelled:
            temp.unlink(missing_ok=True)
            logger.info("Update download cancelled after %d bytes", result.bytes_written)
            return BusinessRuleError("Download cancelled")

        status = classify(result.status_code, result.body)
        if isinstance(status, Failure):
            temp.unlink(missing_ok=True)
            log_failure("Update download", status)
            return status

        if target.exists():
            target.replace(backup)
        temp.replace(target)
        backup.unlink(missing_ok=True)
        logger.info("Installed %s (%d bytes) at %s", info.latest_version, result.bytes_written, target)
        return Success(target)
