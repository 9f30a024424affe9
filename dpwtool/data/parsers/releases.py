"""Parse GitHub release-feed responses.

Accepts either a single release object (``/releases/latest``) or the
releases array (``/releases``), where the first element is the newest.
"""

import logging

from dpwtool.data.json_scan import (
    NOT_FOUND,
    find_array_body,
    find_matching_bracket,
    find_string_field,
    split_top_level_objects,
)
from dpwtool.models.outcome import ParseError, Success
from dpwtool.models.records import ReleaseInfo

logger = logging.getLogger(__name__)


def _latest_release(json: str) -> str | None:
    """The release object to read: the document itself or its first element."""
    text = json.strip()
    if text.startswith("{"):
        return text
    if text.startswith("["):
        end = find_matching_bracket(text, 0, "[", "]")
        if end == NOT_FOUND:
            return None
        releases = split_top_level_objects(text[1:end])
        return releases[0] if releases else None
    return None


def find_download_url(release: str, extension: str) -> str | None:
    """First ``assets[].browser_download_url`` ending in ``extension``."""
    assets = find_array_body(release, "assets")
    if assets is None:
        return None
    for asset in split_top_level_objects(assets):
        url = find_string_field(asset, "browser_download_url")
        if url and url.endswith(extension):
            return url
    return None


def parse_release(json: str, asset_extension: str = ".jar") -> Success[ReleaseInfo] | ParseError:
    """Parse version, name, notes and download URL of the latest release."""
    release = _latest_release(json)
    if release is None:
        return ParseError("No releases found")

    tag = find_string_field(release, "tag_name")
    if not tag:
        return ParseError("Could not parse version from release feed")
    version = tag[1:] if tag.startswith("v") else tag

    download_url = find_download_url(release, asset_extension)
    if download_url is None:
        logger.warning(
            "Release %s has no %s asset (release JSON %d chars)",
            version, asset_extension, len(release),
        )

    return Success(ReleaseInfo(
        version=version,
        name=find_string_field(release, "name") or "",
        notes=find_string_field(release, "body") or "",
        download_url=download_url,
    ))
