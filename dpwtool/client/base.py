"""Shared plumbing for the backend clients.

Clients are stateless: they take inputs, call the requester, classify the
response and hand it to a parser. The only exception they raise is
ConfigurationError, from their constructors, for a malformed base URL.
"""

import logging
from urllib.parse import urlsplit

from dpwtool.client.classifier import classify
from dpwtool.client.http import RawResponse
from dpwtool.models.outcome import ApiOutcome, Failure, TransportError

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """A configured value is unusable; nothing sensible can be sent."""


def require_base_url(url: str, setting: str) -> str:
    """Validate a configured http(s) base URL and return it without a trailing slash.

    Raises:
        ConfigurationError: If the URL has no http/https scheme or no host.
    """
    cleaned = (url or "").strip()
    parts = urlsplit(cleaned)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        logger.error("Invalid %s: %r", setting, url)
        msg = f"{setting} must be an http(s) URL, got {url!r}"
        raise ConfigurationError(msg)
    return cleaned.rstrip("/")


def classify_raw(raw: RawResponse | TransportError) -> ApiOutcome[str]:
    """Classify a requester result; transport failures pass through."""
    if isinstance(raw, TransportError):
        return raw
    return classify(raw.status_code, raw.body)


def log_failure(operation: str, failure: Failure) -> None:
    logger.error("%s failed [%s]: %s", operation, failure.kind, failure.message)
