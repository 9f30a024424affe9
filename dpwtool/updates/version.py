"""Dotted version strings with optional pre-release suffixes.

``3.1.0-BETA`` → VersionTag((3, 1, 0), "BETA"). Ordering rules used by the
update checker:

- numeric components compare left to right, missing components count as 0;
- on equal numbers, a stable release supersedes a pre-release;
- two pre-releases with equal numbers are not ordered (neither is newer).
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _split(version: str) -> tuple[list[int], str | None]:
    """Numeric components and pre-release suffix.

    Raises:
        ValueError: If a numeric component is not an integer.
    """
    text = version.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    core, sep, suffix = text.partition("-")
    if not core:
        msg = f"Empty version: {version!r}"
        raise ValueError(msg)
    numbers: list[int] = []
    for part in core.split("."):
        if not part.isdigit():
            msg = f"Non-numeric version component {part!r} in {version!r}"
            raise ValueError(msg)
        numbers.append(int(part))
    return numbers, (suffix or None) if sep else None


@dataclass(frozen=True)
class VersionTag:
    """Numeric components (at least three, padded with 0) and a pre-release suffix."""

    numbers: tuple[int, ...]
    pre_release: str | None = None

    @classmethod
    def parse(cls, version: str) -> "VersionTag":
        """Parse ``[v]MAJOR[.MINOR[.PATCH[.N...]]][-PRE]``.

        Components beyond the third are kept and take part in comparisons.

        Raises:
            ValueError: If the numeric part is malformed.
        """
        numbers, pre = _split(version)
        numbers += [0] * (3 - len(numbers))
        return cls(numbers=tuple(numbers), pre_release=pre)

    @property
    def major(self) -> int:
        return self.numbers[0]

    @property
    def minor(self) -> int:
        return self.numbers[1]

    @property
    def patch(self) -> int:
        return self.numbers[2]

    @property
    def is_pre_release(self) -> bool:
        return self.pre_release is not None

    def is_newer_than(self, other: "VersionTag") -> bool:
        width = max(len(self.numbers), len(other.numbers))
        mine = self.numbers + (0,) * (width - len(self.numbers))
        theirs = other.numbers + (0,) * (width - len(other.numbers))
        if mine != theirs:
            return mine > theirs
        return other.is_pre_release and not self.is_pre_release

    def __str__(self) -> str:
        base = ".".join(str(n) for n in self.numbers)
        return f"{base}-{self.pre_release}" if self.pre_release else base


def is_newer(latest: str, current: str) -> bool:
    """Whether ``latest`` should be offered as an update over ``current``.

    Never raises: malformed input is logged and treated as "not newer".
    """
    try:
        latest_tag = VersionTag.parse(latest)
        current_tag = VersionTag.parse(current)
    except ValueError as exc:
        logger.warning("Error comparing versions %r and %r: %s", latest, current, exc)
        return False
    return latest_tag.is_newer_than(current_tag)
