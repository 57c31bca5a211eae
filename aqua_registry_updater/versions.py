"""Version parsing and comparison utilities.

Release tags in the registry are not always bare semver: they may carry a
channel or component prefix (``cli-v2.0.0``, ``edge-v1.3.0``). A tag is split
into that prefix and a trailing version, and two tags are only ordered when
their prefixes are identical, so an update never jumps across channels.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import semver

from aqua_registry_updater.errors import VersionParseError

# Non-greedy prefix: the version is the longest suffix that looks like one.
_TAG_PATTERN = re.compile(
    r"^(?P<prefix>.*?)"
    r"(?P<version>v?(?P<core>\d+(?:\.\d+)*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?)$"
)


@dataclass(frozen=True)
class VersionToken:
    """A tag split into ``prefix`` and a parsed semantic version.

    Attributes:
        prefix: Everything before the version suffix (may be empty).
        version: The suffix as a semver.Version.
        extra: Numeric components beyond major.minor.patch (``1.2.3.4``),
               used only to break ties.
    """

    prefix: str
    version: semver.Version
    extra: tuple[int, ...] = ()

    def __gt__(self, other: VersionToken) -> bool:
        cmp = self.version.compare(other.version)
        if cmp != 0:
            return cmp > 0
        return self.extra > other.extra


def parse_version(version_str: str) -> tuple[semver.Version, tuple[int, ...]]:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "v1.2" → "1.2.0"
    - "1.2.3-rc.1" → "1.2.3-rc.1"

    Components after the third are returned separately.

    Raises:
        VersionParseError: If the string is not a version.
    """
    match = _TAG_PATTERN.match(version_str)
    if match is None or match.group("prefix"):
        raise VersionParseError(f"not a version: {version_str!r}")
    return _to_semver(match)


def split_version(tag: str) -> VersionToken:
    """Split a tag into its prefix and its trailing version.

    Examples:
        "v2.1.0" → ("", 2.1.0)
        "cli-v2.1.0" → ("cli-", 2.1.0)
        "jq-1.7" → ("jq-", 1.7.0)

    Raises:
        VersionParseError: If the tag has no parsable version suffix.
    """
    match = _TAG_PATTERN.match(tag.strip())
    if match is None:
        raise VersionParseError(f"no version in {tag!r}")
    version, extra = _to_semver(match)
    return VersionToken(prefix=match.group("prefix"), version=version, extra=extra)


def compare_versions(current: str, new: str) -> bool:
    """Return True if ``new`` is a newer release of the same channel as ``current``.

    Tags with different prefixes are never an upgrade of each other
    (``edge-v2.0.0`` → ``stable-v2.1.0`` is False, not an error).

    Raises:
        VersionParseError: If either tag has no parsable version suffix.
    """
    try:
        current_token = split_version(current)
    except VersionParseError as exc:
        raise VersionParseError(f"parse the current version: {exc}") from exc
    try:
        new_token = split_version(new)
    except VersionParseError as exc:
        raise VersionParseError(f"parse the new version: {exc}") from exc
    if current_token.prefix != new_token.prefix:
        return False
    return new_token > current_token


def _to_semver(match: re.Match[str]) -> tuple[semver.Version, tuple[int, ...]]:
    parts = [int(p) for p in match.group("core").split(".")]
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append(0)
    try:
        version = semver.Version(
            parts[0],
            parts[1],
            parts[2],
            prerelease=match.group("prerelease"),
            build=match.group("build"),
        )
    except ValueError as exc:
        raise VersionParseError(f"invalid version {match.group('version')!r}: {exc}") from exc
    return version, tuple(parts[3:])
