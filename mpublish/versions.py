"""Version parsing and bumping.

Versions are read as ``major.minor.<rest>``: everything after the second
dot is the patch segment, optionally followed by ``-tag``. This is looser
than semver on purpose so that versions like ``1.2.3-beta.1`` keep their
full tag when bumped.
"""

from __future__ import annotations

import re

import semver
from pydantic import BaseModel, ConfigDict

from .errors import MalformedVersionError
from .models import BumpDirectives, PackageManifest


class ParsedVersion(BaseModel):
    """A version split into the pieces the bump works on."""

    model_config = ConfigDict(frozen=True)

    major: str
    minor: str
    patch: str
    tag: str = ""

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        return f"{version}-{self.tag}" if self.tag else version


def parse_version(version_str: str) -> ParsedVersion:
    """Split a version string into major, minor, patch and tag.

    The patch is everything after the second dot up to the first ``-``;
    the tag is whatever follows that ``-``.

    Examples:
        "1.2.3"          → major="1", minor="2", patch="3", tag=""
        "1.2.3-beta.1"   → major="1", minor="2", patch="3", tag="beta.1"
        "1.2.3.4"        → major="1", minor="2", patch="3.4", tag=""

    Raises:
        MalformedVersionError: If there are fewer than three segments.
    """
    parts = version_str.split(".")
    if len(parts) < 3:
        raise MalformedVersionError(version_str, "expected major.minor.patch")

    major, minor, *rest = parts
    patch, _, tag = ".".join(rest).partition("-")
    return ParsedVersion(major=major, minor=minor, patch=patch, tag=tag)


_LEADING_DIGITS = re.compile(r"[0-9]+")


def _increment(patch: str, version_str: str) -> str:
    """Add one to the leading run of digits in the patch segment.

    Anything after the digits (build metadata, extra dot segments) is
    dropped: "3+build.5" → "4", "3.4" → "4".
    """
    match = _LEADING_DIGITS.match(patch)
    if match is None:
        raise MalformedVersionError(version_str, f"patch {patch!r} is not a number")
    return str(int(match.group()) + 1)


def bump_version(version_str: str, directives: BumpDirectives) -> str:
    """Compute the next version under the given directives.

    1. A minor override that differs from the current minor replaces it
       and resets the patch to 0; otherwise the patch goes up by one.
    2. A ``tag`` directive sets the tag; otherwise an existing tag is
       carried forward unless ``notag`` is set.
    3. A major override that differs from the current major replaces it.

    Examples:
        "1.2.3", {}              → "1.2.4"
        "1.2.3-beta", {}         → "1.2.4-beta"
        "1.2.3", {minor: "5"}    → "1.5.0"
        "1.2.3-beta", {notag}    → "1.2.4"

    Raises:
        MalformedVersionError: If the version cannot be parsed or its patch
            does not start with a digit.
    """
    current = parse_version(version_str)

    minor = current.minor
    if directives.minor and directives.minor != current.minor:
        minor = directives.minor
        patch = "0"
    else:
        patch = _increment(current.patch, version_str)

    if directives.tag:
        tag = directives.tag
    elif not directives.notag and current.tag:
        tag = current.tag
    else:
        tag = ""

    major = current.major
    if directives.major and directives.major != current.major:
        major = directives.major

    return str(ParsedVersion(major=major, minor=minor, patch=patch, tag=tag))


def apply_bump(manifest: PackageManifest, directives: BumpDirectives) -> str:
    """Bump a manifest's version in place and return the new version.

    The manifest is left untouched when the version is malformed.

    Raises:
        MalformedVersionError: With ``package`` set to the manifest name.
    """
    try:
        new = bump_version(manifest.version, directives)
    except MalformedVersionError as exc:
        raise MalformedVersionError(exc.version, exc.reason, manifest.name) from None
    manifest.version = new
    return new


def is_strict_semver(version_str: str) -> bool:
    """Whether npm will accept this version (strict SemVer 2.0)."""
    return semver.Version.is_valid(version_str)
