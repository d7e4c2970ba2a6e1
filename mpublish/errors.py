"""Exceptions raised by the release pipeline.

Library code raises these; only the CLI turns them into exit codes.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence


class ReleaseError(Exception):
    """Base class for every mpublish error."""


class NothingToDo(ReleaseError):
    """No targets were given."""

    def __init__(self) -> None:
        super().__init__("No packages to publish")


class ConfigError(ReleaseError):
    """The [tool.mpublish] table is invalid."""


class ManifestError(ReleaseError):
    """A manifest could not be read or is missing required fields."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class MalformedVersionError(ReleaseError):
    """A version string cannot be bumped.

    Raised when the version has fewer than three dot-separated segments or
    its patch segment is not an integer.
    """

    def __init__(self, version: str, reason: str, package: str | None = None) -> None:
        self.version = version
        self.reason = reason
        self.package = package
        where = f"{package}: " if package else ""
        super().__init__(f"{where}malformed version {version!r} ({reason})")


class CycleError(ReleaseError):
    """Packages in the publish set depend on each other in a loop."""

    def __init__(self, packages: Iterable[str]) -> None:
        self.packages = sorted(packages)
        super().__init__(
            f"Dependency cycle detected involving: {', '.join(self.packages)}"
        )


class ExternalStepError(ReleaseError):
    """An install or publish command failed.

    Attributes:
        package: The package whose step failed.
        command: The command that was run.
        returncode: Exit status of the command.
        published: Packages already published before the failure. They stay
                   published.
    """

    def __init__(
        self,
        package: str,
        command: Sequence[str],
        returncode: int,
        published: Sequence[str] = (),
    ) -> None:
        self.package = package
        self.command = list(command)
        self.returncode = returncode
        self.published = list(published)
        super().__init__(
            f"`{' '.join(self.command)}` failed for {package} (exit {returncode})"
        )


class ReleaseCancelled(ReleaseError):
    """The run was stopped between packages."""

    def __init__(self, published: Sequence[str] = ()) -> None:
        self.published = list(published)
        super().__init__(
            f"Release cancelled after {len(self.published)} published packages"
        )


class UnknownTargetWarning(UserWarning):
    """A requested target has no manifest in the workspace."""
