"""Data models for mpublish.

These Pydantic models represent the core data structures used throughout
the release pipeline.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PackageManifest(BaseModel):
    """Metadata for a single package in the monorepo.

    Attributes:
        name: Package name as declared in its manifest.
        version: Current version string.
        dependencies: Map of dependency name → version constraint string.
                      Includes external packages; only names that are also
                      packages in the workspace take part in resolution.
        directory: Path of the package directory. Only the manifest reader,
                   writer and process runner look at it.
        manifest_file: Name of the manifest file inside ``directory``
                       (``package.json`` or ``pyproject.toml``).
    """

    name: str
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)
    directory: str = "."
    manifest_file: str = "package.json"


class BumpDirectives(BaseModel):
    """How versions are advanced for this run.

    Attributes:
        major: Replace the major version with this value.
        minor: Replace the minor version with this value (resets patch to 0).
        tag: Prerelease tag appended as ``-tag``; replaces any existing tag.
        notag: Drop an existing tag instead of carrying it forward.
    """

    model_config = ConfigDict(frozen=True)

    major: str | None = None
    minor: str | None = None
    tag: str | None = None
    notag: bool = False


class VersionBump(BaseModel):
    """Records a version change for a package.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str


class PublishAction(str, Enum):
    PUBLISH = "publish"
    SKIP = "skip"


class PublishStep(BaseModel):
    """One package's slot in the publish order."""

    name: str
    version: str
    action: PublishAction


class ReleasePlan(BaseModel):
    """Everything computed for a run before any external step executes.

    Attributes:
        order: Package names in publish order (dependencies first).
        versions: Map of package name → resulting version.
        bumps: Old/new pairs for packages whose version was bumped.
        steps: One step per entry in ``order``.
        malformed: Packages dropped because their version could not be
                   bumped, mapped to the reason.
        unknown_targets: Requested targets with no manifest.
    """

    order: list[str] = Field(default_factory=list)
    versions: dict[str, str] = Field(default_factory=dict)
    bumps: dict[str, VersionBump] = Field(default_factory=dict)
    steps: list[PublishStep] = Field(default_factory=list)
    malformed: dict[str, str] = Field(default_factory=dict)
    unknown_targets: list[str] = Field(default_factory=list)


class ReleaseConfig(BaseModel):
    """Defaults read from ``[tool.mpublish]`` in pyproject.toml."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = "./packages"
    tag: str | None = None
    notag: bool = False
    verbose: bool = False
    write: bool = True
