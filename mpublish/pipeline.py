"""Release pipeline: discover → resolve → bump → rewrite → sort → publish.

This module orchestrates the mpublish release process:
1. Discover all packages under the packages directory
2. Resolve the publish set: the targets plus everything depending on them
3. Bump the version of every package in the set
4. Point dependency constraints inside the set at the new versions
5. Sort the set so dependencies are published before their dependents
6. Save the updated manifests
7. Install and publish each package, one at a time, in that order

Steps 2-5 are pure: ``plan_release`` computes a ``ReleasePlan`` from
in-memory manifests, and ``execute_plan`` carries it out.
"""

from __future__ import annotations

import threading
import warnings
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from pathlib import Path
from subprocess import CompletedProcess

from .deps import rewrite_dependencies
from .errors import (
    ExternalStepError,
    MalformedVersionError,
    NothingToDo,
    ReleaseCancelled,
    UnknownTargetWarning,
)
from .graph import find_unknown_targets, resolve_publish_set, topo_sort
from .manifests import PACKAGE_JSON, discover_packages, publish_commands, save_manifest
from .models import (
    BumpDirectives,
    PackageManifest,
    PublishAction,
    PublishStep,
    ReleasePlan,
    VersionBump,
)
from .shell import run, step, warn
from .versions import apply_bump, is_strict_semver

Runner = Callable[..., CompletedProcess]


def bump_versions(
    manifests: MutableMapping[str, PackageManifest],
    publish_set: Sequence[str],
    directives: BumpDirectives,
) -> tuple[dict[str, VersionBump], dict[str, str]]:
    """Bump every package in the publish set, modifying manifests in place.

    Names without a manifest are ignored. A malformed version leaves its
    manifest untouched.

    Returns:
        Tuple of (bumps for packages that got a new version,
        malformed package name → reason).
    """
    bumps: dict[str, VersionBump] = {}
    malformed: dict[str, str] = {}
    for name in publish_set:
        manifest = manifests.get(name)
        if manifest is None:
            continue
        old = manifest.version
        try:
            new = apply_bump(manifest, directives)
        except MalformedVersionError as exc:
            malformed[name] = str(exc)
            continue
        bumps[name] = VersionBump(old=old, new=new)
    return bumps, malformed


def plan_release(
    manifests: MutableMapping[str, PackageManifest],
    targets: Sequence[str],
    directives: BumpDirectives,
    *,
    write: bool = True,
    dry_run: bool = False,
) -> ReleasePlan:
    """Work out what to publish, at which versions, in which order.

    With ``write`` set, the publish set is resolved from the targets, each
    member is bumped and dependency constraints inside the set are pointed
    at the new versions; manifests are modified in place. Without it every
    known package is listed at its current version.

    Packages whose version cannot be bumped are left out of the set and
    reported in ``plan.malformed``. Targets with no manifest emit an
    ``UnknownTargetWarning`` and are reported in ``plan.unknown_targets``.

    Raises:
        NothingToDo: If no targets were given.
        CycleError: If packages in the set depend on each other in a loop.
    """
    if not targets:
        raise NothingToDo()

    plan = ReleasePlan()
    if write:
        plan.unknown_targets = find_unknown_targets(manifests, targets)
        for name in plan.unknown_targets:
            warnings.warn(
                f"{name} is not a package in this workspace", UnknownTargetWarning
            )

        publish_set = resolve_publish_set(manifests, targets)
        plan.bumps, plan.malformed = bump_versions(manifests, publish_set, directives)
        plan.versions = {name: bump.new for name, bump in plan.bumps.items()}
        rewrite_dependencies(manifests, plan.bumps, plan.versions)
        publish_set = list(plan.bumps)
    else:
        publish_set = list(manifests)
        plan.versions = {name: m.version for name, m in manifests.items()}

    plan.order = topo_sort(publish_set, manifests)
    action = PublishAction.SKIP if dry_run else PublishAction.PUBLISH
    plan.steps = [
        PublishStep(name=name, version=plan.versions[name], action=action)
        for name in plan.order
    ]
    return plan


def execute_plan(
    plan: ReleasePlan,
    manifests: Mapping[str, PackageManifest],
    *,
    runner: Runner | None = None,
    cancel: threading.Event | None = None,
    verbose: bool = False,
) -> list[str]:
    """Install and publish each package in plan order, one at a time.

    Skipped steps are reported but nothing is run for them. The cancel
    event is checked before each package; a package already started is
    always finished.

    Args:
        runner: Runs one command; defaults to ``shell.run``.

    Returns:
        Names of the packages that were published.

    Raises:
        ReleaseCancelled: If cancel was set before a package started.
        ExternalStepError: On the first failing command, or one that could
            not be started (returncode -1). Packages published before it
            stay published; nothing after it is attempted.
    """
    runner = runner or run
    published: list[str] = []
    for publish_step in plan.steps:
        if cancel is not None and cancel.is_set():
            raise ReleaseCancelled(published)

        manifest = manifests[publish_step.name]
        print(f"\n  {publish_step.name} {publish_step.version} ({manifest.directory})")
        if publish_step.action is PublishAction.SKIP:
            for command in publish_commands(manifest):
                print(f"    skipped (dry run): {' '.join(command)}")
            continue

        for command in publish_commands(manifest):
            if verbose:
                print(f"    {manifest.directory}$ {' '.join(command)}")
            try:
                result = runner(*command, cwd=manifest.directory)
            except OSError as exc:
                raise ExternalStepError(
                    publish_step.name, command, -1, published
                ) from exc
            if result.returncode != 0:
                raise ExternalStepError(
                    publish_step.name, command, result.returncode, published
                )
        published.append(publish_step.name)

    return published


def report_plan(
    plan: ReleasePlan, manifests: Mapping[str, PackageManifest], verbose: bool
) -> None:
    """Print version changes and any problems found while planning."""
    for name in plan.unknown_targets:
        warn(f"{name} is not a package in this workspace; nothing to publish")
    for reason in plan.malformed.values():
        warn(f"{reason}; package left out of this release")

    if not plan.bumps:
        return

    step("Bumping versions")
    for name, bump in plan.bumps.items():
        print(f"  {name}: {bump.old} → {bump.new}")
        manifest = manifests[name]
        if manifest.manifest_file == PACKAGE_JSON and not is_strict_semver(bump.new):
            warn(f"{name} {bump.new} is not a valid semver version; npm may reject it")
        if verbose and manifest.dependencies:
            for dep, constraint in manifest.dependencies.items():
                print(f"      {dep}: {constraint}")


def write_manifests(
    plan: ReleasePlan, manifests: Mapping[str, PackageManifest]
) -> None:
    """Save the updated manifest of every bumped package."""
    step("Saving manifests")
    for name in plan.bumps:
        save_manifest(manifests[name], plan.versions)
        print(f"  {manifests[name].directory}/{manifests[name].manifest_file}")


def display_results(versions: Mapping[str, str], published: Sequence[str]) -> None:
    """Print the final version of every package that was handled."""
    step(f"Published {len(published)} packages")
    for name in published:
        print(f"  {name} => {versions[name]}")


def run_release(
    root: Path,
    targets: Sequence[str],
    directives: BumpDirectives,
    *,
    write: bool = True,
    dry_run: bool = False,
    verbose: bool = False,
    cancel: threading.Event | None = None,
) -> ReleasePlan:
    """Execute the full release pipeline.

    Args:
        root: Directory whose subdirectories are the packages.
        targets: Package names to publish, or ``["all"]``.
        directives: How to bump versions.
        write: Bump versions and save manifests. When False (and not a dry
               run) every package is published at its current version.
        dry_run: Compute and report everything but run no commands.
                 Versions are still bumped in memory.
        verbose: Echo commands and updated dependency tables.
        cancel: Set to stop before the next package is published.

    Raises:
        ReleaseError: See ``plan_release`` and ``execute_plan``.
    """
    step("Discovering packages")
    manifests = discover_packages(root)
    for name, manifest in manifests.items():
        deps = [d for d in manifest.dependencies if d in manifests]
        dep_list = f" → [{', '.join(deps)}]" if deps else ""
        print(f"  {name} {manifest.version} ({manifest.directory}){dep_list}")

    step("Resolving publish order")
    with warnings.catch_warnings():
        # Unknown targets are reported by report_plan
        warnings.simplefilter("ignore", UnknownTargetWarning)
        plan = plan_release(
            manifests, targets, directives, write=write or dry_run, dry_run=dry_run
        )
    print(f"  {' → '.join(plan.order) or '<nothing to publish>'}")

    report_plan(plan, manifests, verbose)
    if write and plan.bumps:
        write_manifests(plan, manifests)

    step(f"Publishing {len(plan.steps)} packages")
    published = execute_plan(plan, manifests, cancel=cancel, verbose=verbose)
    handled = [s.name for s in plan.steps] if dry_run else published
    display_results(plan.versions, handled)
    return plan
