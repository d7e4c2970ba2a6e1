"""Reading and writing package manifests.

Two manifest formats are understood:

- ``package.json`` (npm): ``name``, ``version`` and the ``dependencies``
  object, whose values are the constraint strings.
- ``pyproject.toml`` (PEP 621): ``[project]`` name and version, with
  dependencies gathered from every dependency list and keyed by canonical
  name.

Only the version and dependency constraints are ever written back; all
other content of the file is preserved.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from packaging.requirements import InvalidRequirement
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError

from .deps import apply_constraint, dep_canonical_name, dep_constraint
from .errors import ManifestError
from .models import PackageManifest
from .shell import warn
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    load_pyproject,
    save_pyproject,
)

PACKAGE_JSON = "package.json"
PYPROJECT = "pyproject.toml"

# Checked in order; the first file found in a directory wins
MANIFEST_FILES = (PACKAGE_JSON, PYPROJECT)

# Install step, then publish step, run inside the package directory
COMMANDS: dict[str, tuple[tuple[str, ...], ...]] = {
    PACKAGE_JSON: (("npm", "install"), ("npm", "publish")),
    PYPROJECT: (("uv", "build", "--out-dir", "dist"), ("uv", "publish")),
}


def find_manifest_file(directory: Path) -> str | None:
    """Name of the manifest file in a directory, or None if it has none."""
    for filename in MANIFEST_FILES:
        if (directory / filename).is_file():
            return filename
    return None


def read_json_file(path: Path) -> dict[str, Any]:
    """Read a JSON object from disk, ignoring a UTF-8 byte order mark."""
    try:
        content = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, ValueError) as exc:
        raise ManifestError(str(path), f"unable to load JSON: {exc}") from exc
    if not isinstance(content, dict):
        raise ManifestError(str(path), "expected a JSON object")
    return content


def write_json_file(path: Path, content: Mapping[str, Any]) -> None:
    """Write a JSON object with two-space indentation."""
    text = json.dumps(content, indent=2, ensure_ascii=False)
    path.write_text(text + "\n", encoding="utf-8")


def _load_package_json(directory: Path) -> PackageManifest:
    path = directory / PACKAGE_JSON
    content = read_json_file(path)

    name = content.get("name")
    if not name:
        raise ManifestError(str(path), "missing package name")

    dependencies = content.get("dependencies") or {}
    return PackageManifest(
        name=name,
        version=str(content.get("version", "")),
        dependencies={dep: str(spec) for dep, spec in dependencies.items()},
        directory=str(directory),
        manifest_file=PACKAGE_JSON,
    )


def _load_pyproject(directory: Path) -> PackageManifest:
    path = directory / PYPROJECT
    try:
        doc = load_pyproject(path)
    except (OSError, ParseError) as exc:
        raise ManifestError(str(path), f"unable to load TOML: {exc}") from exc

    dependencies: dict[str, str] = {}
    for dep_str in get_all_dependency_strings(doc):
        try:
            name = dep_canonical_name(dep_str)
        except InvalidRequirement as exc:
            raise ManifestError(
                str(path), f"bad dependency {dep_str!r}: {exc}"
            ) from exc
        # First occurrence wins when a dep appears in several groups
        dependencies.setdefault(name, dep_constraint(dep_str))

    return PackageManifest(
        name=get_project_name(doc, directory.name),
        version=get_project_version(doc),
        dependencies=dependencies,
        directory=str(directory),
        manifest_file=PYPROJECT,
    )


def load_manifest(directory: Path) -> PackageManifest:
    """Load the manifest found in a package directory.

    Raises:
        ManifestError: If there is no manifest or it cannot be parsed.
    """
    filename = find_manifest_file(directory)
    if filename == PACKAGE_JSON:
        return _load_package_json(directory)
    if filename == PYPROJECT:
        return _load_pyproject(directory)
    raise ManifestError(str(directory), "no package.json or pyproject.toml")


def discover_packages(root: Path) -> dict[str, PackageManifest]:
    """Scan the immediate subdirectories of root for packages.

    Directories without a manifest are ignored. Manifests that cannot be
    read are skipped with a warning so one broken package does not block
    releasing the others.

    Returns:
        Map of package name to PackageManifest, in directory order.

    Raises:
        ManifestError: If root is not a directory.
    """
    if not root.is_dir():
        raise ManifestError(str(root), "packages directory not found")

    packages: dict[str, PackageManifest] = {}
    for directory in sorted(p for p in root.iterdir() if p.is_dir()):
        if find_manifest_file(directory) is None:
            continue
        try:
            manifest = load_manifest(directory)
        except ManifestError as exc:
            warn(f"skipping {exc}")
            continue
        if manifest.name in packages:
            warn(
                f"skipping {directory}: {manifest.name} already defined in "
                f"{packages[manifest.name].directory}"
            )
            continue
        packages[manifest.name] = manifest

    return packages


def _save_package_json(manifest: PackageManifest, versions: Mapping[str, str]) -> None:
    path = Path(manifest.directory) / PACKAGE_JSON
    content = read_json_file(path)
    content["version"] = manifest.version
    deps = content.get("dependencies")
    if isinstance(deps, dict):
        for name in deps:
            if name in versions:
                deps[name] = versions[name]
    write_json_file(path, content)


def _rewrite_dep_list(deps: list, versions: Mapping[str, str]) -> None:
    """Pin the entries naming a bumped package, in place.

    Each entry is handled on its own, so a package listed twice with
    different specifiers keeps both unless it was bumped.
    """
    for i, dep_str in enumerate(deps):
        if not isinstance(dep_str, str):
            continue
        name = dep_canonical_name(dep_str)
        if name in versions and versions[name] != dep_constraint(dep_str):
            deps[i] = apply_constraint(dep_str, versions[name])


def _save_pyproject(manifest: PackageManifest, versions: Mapping[str, str]) -> None:
    path = Path(manifest.directory) / PYPROJECT
    doc = load_pyproject(path)
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc["project"])
    project["version"] = manifest.version
    bumped = {canonicalize_name(name): version for name, version in versions.items()}

    deps = project.get("dependencies")
    if isinstance(deps, list):
        _rewrite_dep_list(deps, bumped)

    opt_deps = project.get("optional-dependencies")
    if isinstance(opt_deps, dict):
        for group in opt_deps.values():
            if isinstance(group, list):
                _rewrite_dep_list(group, bumped)

    dep_groups = doc.get("dependency-groups")
    if isinstance(dep_groups, dict):
        for group in dep_groups.values():
            if isinstance(group, list):
                _rewrite_dep_list(group, bumped)

    save_pyproject(path, doc)


def save_manifest(manifest: PackageManifest, versions: Mapping[str, str]) -> None:
    """Write a manifest's version back to disk, and re-pin every dependency
    on a package named in ``versions`` (the new version of each bumped
    package). Dependencies on anything else are left as written.
    """
    if manifest.manifest_file == PYPROJECT:
        _save_pyproject(manifest, versions)
    else:
        _save_package_json(manifest, versions)


def publish_commands(manifest: PackageManifest) -> tuple[tuple[str, ...], ...]:
    """The install and publish commands for a package, in run order."""
    return COMMANDS[manifest.manifest_file]
