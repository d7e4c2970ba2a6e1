"""Dependency handling utilities.

Rewrites cross-package dependency constraints to point at freshly bumped
versions, and converts between PEP 508 dependency strings and the
name → constraint map kept on each manifest.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping

from packaging.requirements import Requirement
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name

from .models import PackageManifest


def rewrite_dependencies(
    manifests: MutableMapping[str, PackageManifest],
    publish_set: Iterable[str],
    versions: Mapping[str, str],
) -> list[str]:
    """Point dependency constraints at the new versions, modifying in place.

    For each package in the publish set, any dependency with an entry in
    ``versions`` has its constraint replaced by that version verbatim.
    Dependencies without an entry are left alone.

    Args:
        manifests: Map of package name → PackageManifest (modified in place).
        publish_set: Names of the packages being published.
        versions: Map of package name → new version.

    Returns:
        Names of the packages whose dependencies changed.
    """
    updated: list[str] = []
    for name in publish_set:
        manifest = manifests.get(name)
        if manifest is None:
            continue
        changed = False
        for dep in manifest.dependencies:
            if dep in versions and manifest.dependencies[dep] != versions[dep]:
                manifest.dependencies[dep] = versions[dep]
                changed = True
        if changed:
            updated.append(name)
    return updated


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def dep_constraint(dep_str: str) -> str:
    """Extract the version specifier from a PEP 508 dependency string.

    Examples:
        "requests>=2.0,<3" → "<3,>=2.0"
        "requests" → ""
    """
    return str(Requirement(dep_str).specifier)


def apply_constraint(dep_str: str, constraint: str) -> str:
    """Replace the version part of a PEP 508 dependency string.

    A constraint that is already a specifier set is used as is; a bare
    version (as written by ``rewrite_dependencies``) becomes an exact pin.
    Extras and environment markers are preserved.

    Examples:
        apply_constraint("pkg>=1.0", "1.2.4") → "pkg==1.2.4"
        apply_constraint("pkg[b,a]", "~=2.0") → "pkg[a,b]~=2.0"
        apply_constraint('pkg; python_version<"3.12"', "1.0.0")
            → 'pkg==1.0.0; python_version < "3.12"'
    """
    req = Requirement(dep_str)
    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    try:
        specifier = str(SpecifierSet(constraint))
    except InvalidSpecifier:
        specifier = f"=={constraint}"
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}{specifier}{marker}"
