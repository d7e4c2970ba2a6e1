"""pyproject.toml access for Python packages and for mpublish's own defaults.

Everything goes through tomlkit so that a version bump rewrites only the
strings it changes; comments, ordering and quoting survive a save.
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from packaging.utils import canonicalize_name
from pydantic import ValidationError
from tomlkit.exceptions import ParseError

from .errors import ConfigError
from .models import ReleaseConfig


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Parse a package's pyproject.toml into an editable document."""
    return tomlkit.parse(path.read_text(encoding="utf-8"))


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """The PEP 503 form of [project].name, or of ``fallback`` when unset.

    Dependency entries are matched against this form, so ``My_Lib`` in one
    manifest and ``my-lib`` in another name the same publishable package.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """[project].version as a string; "0.0.0" if the table has none."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Every PEP 508 requirement a package declares, in file order.

    Runtime dependencies come first, then each optional-dependencies extra,
    then each PEP 735 dependency group. ``{include-group = ...}`` entries
    are not requirements and are left out.
    """
    project = doc.get("project", {})
    deps: list[str] = [str(d) for d in project.get("dependencies", [])]
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(str(d) for d in group_deps)
    for group_deps in doc.get("dependency-groups", {}).values():
        deps.extend(str(d) for d in group_deps if isinstance(d, str))
    return deps


def get_tool_config(doc: tomlkit.TOMLDocument) -> dict:
    """Extract the [tool.mpublish] table as a plain dict (empty if absent)."""
    table = doc.get("tool", {}).get("mpublish", {})
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)


def load_config(root: Path) -> ReleaseConfig:
    """Read release defaults from ``root/pyproject.toml``.

    A missing file or a missing [tool.mpublish] table yields the defaults.

    Raises:
        ConfigError: If the table has unknown keys or values of the wrong type.
    """
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return ReleaseConfig()

    try:
        doc = load_pyproject(pyproject)
    except ParseError as exc:
        raise ConfigError(f"{pyproject}: {exc}") from exc

    try:
        return ReleaseConfig.model_validate(get_tool_config(doc))
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.mpublish] in {pyproject}:\n{exc}") from exc
