"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import tomlkit

from mpublish.models import PackageManifest


def _manifest(
    name: str, version: str = "1.0.0", deps: dict[str, str] | None = None
) -> PackageManifest:
    return PackageManifest(
        name=name,
        version=version,
        dependencies=dict(deps or {}),
        directory=f"packages/{name}",
    )


@pytest.fixture
def chain_manifests() -> dict[str, PackageManifest]:
    """c depends on b, b depends on a; d stands alone."""
    return {
        "a": _manifest("a", "1.0.0"),
        "b": _manifest("b", "2.1.3", {"a": "^1.0.0", "lodash": "^4.0.0"}),
        "c": _manifest("c", "0.4.9-beta", {"b": "^2.1.3"}),
        "d": _manifest("d", "3.0.0", {"lodash": "^4.0.0"}),
    }


@pytest.fixture
def diamond_manifests() -> dict[str, PackageManifest]:
    """Diamond: top depends on left and right, both depend on bottom."""
    return {
        "top": _manifest("top", deps={"left": "1.0.0", "right": "1.0.0"}),
        "left": _manifest("left", deps={"bottom": "1.0.0"}),
        "right": _manifest("right", deps={"bottom": "1.0.0"}),
        "bottom": _manifest("bottom"),
    }


@pytest.fixture
def npm_workspace(tmp_path: Path) -> Path:
    """A packages/ directory with three npm packages: app → lib → core."""
    root = tmp_path / "packages"
    specs = {
        "core": {"name": "core", "version": "1.0.0", "description": "core"},
        "lib": {
            "name": "lib",
            "version": "1.2.3-beta",
            "dependencies": {"core": "^1.0.0", "left-pad": "^1.3.0"},
        },
        "app": {
            "name": "app",
            "version": "0.1.0",
            "dependencies": {"lib": "^1.2.3-beta"},
        },
    }
    for dirname, content in specs.items():
        (root / dirname).mkdir(parents=True)
        (root / dirname / "package.json").write_text(json.dumps(content, indent=2))
    (root / "docs").mkdir()
    return root


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary package directory with a pyproject.toml file."""
    content = """\
[project]
name = "test_package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal[fast]>=0.5; python_version >= '3.10'"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1"]
"""
    package_dir = tmp_path / "test-package"
    package_dir.mkdir()
    pyproject = package_dir / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "dev"}]

[tool.mpublish]
path = "./libs"
tag = "next"
"""
    return tomlkit.parse(content)
