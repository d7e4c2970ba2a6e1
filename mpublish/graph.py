"""Dependency graph utilities.

Two walks over the package graph:

- ``resolve_publish_set`` follows "is a dependent of" edges outward from
  the requested targets, so that anything built against a republished
  package is republished too.
- ``topo_sort`` orders the resulting set so that when package A depends on
  package B, B is published first.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from .errors import CycleError
from .models import PackageManifest

ALL = "all"


def is_all(targets: Sequence[str]) -> bool:
    """True if the targets ask for every package."""
    return len(targets) == 1 and targets[0] == ALL


def find_unknown_targets(
    manifests: Mapping[str, PackageManifest], targets: Sequence[str]
) -> list[str]:
    """Targets that have no manifest in the workspace."""
    if is_all(targets):
        return []
    return [t for t in dict.fromkeys(targets) if t not in manifests]


def resolve_publish_set(
    manifests: Mapping[str, PackageManifest], targets: Sequence[str]
) -> list[str]:
    """Collect the targets plus every package that transitively depends on one.

    Uses a BFS over reverse dependencies. Each package enters the queue at
    most once, so the walk terminates even when the graph has cycles.

    Args:
        manifests: Map of package name → PackageManifest.
        targets: Package names to publish, or ``["all"]``.

    Returns:
        Package names to publish: the targets first, then dependents in
        the order they were found. Targets without a manifest are kept
        but pull in nothing.

    Example:
        If B depends on A, and C depends on B:
        resolve_publish_set({A, B, C}, [A]) → [A, B, C]
    """
    if is_all(targets):
        return list(manifests)

    to_publish: dict[str, None] = dict.fromkeys(targets)
    queue = deque(to_publish)

    while queue:
        name = queue.popleft()
        for candidate, manifest in manifests.items():
            if candidate in to_publish:
                continue
            if name in manifest.dependencies:
                to_publish[candidate] = None
                queue.append(candidate)

    return list(to_publish)


def shallow_dependencies(
    publish_set: Iterable[str], manifests: Mapping[str, PackageManifest]
) -> dict[str, list[str]]:
    """Map each package to the dependencies it has inside the publish set.

    Dependencies outside the set (external packages or packages not being
    published this run) are already available and play no part in ordering.
    """
    members = list(dict.fromkeys(publish_set))
    in_set = set(members)
    shallow: dict[str, list[str]] = {}
    for name in members:
        manifest = manifests.get(name)
        deps = manifest.dependencies if manifest else {}
        shallow[name] = [d for d in deps if d in in_set]
    return shallow


def topo_sort(
    publish_set: Sequence[str], manifests: Mapping[str, PackageManifest]
) -> list[str]:
    """Topologically sort the publish set by its intra-set dependencies.

    Uses Kahn's algorithm. The ready queue is seeded in publish-set order
    and is FIFO, so independent packages keep their relative input order.

    Args:
        publish_set: Package names to order.
        manifests: Map of package name → PackageManifest.

    Returns:
        Package names in publish order (dependencies first).

    Raises:
        CycleError: If the packages depend on each other in a loop. The
            error names every package that could not be ordered.

    Example:
        If A depends on B, and B depends on C:
        topo_sort([A, B, C]) → [C, B, A]
    """
    shallow = shallow_dependencies(publish_set, manifests)

    # Count unpublished dependencies per package
    in_degree = {name: len(deps) for name, deps in shallow.items()}
    # Track reverse dependencies (who is waiting on each package)
    dependents: dict[str, list[str]] = {name: [] for name in shallow}
    for name, deps in shallow.items():
        for dep in deps:
            dependents[dep].append(name)

    queue = deque(name for name in shallow if in_degree[name] == 0)
    order: list[str] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for dependent in dependents[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    # Anything left never reached in-degree 0
    if len(order) != len(shallow):
        raise CycleError(n for n in shallow if in_degree[n] > 0)

    return order
