# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Dependency graph for ordering package commands.

Builds, from the manifests of a run, the set of *unresolved* in-workspace
dependencies of each package. The scheduler consumes the graph round by
round: packages with an empty set are ready, and retiring a package
strikes it from the sets of its dependents.

Key Concepts::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ Meaning                                     │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Blockers                │ For each package, the in-workspace deps it  │
    │                         │ still waits for. Empty set = ready.         │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Dependents              │ Reverse edges. Retiring a package only      │
    │                         │ touches the packages that wait for it.      │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Exemption               │ ``*`` turns ordering off; a name list makes │
    │                         │ nobody wait for those packages.             │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Deadlock                │ Packages remain, none is ready. Fatal.      │
    └─────────────────────────┴─────────────────────────────────────────────┘

Edge Direction::

    core ──→ plugin-a          blockers['plugin-a'] = {'core'}
      └────→ plugin-b          dependents['core']   = {'plugin-a', 'plugin-b'}

    The dependency (core) finishes before its dependents start.

Waves::

    Wave 0: [core, utils]     (no unresolved deps)
    Wave 1: [plugin-a]        (deps all in wave 0)
    Wave 2: [sample-app]      (deps in waves 0 and 1)

Usage::

    from wsrun.graph import build_graph, parse_exemption, plan_waves

    graph = build_graph(manifests, parse_exemption('legacy-pkg'))
    for index, wave in enumerate(plan_waves(graph, [m.name for m in manifests])):
        print(index, wave)
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from wsrun.errors import E, WsRunError
from wsrun.logging import get_logger
from wsrun.manifest import PackageManifest

logger = get_logger(__name__)

EXEMPT_ALL = '*'


@dataclass(frozen=True)
class Exemption:
    """Which packages are exempt from dependency ordering.

    Attributes:
        all: Ordering is disabled entirely; everything runs in one wave.
        names: Packages nobody waits for. Ignored when ``all`` is set.
    """

    all: bool = False
    names: frozenset[str] = field(default_factory=frozenset)

    def __contains__(self, name: object) -> bool:
        """Return True if ``name`` is exempt."""
        return self.all or name in self.names


def parse_exemption(value: bool | str | None) -> Exemption:
    """Parse an ``--uncheck`` / ``uncheck =`` value.

    ``True`` and ``"*"`` exempt everything, a comma-separated string
    exempts the listed names, and ``None``/``False``/``""`` exempt
    nothing.
    """
    if value is True:
        return Exemption(all=True)
    if not value:
        return Exemption()
    if value.strip() == EXEMPT_ALL:
        return Exemption(all=True)
    names = frozenset(part.strip() for part in value.split(',') if part.strip())
    return Exemption(names=names)


class DeadlockError(WsRunError):
    """No package is ready while packages remain.

    Attributes:
        residual: Names of the packages that could not be scheduled.
        blockers: Their unresolved dependency sets at the time of the
            deadlock.
    """

    def __init__(self, residual: Sequence[str], blockers: dict[str, set[str]]) -> None:
        """Initialize from the residual names and their blocker sets."""
        self.residual = sorted(residual)
        self.blockers = {name: set(blockers.get(name, set())) for name in self.residual}
        detail = '; '.join(f'{name} <- {sorted(deps)}' for name, deps in self.blockers.items())
        super().__init__(
            code=E.GRAPH_DEADLOCK,
            message=f'Deadlock found for packages: {", ".join(self.residual)} ({detail})',
            hint='Break the dependency cycle, or exempt one of these packages with --uncheck NAME.',
        )


@dataclass
class DependencyGraph:
    """Unresolved in-workspace dependencies of every package in a run.

    Attributes:
        blockers: Package name → names it still waits for.
        dependents: Package name → names waiting for it.
    """

    blockers: dict[str, set[str]] = field(default_factory=dict)
    dependents: dict[str, set[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        """Return the number of packages not yet retired."""
        return len(self.blockers)

    def __contains__(self, name: object) -> bool:
        """Return True if ``name`` has not been retired."""
        return name in self.blockers

    def is_ready(self, name: str) -> bool:
        """Return True if ``name`` is present and has no unresolved deps."""
        return name in self.blockers and not self.blockers[name]

    def ready(self) -> list[str]:
        """Sorted names of all ready packages."""
        return sorted(name for name, deps in self.blockers.items() if not deps)

    def retire(self, name: str) -> None:
        """Remove ``name`` and strike it from its dependents' blockers."""
        self.blockers.pop(name, None)
        for dependent in self.dependents.pop(name, set()):
            deps = self.blockers.get(dependent)
            if deps is not None:
                deps.discard(name)

    def copy(self) -> DependencyGraph:
        """Deep copy, for dry computations that must not consume the graph."""
        return copy.deepcopy(self)


def _check_unique(manifests: Iterable[PackageManifest]) -> None:
    seen: dict[str, PackageManifest] = {}
    for manifest in manifests:
        previous = seen.get(manifest.name)
        if previous is not None:
            raise WsRunError(
                code=E.WORKSPACE_DUPLICATE_PACKAGE,
                message=f"Duplicate package name '{manifest.name}' in {previous.path} and {manifest.path}",
                hint='Each package in the workspace must have a unique name.',
            )
        seen[manifest.name] = manifest


def build_graph(manifests: Sequence[PackageManifest], exemption: Exemption | None = None) -> DependencyGraph | None:
    """Build the dependency graph for a run.

    A package P blocks a package Q when Q lists P's name under
    ``"dependencies"``, P is part of ``manifests``, and P is not exempt.
    Dependencies outside ``manifests`` are ignored, as is a package
    listing itself.

    Args:
        manifests: The run's package universe.
        exemption: Exemption; ``None`` means full checking.

    Returns:
        The graph, or ``None`` when every package is exempt (ordering is
        disabled and the caller runs one unordered wave).

    Raises:
        WsRunError: If two manifests share a package name.
    """
    exemption = exemption or Exemption()
    _check_unique(manifests)
    if exemption.all:
        logger.info('dependency_check_disabled', packages=len(manifests))
        return None

    universe = {m.name for m in manifests}
    graph = DependencyGraph()
    for manifest in manifests:
        graph.blockers[manifest.name] = set()
        graph.dependents[manifest.name] = set()

    for manifest in manifests:
        for dep in manifest.dependencies:
            if dep == manifest.name or dep not in universe or dep in exemption:
                continue
            graph.blockers[manifest.name].add(dep)
            graph.dependents[dep].add(manifest.name)

    logger.debug(
        'built_dependency_graph',
        packages=len(graph),
        edges=sum(len(deps) for deps in graph.blockers.values()),
        exempt=sorted(exemption.names),
    )
    return graph


def plan_waves(graph: DependencyGraph | None, names: Sequence[str]) -> list[list[str]]:
    """Compute the wave partition of ``names`` without running anything.

    Runs the scheduler's frontier/retire loop on a copy of ``graph``.

    Args:
        graph: Graph from :func:`build_graph`, or ``None`` for exempt-all.
        names: Package names of the run.

    Returns:
        Waves in execution order, each sorted by name.

    Raises:
        DeadlockError: If some packages can never become ready.
    """
    if graph is None:
        return [sorted(names)] if names else []

    work = graph.copy()
    remaining = set(names)
    waves: list[list[str]] = []
    while remaining:
        frontier = sorted(name for name in remaining if work.is_ready(name))
        if not frontier:
            raise DeadlockError(sorted(remaining), work.blockers)
        waves.append(frontier)
        for name in frontier:
            work.retire(name)
        remaining.difference_update(frontier)
    return waves


__all__ = [
    'EXEMPT_ALL',
    'DeadlockError',
    'DependencyGraph',
    'Exemption',
    'build_graph',
    'parse_exemption',
    'plan_waves',
]
