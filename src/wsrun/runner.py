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

"""Wires discovery, manifests, the graph, the scheduler and the executor.

Pipeline of a run::

    wsrun.toml + CLI flags ──▶ resolve_settings() ──▶ RunSettings
                                                          │
    packages dir ──▶ discover_manifests() ──▶ paths       │
                                                │         │
                          load_manifests() ◀────┘         │
                                 │                        │
                          exclude globs ◀─────────────────┤
                                 │                        │
                          WaveScheduler.from_manifests() ◀┘
                                 │
                          run(execute) ──▶ RunResult | DeadlockError

Every manifest is parsed before the first wave starts, so a malformed
manifest aborts the run before any command runs.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from wsrun._types import RunResult, WorkItem
from wsrun.config import RunConfig
from wsrun.dispatcher import default_concurrency
from wsrun.errors import E, WsRunError
from wsrun.executor import CommandResult, execute
from wsrun.graph import Exemption, build_graph, parse_exemption, plan_waves
from wsrun.logging import get_logger, run_context
from wsrun.manifest import PackageManifest, load_manifests
from wsrun.observer import RunObserver
from wsrun.scheduler import WaveScheduler
from wsrun.workspace import discover_manifests

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunSettings:
    """Effective settings of a run, after merging config and CLI flags.

    Attributes:
        root: Workspace root.
        packages_dir: Absolute packages directory.
        exemption: Dependency-ordering exemption.
        concurrency: Maximum number of commands in flight.
        timeout: Per-command timeout in seconds, or ``None``.
        exclude: Package-name globs removed from the run.
        env: Extra environment variables for every command.
    """

    root: Path
    packages_dir: Path
    exemption: Exemption
    concurrency: int
    timeout: float | None = None
    exclude: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)


def resolve_settings(
    root: Path,
    config: RunConfig,
    *,
    packages: str | None = None,
    uncheck: bool | str | None = None,
    concurrency: int | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> RunSettings:
    """Merge ``config`` with CLI overrides; a non-``None`` flag wins.

    ``env`` entries are layered over the config file's ``env`` table.

    Raises:
        WsRunError: If an overriding concurrency or timeout is out of range.
    """
    if concurrency is not None and concurrency < 1:
        raise WsRunError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'--concurrency must be at least 1, got {concurrency}',
        )
    if timeout is not None and timeout <= 0:
        raise WsRunError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'--timeout must be greater than 0, got {timeout}',
        )

    root = root.resolve()
    packages_dir = Path(packages if packages is not None else config.packages)
    if not packages_dir.is_absolute():
        packages_dir = (root / packages_dir).resolve()

    effective_concurrency = concurrency or config.concurrency or default_concurrency()
    settings = RunSettings(
        root=root,
        packages_dir=packages_dir,
        exemption=parse_exemption(uncheck if uncheck is not None else config.uncheck),
        concurrency=effective_concurrency,
        timeout=timeout if timeout is not None else config.timeout,
        exclude=tuple(config.exclude),
        env={**config.env, **(env or {})},
    )
    logger.debug(
        'resolved_settings',
        root=str(settings.root),
        packages_dir=str(settings.packages_dir),
        concurrency=settings.concurrency,
        timeout=settings.timeout,
        exempt_all=settings.exemption.all,
        exempt=sorted(settings.exemption.names),
        env=sorted(settings.env),
    )
    return settings


def filter_excluded(manifests: Sequence[PackageManifest], patterns: Sequence[str]) -> list[PackageManifest]:
    """Drop manifests whose package name matches any glob in ``patterns``."""
    if not patterns:
        return list(manifests)
    kept = []
    for manifest in manifests:
        if any(fnmatch.fnmatch(manifest.name, pattern) for pattern in patterns):
            logger.debug('package_excluded', package=manifest.name)
            continue
        kept.append(manifest)
    return kept


async def load_workspace(packages_dir: Path, exclude: Sequence[str] = ()) -> list[PackageManifest]:
    """Discover and parse every manifest under ``packages_dir``.

    Raises:
        WsRunError: If the directory is missing, holds no manifests, or a
            manifest cannot be parsed.
    """
    paths = discover_manifests(packages_dir)
    manifests = await load_manifests(paths)
    return filter_excluded(manifests, exclude)


def plan(manifests: Sequence[PackageManifest], exemption: Exemption | None = None) -> list[list[str]]:
    """Wave partition of ``manifests`` without running anything.

    Raises:
        DeadlockError: If some packages can never become ready.
        WsRunError: If two manifests share a package name.
    """
    graph = build_graph(manifests, exemption)
    return plan_waves(graph, [m.name for m in manifests])


def _coerce_exemption(uncheck: Exemption | bool | str | None) -> Exemption:
    if isinstance(uncheck, Exemption):
        return uncheck
    return parse_exemption(uncheck)


async def run_package_command(
    manifest_paths: Sequence[Path],
    command: str,
    args: Sequence[str] = (),
    *,
    uncheck: Exemption | bool | str | None = None,
    concurrency: int | None = None,
    timeout: float | None = None,
    dry_run: bool = False,
    exclude: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
    observer: RunObserver | None = None,
) -> RunResult:
    """Run ``command args...`` in the directory of every manifest.

    Args:
        manifest_paths: Absolute manifest paths; the run's universe.
        command: Program or shell command to run.
        args: Extra arguments appended to the command line.
        uncheck: Exemption value: ``True``/``"*"`` disables ordering, a
            comma-separated string exempts those names.
        concurrency: Maximum commands in flight; derived from the CPU
            count when ``None``.
        timeout: Per-command timeout in seconds.
        dry_run: Log the commands without executing them.
        exclude: Package-name globs removed from the universe.
        env: Extra environment variables, merged over the current
            environment of every command.
        observer: Progress observer.

    Returns:
        The drained :class:`RunResult`; check ``result.ok``.

    Raises:
        DeadlockError: If the dependency graph cannot be fully scheduled.
        WsRunError: On a malformed manifest or duplicate package names.
    """
    observer = observer or RunObserver()
    manifests = filter_excluded(await load_manifests(manifest_paths), exclude)
    scheduler = WaveScheduler.from_manifests(
        manifests,
        _coerce_exemption(uncheck),
        concurrency=concurrency,
        observer=observer,
    )

    extra_env = dict(env) if env else None

    async def run_one(item: WorkItem) -> CommandResult:
        return await execute(command, args, cwd=item.directory, env=extra_env, timeout=timeout, dry_run=dry_run)

    with run_context(' '.join([command, *args]), dry_run=dry_run):
        logger.info(
            'run_start',
            packages=len(scheduler.items),
            concurrency=scheduler.concurrency,
        )
        observer.on_run_start(command, args, len(scheduler.items), scheduler.concurrency)
        return await scheduler.run(run_one)


__all__ = [
    'RunSettings',
    'filter_excluded',
    'load_workspace',
    'plan',
    'resolve_settings',
    'run_package_command',
]
