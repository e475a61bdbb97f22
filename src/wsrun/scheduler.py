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

"""Wave-barrier scheduler for package commands.

Each round takes every remaining package whose in-workspace dependencies
have all been retired (the *frontier*), runs it through the bounded
dispatcher, waits for the whole frontier to settle, and only then
retires it and computes the next frontier.

Key Concepts::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ Meaning                                     │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Frontier / wave         │ Remaining items with no unresolved deps.    │
    │                         │ Sorted by name, so runs are reproducible.   │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Barrier                 │ A wave fully settles before the next one    │
    │                         │ is computed. Nothing overlaps across waves. │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Best-effort             │ A failed item is still retired. Its         │
    │                         │ dependents run anyway.                      │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Deadlock                │ Items remain but the frontier is empty.     │
    │                         │ The run aborts with DeadlockError.          │
    └─────────────────────────┴─────────────────────────────────────────────┘

Round loop::

    remaining ──▶ frontier = ready(remaining)
                     │
                     ├── empty ──▶ DEADLOCKED (raise DeadlockError)
                     │
                     └── dispatch(frontier, N) ──▶ settle all
                                                      │
                              retire(frontier) ◀──────┘
                                     │
                                     └──▶ remaining -= frontier ──▶ loop

With ordering disabled (``graph is None``) the loop runs exactly one
round containing every item.

Usage::

    from wsrun.scheduler import WaveScheduler

    scheduler = WaveScheduler.from_manifests(manifests, exemption, concurrency=4)
    result = await scheduler.run(execute_fn)
    if not result.ok:
        ...
"""

from __future__ import annotations

from collections.abc import Sequence

from wsrun._types import ItemFailure, RunResult, WorkItem
from wsrun.dispatcher import ExecuteFn, default_concurrency, dispatch
from wsrun.graph import DeadlockError, DependencyGraph, Exemption, build_graph
from wsrun.logging import get_logger
from wsrun.manifest import PackageManifest
from wsrun.observer import ItemStage, RunObserver, SchedulerState

logger = get_logger(__name__)


class WaveScheduler:
    """Runs work items in dependency waves with bounded concurrency.

    A scheduler instance is single-use: :meth:`run` consumes its graph.

    Attributes:
        items: Items of the run, sorted by package name.
        graph: The dependency graph, or ``None`` when ordering is off.
        concurrency: Maximum number of items in flight.
    """

    def __init__(
        self,
        items: Sequence[WorkItem],
        graph: DependencyGraph | None,
        *,
        concurrency: int | None = None,
        observer: RunObserver | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            items: One item per package of the run.
            graph: Graph covering exactly the items' package names, or
                ``None`` to run everything in a single wave.
            concurrency: Maximum items in flight. Defaults to
                :func:`~wsrun.dispatcher.default_concurrency`.
            observer: Progress observer.
        """
        if concurrency is not None and concurrency < 1:
            msg = f'concurrency must be at least 1, got {concurrency}'
            raise ValueError(msg)
        self.items = sorted(items, key=lambda item: item.package_name)
        self.graph = graph
        self.concurrency = concurrency or default_concurrency()
        self._observer = observer or RunObserver()
        self._state = SchedulerState.RUNNING
        self._started = False

    @classmethod
    def from_manifests(
        cls,
        manifests: Sequence[PackageManifest],
        exemption: Exemption | None = None,
        *,
        concurrency: int | None = None,
        observer: RunObserver | None = None,
    ) -> WaveScheduler:
        """Build the items and graph of a run from its manifests.

        Raises:
            WsRunError: If two manifests share a package name.
        """
        graph = build_graph(manifests, exemption)
        items = [WorkItem(path=m.path, package_name=m.name) for m in manifests]
        return cls(items, graph, concurrency=concurrency, observer=observer)

    @property
    def state(self) -> SchedulerState:
        """Current lifecycle state."""
        return self._state

    def _set_state(self, state: SchedulerState) -> None:
        self._state = state
        self._observer.on_scheduler_state(state)

    def _frontier(self, remaining: list[WorkItem]) -> list[WorkItem]:
        if self.graph is None:
            return list(remaining)
        return [item for item in remaining if self.graph.is_ready(item.package_name)]

    async def run(self, execute: ExecuteFn) -> RunResult:
        """Run every item, wave by wave, until all have settled.

        Args:
            execute: Coroutine function running the command for one
                item. It should raise on failure.

        Returns:
            A :class:`RunResult` with every failure and the waves that
            were dispatched.

        Raises:
            DeadlockError: If items remain but none is ready. Waves
                dispatched before the deadlock have already run.
        """
        if self._started:
            msg = 'WaveScheduler.run() may only be called once'
            raise RuntimeError(msg)
        self._started = True

        result = RunResult()
        remaining = list(self.items)
        total = len(remaining)
        processed = 0

        logger.info(
            'scheduler_start',
            total=total,
            concurrency=self.concurrency,
            ordered=self.graph is not None,
        )
        self._set_state(SchedulerState.RUNNING)
        for item in remaining:
            self._observer.on_stage(item, ItemStage.WAITING)

        while remaining:
            frontier = self._frontier(remaining)
            if not frontier:
                assert self.graph is not None
                error = DeadlockError([item.package_name for item in remaining], self.graph.blockers)
                logger.error('scheduler_deadlock', packages=error.residual)
                self._set_state(SchedulerState.DEADLOCKED)
                self._observer.on_deadlock(error)
                raise error

            names = [item.package_name for item in frontier]
            wave = len(result.waves)
            result.waves.append(names)
            logger.info('wave_start', wave=wave, packages=names)
            self._observer.on_wave_start(wave, names)

            failures_before = len(result.failures)
            processed = await dispatch(
                frontier,
                execute,
                concurrency=self.concurrency,
                failures=result.failures,
                observer=self._observer,
                processed=processed,
                total=total,
            )
            logger.info(
                'wave_done',
                wave=wave,
                succeeded=len(frontier) - (len(result.failures) - failures_before),
                failed=len(result.failures) - failures_before,
            )

            # Failed items are retired too, so their dependents still run.
            if self.graph is not None:
                for name in names:
                    self.graph.retire(name)
            done = set(names)
            remaining = [item for item in remaining if item.package_name not in done]

        logger.info('scheduler_done', total=total, failed=len(result.failures), waves=len(result.waves))
        self._set_state(SchedulerState.DRAINED)
        self._observer.on_complete(result)
        return result


__all__ = [
    'ItemFailure',
    'RunResult',
    'WaveScheduler',
    'WorkItem',
]
