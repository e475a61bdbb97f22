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

"""Tests for wsrun.scheduler: the wave-barrier scheduler."""

from __future__ import annotations

import pytest
from wsrun.graph import DeadlockError, Exemption, parse_exemption
from wsrun.logging import configure_logging
from wsrun.manifest import PackageManifest
from wsrun.observer import SchedulerState
from wsrun.scheduler import RunResult, WaveScheduler

from tests._fakes import FakeExecutor, RecordingObserver, make_item, make_manifest

configure_logging(quiet=True)


def _scheduler(
    *manifests: PackageManifest,
    exemption: Exemption | None = None,
    concurrency: int = 2,
    observer: RecordingObserver | None = None,
) -> WaveScheduler:
    """Build a scheduler from in-memory manifests."""
    return WaveScheduler.from_manifests(list(manifests), exemption, concurrency=concurrency, observer=observer)


class TestRunResult:
    """Tests for RunResult."""

    def test_ok_when_no_failures(self) -> None:
        """A result without failures is ok."""
        result = RunResult(waves=[['a', 'b'], ['c']])
        if not result.ok:
            raise AssertionError('Expected ok=True')
        if result.total != 3:
            raise AssertionError(f'Expected total=3, got {result.total}')


class TestWaveScheduler:
    """Tests for WaveScheduler.run()."""

    @pytest.mark.asyncio
    async def test_scenario_abc(self) -> None:
        """{A, B<-A, C} with N=2 runs [A, C] then [B], all succeeding."""
        execute = FakeExecutor()
        sched = _scheduler(make_manifest('A'), make_manifest('B', ['A']), make_manifest('C'))
        result = await sched.run(execute)
        if result.waves != [['A', 'C'], ['B']]:
            raise AssertionError(f'Unexpected waves: {result.waves}')
        if not result.ok:
            raise AssertionError(f'Expected success, got {result.failures}')
        if sched.state != SchedulerState.DRAINED:
            raise AssertionError(f'Expected DRAINED, got {sched.state}')
        if execute.peak > 2:
            raise AssertionError(f'Peak concurrency {execute.peak} > 2')

    @pytest.mark.asyncio
    async def test_wave_barrier(self) -> None:
        """No item of wave K+1 starts before every item of wave K has ended."""
        execute = FakeExecutor()
        sched = _scheduler(
            make_manifest('a'),
            make_manifest('b'),
            make_manifest('c'),
            make_manifest('d', ['a']),
            concurrency=4,
        )
        await sched.run(execute)
        start_d = execute.events.index(('start', 'd'))
        for name in ('a', 'b', 'c'):
            if execute.events.index(('end', name)) > start_d:
                raise AssertionError(f'd started while {name} was running: {execute.events}')

    @pytest.mark.asyncio
    async def test_dependencies_run_first(self) -> None:
        """Every package starts after all its in-universe dependencies ended."""
        manifests = [
            make_manifest('core'),
            make_manifest('utils', ['core']),
            make_manifest('plugin-a', ['core', 'utils']),
            make_manifest('plugin-b', ['core']),
            make_manifest('app', ['plugin-a', 'plugin-b', 'express']),
        ]
        execute = FakeExecutor()
        result = await _scheduler(*manifests, concurrency=3).run(execute)
        wave_of = {name: i for i, wave in enumerate(result.waves) for name in wave}
        for manifest in manifests:
            start = execute.events.index(('start', manifest.name))
            for dep in manifest.dependencies & wave_of.keys():
                if wave_of[dep] >= wave_of[manifest.name]:
                    raise AssertionError(f'{manifest.name} not after {dep}: {result.waves}')
                if execute.events.index(('end', dep)) > start:
                    raise AssertionError(f'{manifest.name} started before {dep} ended')

    @pytest.mark.asyncio
    async def test_peak_concurrency_bounded(self) -> None:
        """A wide wave never exceeds N in flight."""
        manifests = [make_manifest(f'p{i:02d}') for i in range(13)]
        for n in (1, 2, 4):
            execute = FakeExecutor()
            await _scheduler(*manifests, concurrency=n).run(execute)
            if execute.peak > n:
                raise AssertionError(f'N={n}: peak {execute.peak}')

    @pytest.mark.asyncio
    async def test_failure_does_not_block_dependents(self) -> None:
        """If X fails, its siblings finish and its only dependent still runs."""
        execute = FakeExecutor(fail={'x'})
        sched = _scheduler(make_manifest('x'), make_manifest('y'), make_manifest('z', ['x']))
        result = await sched.run(execute)
        if sorted(execute.finished) != ['x', 'y', 'z']:
            raise AssertionError(f'Every package must run: {execute.finished}')
        if result.waves != [['x', 'y'], ['z']]:
            raise AssertionError(f'Unexpected waves: {result.waves}')
        if [f.item.package_name for f in result.failures] != ['x']:
            raise AssertionError(f'Unexpected failures: {result.failures}')
        if result.ok:
            raise AssertionError('Result with a failure must not be ok')
        if sched.state != SchedulerState.DRAINED:
            raise AssertionError('A run with failures still drains')

    @pytest.mark.asyncio
    async def test_two_cycle_deadlocks_without_running(self) -> None:
        """{A<-B, B<-A} deadlocks immediately with zero commands run."""
        execute = FakeExecutor()
        observer = RecordingObserver()
        sched = _scheduler(make_manifest('A', ['B']), make_manifest('B', ['A']), observer=observer)
        with pytest.raises(DeadlockError) as exc_info:
            await sched.run(execute)
        if set(exc_info.value.residual) != {'A', 'B'}:
            raise AssertionError(f'Unexpected residual: {exc_info.value.residual}')
        if execute.started:
            raise AssertionError(f'No command may run: {execute.started}')
        if sched.state != SchedulerState.DEADLOCKED:
            raise AssertionError(f'Expected DEADLOCKED, got {sched.state}')
        if len(observer.deadlocks) != 1 or observer.completed:
            raise AssertionError('Observer must see the deadlock and no completion')

    @pytest.mark.asyncio
    async def test_deadlock_after_independent_wave(self) -> None:
        """Packages outside the cycle run; the cycle itself never starts."""
        execute = FakeExecutor()
        sched = _scheduler(make_manifest('free'), make_manifest('x', ['y']), make_manifest('y', ['x']))
        with pytest.raises(DeadlockError) as exc_info:
            await sched.run(execute)
        if execute.started != ['free']:
            raise AssertionError(f'Only free may run: {execute.started}')
        if exc_info.value.blockers != {'x': {'y'}, 'y': {'x'}}:
            raise AssertionError(f'Unexpected blockers: {exc_info.value.blockers}')

    @pytest.mark.asyncio
    async def test_exempt_all_single_wave(self) -> None:
        """Exempt-all runs everything in one wave, bounded by N."""
        execute = FakeExecutor()
        sched = _scheduler(
            make_manifest('A', ['B']),
            make_manifest('B', ['C']),
            make_manifest('C', ['A']),
            exemption=parse_exemption('*'),
        )
        result = await sched.run(execute)
        if result.waves != [['A', 'B', 'C']]:
            raise AssertionError(f'Expected one wave, got {result.waves}')
        if execute.peak > 2:
            raise AssertionError(f'Peak concurrency {execute.peak} > 2')
        if sched.graph is not None:
            raise AssertionError('Exempt-all must not build a graph')

    @pytest.mark.asyncio
    async def test_empty_run_drains(self) -> None:
        """No items means no waves and an ok result."""
        result = await WaveScheduler([], None, concurrency=2).run(FakeExecutor())
        if result.waves or not result.ok:
            raise AssertionError(f'Unexpected result: {result}')

    @pytest.mark.asyncio
    async def test_observer_sequence(self) -> None:
        """Waves, states and completion are reported in order."""
        observer = RecordingObserver()
        sched = _scheduler(make_manifest('a'), make_manifest('b', ['a']), observer=observer)
        await sched.run(FakeExecutor())
        if observer.waves != [(0, ['a']), (1, ['b'])]:
            raise AssertionError(f'Unexpected waves: {observer.waves}')
        if observer.states != [SchedulerState.RUNNING, SchedulerState.DRAINED]:
            raise AssertionError(f'Unexpected states: {observer.states}')
        if len(observer.completed) != 1:
            raise AssertionError('Expected exactly one completion')

    @pytest.mark.asyncio
    async def test_single_use(self) -> None:
        """A scheduler cannot be run twice."""
        sched = WaveScheduler([make_item('a')], None, concurrency=1)
        await sched.run(FakeExecutor())
        with pytest.raises(RuntimeError, match='only be called once'):
            await sched.run(FakeExecutor())

    def test_rejects_bad_concurrency(self) -> None:
        """Concurrency below 1 is rejected."""
        with pytest.raises(ValueError, match='at least 1'):
            WaveScheduler([make_item('a')], None, concurrency=0)

    def test_default_concurrency(self) -> None:
        """Without a limit the CPU-derived default applies."""
        sched = WaveScheduler([make_item('a')], None)
        if sched.concurrency < 2:
            raise AssertionError(f'Default concurrency must be at least 2, got {sched.concurrency}')

    def test_items_sorted_by_name(self) -> None:
        """Items are kept in name order for reproducible waves."""
        sched = WaveScheduler([make_item('b'), make_item('a')], None, concurrency=1)
        if [i.package_name for i in sched.items] != ['a', 'b']:
            raise AssertionError(f'Unexpected order: {sched.items}')
