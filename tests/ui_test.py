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

"""Tests for wsrun.ui: console and log observers."""

from __future__ import annotations

import io
from pathlib import Path

from rich.console import Console
from wsrun._types import ItemFailure, RunResult
from wsrun.executor import CommandError
from wsrun.logging import configure_logging
from wsrun.observer import ItemStage, RunObserver
from wsrun.ui import MAX_EXCERPT_LINES, ConsoleObserver, LogObserver, create_observer

from tests._fakes import make_item

configure_logging(quiet=True)


def _observer(*, summary_only: bool = False) -> tuple[ConsoleObserver, io.StringIO]:
    buf = io.StringIO()
    console = Console(file=buf, width=200, highlight=False, color_system=None)
    return ConsoleObserver(console, summary_only=summary_only), buf


def _failure(name: str, stderr: str = '', stdout: str = '') -> ItemFailure:
    item = make_item(name)
    error = CommandError('npm test', item.directory, stdout=stdout, stderr=stderr, exit_code=1)
    return ItemFailure(item=item, error=error)


class TestConsoleObserver:
    """Tests for ConsoleObserver output."""

    def test_progress_lines(self) -> None:
        """Banner, batch and per-package lines are printed."""
        observer, buf = _observer()
        item = make_item('core')
        observer.on_run_start('npm', ['run', 'build'], 3, 4)
        observer.on_chunk_start(0, 2, 3)
        observer.on_stage(item, ItemStage.RUNNING)
        observer.on_stage(item, ItemStage.SUCCEEDED)
        out = buf.getvalue()
        for expected in (
            'Running "npm run build" using max threads: 4',
            'Packages: 3',
            'Processing packages: 2 of 3',
            'Package: core. Starting...',
            'Package: core. Successful!',
        ):
            if expected not in out:
                raise AssertionError(f'Missing {expected!r} in {out!r}')

    def test_error_line_names_directory(self) -> None:
        """A failure prints the package directory."""
        observer, buf = _observer()
        failure = _failure('core', stderr='boom')
        observer.on_error(failure.item, failure.error)
        if f'Package: {Path("/fake/packages/core")}. ERROR!' not in buf.getvalue():
            raise AssertionError(f'Unexpected output: {buf.getvalue()!r}')

    def test_success_banner(self) -> None:
        """A clean run ends with the completion banner."""
        observer, buf = _observer()
        observer.on_complete(RunResult(waves=[['a']]))
        if 'Process completed successfully.' not in buf.getvalue():
            raise AssertionError(f'Missing banner: {buf.getvalue()!r}')

    def test_failure_summary(self) -> None:
        """Failures print a count and each excerpt, preferring stderr."""
        observer, buf = _observer()
        result = RunResult(
            failures=[_failure('a', stderr='a broke [red]'), _failure('b', stdout='b said no')],
            waves=[['a', 'b']],
        )
        observer.on_complete(result)
        out = buf.getvalue()
        if 'Errors encountered during cmd: 2' not in out:
            raise AssertionError(f'Missing count: {out!r}')
        if 'a broke [red]' not in out or 'b said no' not in out:
            raise AssertionError(f'Missing excerpts: {out!r}')
        if 'Process completed successfully.' in out:
            raise AssertionError('No success banner on failure')

    def test_long_output_truncated(self) -> None:
        """Only the last lines of a long output are shown."""
        observer, buf = _observer()
        stderr = '\n'.join(f'line {i}' for i in range(MAX_EXCERPT_LINES + 5))
        observer.on_complete(RunResult(failures=[_failure('a', stderr=stderr)], waves=[['a']]))
        out = buf.getvalue()
        if 'line 0\n' in out or f'line {MAX_EXCERPT_LINES + 4}' not in out:
            raise AssertionError(f'Unexpected excerpt: {out!r}')
        if '5 earlier lines hidden' not in out:
            raise AssertionError(f'Missing truncation marker: {out!r}')

    def test_summary_only(self) -> None:
        """Summary-only mode prints nothing but failures."""
        observer, buf = _observer(summary_only=True)
        item = make_item('core')
        observer.on_run_start('npm', [], 1, 2)
        observer.on_stage(item, ItemStage.RUNNING)
        observer.on_complete(RunResult(waves=[['core']]))
        if buf.getvalue():
            raise AssertionError(f'Expected no output, got {buf.getvalue()!r}')
        observer.on_complete(RunResult(failures=[_failure('core', stderr='x')], waves=[['core']]))
        if 'Errors encountered during cmd: 1' not in buf.getvalue():
            raise AssertionError('Failures must still be summarized')


class TestCreateObserver:
    """Tests for create_observer()."""

    def test_modes(self) -> None:
        """The output mode picks the observer type."""
        if not isinstance(create_observer(), ConsoleObserver):
            raise AssertionError('Default is the console observer')
        if not isinstance(create_observer(json_log=True), LogObserver):
            raise AssertionError('JSON logs use the log observer')
        quiet = create_observer(quiet=True)
        if not isinstance(quiet, ConsoleObserver) or not quiet.summary_only:
            raise AssertionError('Quiet prints the summary only')

    def test_log_observer_callbacks(self) -> None:
        """LogObserver handles every callback."""
        observer: RunObserver = LogObserver()
        failure = _failure('a', stderr='x')
        observer.on_run_start('npm', ['test'], 1, 2)
        observer.on_stage(failure.item, ItemStage.FAILED)
        observer.on_error(failure.item, failure.error)
        observer.on_complete(RunResult(failures=[failure], waves=[['a']]))
