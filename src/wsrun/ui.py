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

"""Human-facing progress output for ``wsrun run``.

Architecture::

    scheduler.py / dispatcher.py           ui.py
    ┌──────────────────────────┐  callback  ┌────────────────────┐
    │ WaveScheduler / dispatch │──────────▶│ RunObserver impls   │
    └──────────────────────────┘            └─────────┬──────────┘
                                                      │
                                   ┌──────────────────┴───────────┐
                                   │                              │
                           ┌───────┴────────┐            ┌────────┴───────┐
                           │ ConsoleObserver │            │ LogObserver    │
                           │ (rich, stdout)  │            │ (structlog)    │
                           └─────────────────┘            └────────────────┘

Console output of a run::

    Running "npm run build" using max threads: 4
    Packages: 3
    Processing packages: 2 of 3
    Package: core. Starting...
    Package: core. Successful!
    ...
    Process completed successfully.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape

from wsrun._types import RunResult, WorkItem
from wsrun.executor import CommandError
from wsrun.logging import get_logger
from wsrun.observer import ItemStage, RunObserver, SchedulerState

logger = get_logger(__name__)

# Lines of failure output shown per package in the summary.
MAX_EXCERPT_LINES = 20


def _excerpt(error: Exception, max_lines: int = MAX_EXCERPT_LINES) -> str:
    text = error.output if isinstance(error, CommandError) else (str(error) or repr(error))
    lines = text.strip().splitlines()
    if len(lines) > max_lines:
        hidden = len(lines) - max_lines
        lines = [*lines[-max_lines:], f'... ({hidden} earlier lines hidden)']
    return '\n'.join(lines)


class ConsoleObserver(RunObserver):
    """Prints run progress and the final summary with a rich Console.

    With ``summary_only`` set, per-package progress is suppressed and only
    the failure summary is printed.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        file: TextIO | None = None,
        summary_only: bool = False,
    ) -> None:
        """Initialize with an explicit console, or one writing to ``file``."""
        self.console = console or Console(file=file or sys.stdout, highlight=False, soft_wrap=True)
        self.summary_only = summary_only

    def on_run_start(self, command: str, args: Sequence[str], total: int, concurrency: int) -> None:
        """Print the banner."""
        if self.summary_only:
            return
        cmd = rich_escape(' '.join([command, *args]))
        self.console.print(f'Running "[bold]{cmd}[/bold]" using max threads: {concurrency}')
        self.console.print(f'Packages: {total}')

    def on_chunk_start(self, processed: int, chunk_size: int, total: int) -> None:
        """Print the batch progress line."""
        if self.summary_only:
            return
        self.console.print(f'[dim]Processing packages: {processed + chunk_size} of {total}[/dim]')

    def on_stage(self, item: WorkItem, stage: ItemStage) -> None:
        """Print starts and successes; failures are printed by :meth:`on_error`."""
        if self.summary_only:
            return
        name = rich_escape(item.package_name)
        if stage == ItemStage.RUNNING:
            self.console.print(f'Package: [cyan]{name}[/cyan]. Starting...')
        elif stage == ItemStage.SUCCEEDED:
            self.console.print(f'Package: [cyan]{name}[/cyan]. [green]Successful![/green]')

    def on_error(self, item: WorkItem, error: Exception) -> None:
        """Print the failure line."""
        if self.summary_only:
            return
        self.console.print(f'Package: [cyan]{rich_escape(str(item.directory))}[/cyan]. [bold red]ERROR![/bold red]')

    def on_complete(self, result: RunResult) -> None:
        """Print the failure summary or the success banner."""
        if result.ok:
            if not self.summary_only:
                self.console.print('[bold green]Process completed successfully.[/bold green]')
            return
        self.console.print()
        self.console.print(f'[bold red]Errors encountered during cmd: {len(result.failures)}[/bold red]')
        for failure in result.failures:
            self.console.print()
            self.console.print(
                f'[bold]{rich_escape(failure.item.package_name)}[/bold] [dim]({rich_escape(str(failure.directory))})[/dim]'
            )
            self.console.print(_excerpt(failure.error), markup=False)


class LogObserver(RunObserver):
    """Emits one structured log line per progress event.

    Used with ``--json-log``, where stdout must not mix free text with
    log records.
    """

    def on_run_start(self, command: str, args: Sequence[str], total: int, concurrency: int) -> None:
        """Log the run start."""
        logger.info('run_start', cmd=' '.join([command, *args]), packages=total, concurrency=concurrency)

    def on_stage(self, item: WorkItem, stage: ItemStage) -> None:
        """Log the stage transition."""
        if stage != ItemStage.WAITING:
            logger.info('stage_change', package=item.package_name, stage=stage.value)

    def on_error(self, item: WorkItem, error: Exception) -> None:
        """Log the failure excerpt."""
        logger.error('package_error', package=item.package_name, error=_excerpt(error))

    def on_scheduler_state(self, state: SchedulerState) -> None:
        """Log the scheduler state change."""
        logger.info('scheduler_state', state=state.value)

    def on_complete(self, result: RunResult) -> None:
        """Log the summary."""
        logger.info('run_complete', total=result.total, failed=len(result.failures), waves=len(result.waves))


def create_observer(*, json_log: bool = False, quiet: bool = False, file: TextIO | None = None) -> RunObserver:
    """Pick the observer for the CLI's output mode.

    Args:
        json_log: Structured logs only; returns a :class:`LogObserver`.
        quiet: Only the failure summary is printed.
        file: Stream for :class:`ConsoleObserver` (default stdout).
    """
    if quiet:
        return ConsoleObserver(file=file, summary_only=True)
    if json_log:
        return LogObserver()
    return ConsoleObserver(file=file)


__all__ = [
    'MAX_EXCERPT_LINES',
    'ConsoleObserver',
    'LogObserver',
    'create_observer',
]
