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

"""Observer interface and stage enums for run progress.

Both the scheduler and the console UI depend on this module, which keeps
the import graph acyclic::

    observer.py  ← ItemStage, SchedulerState, RunObserver
      ↑              ↑
      │              │
    ui.py        dispatcher.py / scheduler.py

Item stages::

    ⏳ waiting → 🔨 running → ✅ succeeded / ❌ failed

Scheduler states::

    RUNNING → DRAINED | DEADLOCKED
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wsrun._types import RunResult, WorkItem
    from wsrun.graph import DeadlockError


class ItemStage(str, Enum):
    """Stage of a single work item."""

    WAITING = 'waiting'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


class SchedulerState(str, Enum):
    """Lifecycle of a scheduler run."""

    RUNNING = 'running'
    DRAINED = 'drained'
    DEADLOCKED = 'deadlocked'


class RunObserver:
    """Receives progress callbacks from a run.

    Every method is a no-op, so this class doubles as the null observer.
    """

    def on_run_start(self, command: str, args: Sequence[str], total: int, concurrency: int) -> None:
        """The run is about to start its first wave."""

    def on_wave_start(self, wave: int, package_names: list[str]) -> None:
        """Wave ``wave`` (0-based) is about to be dispatched."""

    def on_chunk_start(self, processed: int, chunk_size: int, total: int) -> None:
        """A chunk of ``chunk_size`` items starts after ``processed`` items."""

    def on_stage(self, item: WorkItem, stage: ItemStage) -> None:
        """An item entered a new stage."""

    def on_error(self, item: WorkItem, error: Exception) -> None:
        """An item failed with ``error``."""

    def on_scheduler_state(self, state: SchedulerState) -> None:
        """The scheduler changed state."""

    def on_deadlock(self, error: DeadlockError) -> None:
        """The scheduler found a deadlock and is aborting."""

    def on_complete(self, result: RunResult) -> None:
        """The run drained; ``result`` holds every failure."""


__all__ = [
    'ItemStage',
    'RunObserver',
    'SchedulerState',
]
