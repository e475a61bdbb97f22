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

"""Fake async executor that records ordering and concurrency."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from wsrun._types import WorkItem
from wsrun.executor import CommandError


@dataclass
class FakeExecutor:
    """Async stand-in for the command executor.

    Attributes:
        fail: Package names whose command fails with a CommandError.
        delay: Seconds each command "runs" for.
        started: Package names in start order.
        finished: Package names in finish order.
        events: ``('start'|'end', name)`` tuples in order.
        peak: Highest number of commands in flight at once.
    """

    fail: set[str] = field(default_factory=set)
    delay: float = 0.01
    started: list[str] = field(default_factory=list)
    finished: list[str] = field(default_factory=list)
    events: list[tuple[str, str]] = field(default_factory=list)
    peak: int = 0
    _active: int = 0

    async def __call__(self, item: WorkItem) -> str:
        """Pretend to run the command for ``item``."""
        name = item.package_name
        self.started.append(name)
        self.events.append(('start', name))
        self._active += 1
        self.peak = max(self.peak, self._active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self._active -= 1
            self.finished.append(name)
            self.events.append(('end', name))
        if name in self.fail:
            raise CommandError(
                f'fake {name}',
                item.directory,
                stdout=f'{name} stdout',
                stderr=f'{name} failed',
                exit_code=1,
            )
        return name
