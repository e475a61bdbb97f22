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

"""Shared types for the dispatcher and scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

__all__ = [
    'ItemFailure',
    'RunResult',
    'WorkItem',
]


@dataclass(frozen=True)
class WorkItem:
    """One unit of work: a package manifest to run the command for.

    Attributes:
        path: Absolute path to the package's manifest.
        package_name: The package name from the manifest.
    """

    path: Path
    package_name: str

    @property
    def directory(self) -> Path:
        """Working directory for the command (the manifest's parent)."""
        return self.path.parent


@dataclass(frozen=True)
class ItemFailure:
    """A work item whose command failed.

    Attributes:
        item: The failed item.
        error: The exception raised while running it, usually a
            :class:`~wsrun.executor.CommandError`.
    """

    item: WorkItem
    error: Exception

    @property
    def directory(self) -> Path:
        """Directory the command ran in."""
        return self.item.directory


@dataclass
class RunResult:
    """Outcome of a drained run.

    Attributes:
        failures: Failed items, in the order they settled.
        waves: Package names of each dispatched wave, in order.
    """

    failures: list[ItemFailure] = field(default_factory=list)
    waves: list[list[str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True if no item failed."""
        return not self.failures

    @property
    def total(self) -> int:
        """Number of items dispatched."""
        return sum(len(wave) for wave in self.waves)
