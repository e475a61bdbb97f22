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

"""Bounded batch dispatch of ready work items.

A wave of ready items is cut into consecutive chunks of at most ``N``
items. Each chunk runs concurrently and must fully settle before the next
chunk starts::

    wave: [a, b, c, d, e]      N = 2

    chunk 0: a, b   ──── gather(settle all) ────┐
                                                ▼
    chunk 1: c, d   ──── gather(settle all) ────┐
                                                ▼
    chunk 2: e      ──── gather(settle all) ──── done

A failing item is logged and recorded; it never cancels its siblings or
later chunks, and nothing it raises escapes :func:`dispatch`.
"""

from __future__ import annotations

import asyncio
import math
import os
from collections.abc import Callable, Coroutine, Sequence
from typing import Any

from wsrun._types import ItemFailure, WorkItem
from wsrun.executor import CommandError
from wsrun.logging import get_logger, package_context
from wsrun.observer import ItemStage, RunObserver

logger = get_logger(__name__)

# Runs the command for one item; raises on failure.
ExecuteFn = Callable[[WorkItem], Coroutine[Any, Any, object]]

MIN_CONCURRENCY = 2


def default_concurrency(cpu_count: int | None = None) -> int:
    """Half the logical CPUs, rounded half-up, and never less than 2.

    Args:
        cpu_count: CPU count to use instead of :func:`os.cpu_count`.
    """
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    return max(math.floor(cpus / 2 + 0.5), MIN_CONCURRENCY)


def chunked(items: Sequence[WorkItem], size: int) -> list[list[WorkItem]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    if size < 1:
        msg = f'chunk size must be at least 1, got {size}'
        raise ValueError(msg)
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _diagnostic(error: BaseException) -> str:
    if isinstance(error, CommandError):
        return error.output
    return str(error) or repr(error)


def _record_failure(
    item: WorkItem,
    error: Exception,
    failures: list[ItemFailure],
    observer: RunObserver,
) -> None:
    logger.error(
        'package_command_failed',
        package=item.package_name,
        directory=str(item.directory),
        output=_diagnostic(error),
    )
    failures.append(ItemFailure(item=item, error=error))
    try:
        observer.on_stage(item, ItemStage.FAILED)
        observer.on_error(item, error)
    except Exception:  # noqa: BLE001 - the failure is already recorded
        logger.exception('observer_callback_failed', package=item.package_name)


async def run_item(
    item: WorkItem,
    execute: ExecuteFn,
    failures: list[ItemFailure],
    observer: RunObserver,
) -> None:
    """Run one item, recording a failure instead of raising."""
    with package_context(item.package_name):
        logger.debug('package_start', package=item.package_name, directory=str(item.directory))
        observer.on_stage(item, ItemStage.RUNNING)
        try:
            await execute(item)
        except Exception as exc:  # noqa: BLE001 - every item outcome is settled and recorded
            _record_failure(item, exc, failures, observer)
            return
        logger.debug('package_done', package=item.package_name)
        observer.on_stage(item, ItemStage.SUCCEEDED)


async def dispatch(
    items: Sequence[WorkItem],
    execute: ExecuteFn,
    *,
    concurrency: int,
    failures: list[ItemFailure],
    observer: RunObserver | None = None,
    processed: int = 0,
    total: int | None = None,
) -> int:
    """Run ``items`` in chunks of ``concurrency``, settling each chunk.

    Args:
        items: Items to run, in dispatch order.
        execute: Coroutine function running the command for one item.
        concurrency: Maximum number of items in flight.
        failures: Shared list that failed items are appended to.
        observer: Progress observer.
        processed: Items already dispatched earlier in the run.
        total: Total items of the run, for progress reporting.

    Returns:
        ``processed`` plus the number of items dispatched here.
    """
    observer = observer or RunObserver()
    total = total if total is not None else processed + len(items)

    for chunk in chunked(items, concurrency):
        observer.on_chunk_start(processed, len(chunk), total)
        logger.info(
            'chunk_start',
            processing=processed + len(chunk),
            total=total,
            packages=[item.package_name for item in chunk],
        )
        outcomes = await asyncio.gather(
            *(run_item(item, execute, failures, observer) for item in chunk),
            return_exceptions=True,
        )
        # run_item records command failures itself; anything returned
        # here escaped from an observer callback.
        for item, outcome in zip(chunk, outcomes, strict=True):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                _record_failure(item, outcome, failures, observer)
        processed += len(chunk)

    return processed


__all__ = [
    'ExecuteFn',
    'MIN_CONCURRENCY',
    'chunked',
    'default_concurrency',
    'dispatch',
    'run_item',
]
