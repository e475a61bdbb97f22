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

"""Structured logging for wsrun.

Configures `structlog <https://www.structlog.org/>`_ with two output modes:

- **Console** (default): human-readable key/value lines, colored on a TTY.
- **JSON** (``--json-log``): one JSON object per line.

Both modes write to stderr. Stdout is reserved for the progress lines
printed by :mod:`wsrun.ui` and for ``wsrun discover --format json``.

Usage::

    from wsrun.logging import configure_logging, get_logger, package_context, run_context

    configure_logging(verbose=True)
    log = get_logger(__name__)
    log.info('wave_start', wave=0, packages=['core', 'utils'])

    with run_context('npm test'), package_context('core'):
        log.info('package_start')  # carries run_cmd and pkg=core
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager

import structlog


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
) -> None:
    """Configure structlog for wsrun.

    Should be called once at startup, before any logging calls. Calling
    it again reconfigures the root handler in place.

    Args:
        verbose: Enable debug-level output.
        quiet: Only emit warnings and errors.
        json_log: Use JSON output instead of the console renderer.
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        format='%(message)s',
        stream=sys.stderr,
        level=level,
        force=True,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_log:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def run_context(command: str, *, dry_run: bool = False) -> AbstractContextManager[None]:
    """Tag every log line emitted inside the block with the run's command.

    Usage::

        with run_context('npm run build'):
            await scheduler.run(execute)
    """
    return structlog.contextvars.bound_contextvars(run_cmd=command, dry_run=dry_run)


def package_context(package: str) -> AbstractContextManager[None]:
    """Tag every log line emitted inside the block with ``package``.

    Bound per dispatched item. Each item runs in its own asyncio task and
    its command runs in a worker thread; both copy the context, so
    concurrent items never see each other's tag.
    """
    return structlog.contextvars.bound_contextvars(pkg=package)


def get_logger(name: str = 'wsrun') -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger named ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'configure_logging',
    'get_logger',
    'package_context',
    'run_context',
]
