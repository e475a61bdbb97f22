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

"""Structured error system for wsrun.

Every error has a unique ``WR-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Code categories::

    WR-CONFIG-*       wsrun.toml errors
    WR-WORKSPACE-*    Package discovery errors
    WR-MANIFEST-*     package.json errors
    WR-GRAPH-*        Dependency ordering errors
    WR-COMMAND-*      Per-package command failures

Only per-package command failures are recoverable: the dispatcher records
them and keeps going. Every other code aborts the run.

Usage::

    from wsrun.errors import E, WsRunError

    raise WsRunError(
        code=E.WORKSPACE_NOT_FOUND,
        message='Packages directory ./packages does not exist',
        hint='Pass --packages or set packages in wsrun.toml.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all wsrun diagnostic codes."""

    # Configuration
    CONFIG_PARSE_ERROR = 'WR-CONFIG-PARSE-ERROR'
    CONFIG_INVALID_KEY = 'WR-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'WR-CONFIG-INVALID-VALUE'

    # Workspace discovery
    WORKSPACE_NOT_FOUND = 'WR-WORKSPACE-NOT-FOUND'
    WORKSPACE_NO_PACKAGES = 'WR-WORKSPACE-NO-PACKAGES'
    WORKSPACE_DUPLICATE_PACKAGE = 'WR-WORKSPACE-DUPLICATE-PACKAGE'

    # Manifests
    MANIFEST_PARSE_ERROR = 'WR-MANIFEST-PARSE-ERROR'

    # Dependency ordering
    GRAPH_DEADLOCK = 'WR-GRAPH-DEADLOCK'

    # Per-package commands
    COMMAND_FAILED = 'WR-COMMAND-FAILED'
    COMMAND_SPAWN_FAILED = 'WR-COMMAND-SPAWN-FAILED'
    COMMAND_TIMEOUT = 'WR-COMMAND-TIMEOUT'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``WR-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class WsRunError(Exception):
    """Base exception for all wsrun errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_PARSE_ERROR: ErrorInfo(
        code=E.CONFIG_PARSE_ERROR,
        message='wsrun.toml could not be read, is not UTF-8, or is not valid TOML.',
        hint='Fix the syntax error reported in the message, or remove the file to use the defaults.',
    ),
    E.CONFIG_INVALID_KEY: ErrorInfo(
        code=E.CONFIG_INVALID_KEY,
        message='wsrun.toml contains a key wsrun does not recognize.',
        hint='Valid keys: packages, uncheck, concurrency, timeout, exclude, env.',
    ),
    E.CONFIG_INVALID_VALUE: ErrorInfo(
        code=E.CONFIG_INVALID_VALUE,
        message='A setting in wsrun.toml or on the command line has the wrong type or is out of range.',
        hint='concurrency must be an integer of at least 1; timeout must be a positive number of seconds.',
    ),
    E.WORKSPACE_NOT_FOUND: ErrorInfo(
        code=E.WORKSPACE_NOT_FOUND,
        message='The packages directory does not exist.',
        hint="Pass --packages or set 'packages' in wsrun.toml (default: ./packages).",
    ),
    E.WORKSPACE_NO_PACKAGES: ErrorInfo(
        code=E.WORKSPACE_NO_PACKAGES,
        message='No package.json files were found under the packages directory.',
        hint='node_modules directories are skipped during discovery.',
    ),
    E.WORKSPACE_DUPLICATE_PACKAGE: ErrorInfo(
        code=E.WORKSPACE_DUPLICATE_PACKAGE,
        message='Two package.json files in the workspace declare the same name.',
        hint="Rename one of the packages, or leave one out with 'exclude' in wsrun.toml.",
    ),
    E.MANIFEST_PARSE_ERROR: ErrorInfo(
        code=E.MANIFEST_PARSE_ERROR,
        message='A package.json could not be read, is not a JSON object, or has no name.',
        hint='Manifests are loaded before any command runs; fix the file and re-run.',
    ),
    E.GRAPH_DEADLOCK: ErrorInfo(
        code=E.GRAPH_DEADLOCK,
        message='Packages remain but none of them has all dependencies completed.',
        hint="Break the cycle, or exempt one of its packages with --uncheck NAME. Run 'wsrun plan' to inspect.",
    ),
    E.COMMAND_FAILED: ErrorInfo(
        code=E.COMMAND_FAILED,
        message='The command exited with a non-zero status in a package directory.',
        hint='Dependents still run; see the captured stderr/stdout in the run summary.',
    ),
    E.COMMAND_SPAWN_FAILED: ErrorInfo(
        code=E.COMMAND_SPAWN_FAILED,
        message='The shell could not be started in a package directory.',
        hint='Check that the package directory still exists and that /bin/sh is available.',
    ),
    E.COMMAND_TIMEOUT: ErrorInfo(
        code=E.COMMAND_TIMEOUT,
        message='The command ran longer than the configured timeout and was killed.',
        hint="Raise --timeout or 'timeout' in wsrun.toml, or unset it for no limit.",
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"WR-GRAPH-DEADLOCK"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: WsRunError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style.

    Output format::

        error[WR-GRAPH-DEADLOCK]: Deadlock found for packages: a, b
          |
          = hint: Break the cycle, or exempt one of its packages ...

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    console = Console(file=file or sys.stderr, highlight=False)
    msg = rich_escape(exc.info.message)
    console.print(f'[bold red]error\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]')
    if exc.hint:
        console.print('  [dim]|[/dim]')
        console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
    console.print()


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'WsRunError',
    'explain',
    'render_error',
]
