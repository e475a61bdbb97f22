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

"""Subprocess execution for package commands.

Every package command goes through :func:`run_command`, which:

- runs ``command args...`` through the shell, in an explicit working
  directory (the process-wide cwd is never changed),
- captures stdout and stderr,
- returns a :class:`CommandResult` on exit code 0 and raises
  :class:`CommandError` otherwise, including when the process cannot be
  spawned at all or exceeds its timeout,
- supports dry-run: the command is logged, not executed.

:func:`execute` is the async entry point used by the dispatcher. It runs
:func:`run_command` in a worker thread so several children run at once
while the event loop waits on them.
"""

from __future__ import annotations

import asyncio
import os
import subprocess  # noqa: S404 - subprocess is the core purpose of this module
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from wsrun.errors import E, WsRunError
from wsrun.logging import get_logger

log = get_logger('wsrun.executor')


@dataclass(frozen=True)
class CommandResult:
    """Result of a successful command.

    Attributes:
        command: The shell command line that was executed.
        cwd: Working directory it ran in.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
        dry_run: Whether the command was only logged.
    """

    command: str
    cwd: Path
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0
    dry_run: bool = False


class CommandError(WsRunError):
    """A package command failed.

    Attributes:
        command: The shell command line.
        cwd: Working directory it ran in.
        stdout: Output captured before the failure.
        stderr: Error output captured before the failure.
        exit_code: Process exit code, or ``None`` if the process never
            exited normally (spawn error or timeout).
        timed_out: Whether the command was killed by the timeout.
    """

    def __init__(
        self,
        command: str,
        cwd: Path,
        *,
        stdout: str = '',
        stderr: str = '',
        exit_code: int | None = None,
        timed_out: bool = False,
        reason: str = '',
    ) -> None:
        """Initialize from the captured process outcome."""
        self.command = command
        self.cwd = cwd
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.timed_out = timed_out
        if timed_out:
            code = E.COMMAND_TIMEOUT
            message = f'`{command}` timed out in {cwd}'
        elif exit_code is None:
            code = E.COMMAND_SPAWN_FAILED
            message = f'`{command}` could not be started in {cwd}: {reason}'
        else:
            code = E.COMMAND_FAILED
            message = f'`{command}` exited with code {exit_code} in {cwd}'
        super().__init__(code=code, message=message)

    @property
    def output(self) -> str:
        """The most useful diagnostic text: stderr, else stdout, else the message."""
        return self.stderr.strip() or self.stdout.strip() or self.info.message


def _text(data: str | bytes | None) -> str:
    # TimeoutExpired carries bytes even when text=True was requested.
    if data is None:
        return ''
    if isinstance(data, bytes):
        return data.decode('utf-8', errors='replace')
    return data


def run_command(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: Path,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    dry_run: bool = False,
) -> CommandResult:
    """Run ``command args...`` through the shell in ``cwd``.

    The command and its arguments are joined with spaces and handed to
    the shell unquoted, so arguments may use shell syntax.

    Args:
        command: Program or shell command to run.
        args: Extra arguments appended to the command line.
        cwd: Working directory for the child process.
        env: Extra environment variables (merged with the current env).
        timeout: Seconds before the child is killed; ``None`` waits forever.
        dry_run: Log the command without executing it.

    Returns:
        A :class:`CommandResult` when the command exits with code 0.

    Raises:
        CommandError: On a non-zero exit code, a spawn error, or a timeout.
    """
    cmd_str = ' '.join([command, *args])
    log.debug('run_command', cmd=cmd_str, cwd=str(cwd), dry_run=dry_run)

    if dry_run:
        log.info('dry_run', cmd=cmd_str, cwd=str(cwd))
        return CommandResult(command=cmd_str, cwd=cwd, dry_run=True)

    full_env: dict[str, str] | None = None
    if env:
        full_env = {**os.environ, **env}

    start = time.monotonic()
    try:
        result = subprocess.run(  # noqa: S602 - shell interpretation is the documented contract
            cmd_str,
            shell=True,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        duration = (time.monotonic() - start) * 1000
        log.error('command_timeout', cmd=cmd_str, cwd=str(cwd), timeout=timeout, duration=duration)
        raise CommandError(
            cmd_str,
            cwd,
            stdout=_text(exc.stdout),
            stderr=_text(exc.stderr),
            timed_out=True,
        ) from exc
    except OSError as exc:
        log.error('command_spawn_failed', cmd=cmd_str, cwd=str(cwd), error=str(exc))
        raise CommandError(cmd_str, cwd, reason=str(exc)) from exc

    duration = (time.monotonic() - start) * 1000
    if result.returncode != 0:
        log.warning(
            'command_failed',
            cmd=cmd_str,
            cwd=str(cwd),
            return_code=result.returncode,
            stderr=result.stderr[:500],
            duration=duration,
        )
        raise CommandError(
            cmd_str,
            cwd,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.returncode,
        )

    log.debug('command_ok', cmd=cmd_str, cwd=str(cwd), duration=duration)
    return CommandResult(
        command=cmd_str,
        cwd=cwd,
        stdout=result.stdout,
        stderr=result.stderr,
        duration=duration,
    )


async def execute(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: Path,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    dry_run: bool = False,
) -> CommandResult:
    """Async wrapper around :func:`run_command` (runs in a worker thread)."""
    return await asyncio.to_thread(
        run_command,
        command,
        args,
        cwd=cwd,
        env=env,
        timeout=timeout,
        dry_run=dry_run,
    )


__all__ = [
    'CommandError',
    'CommandResult',
    'execute',
    'run_command',
]
