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

"""CLI entry point for wsrun.

Subcommands::

    wsrun run       Run a command in every package, in dependency waves
    wsrun plan      Preview the wave partition (runs nothing)
    wsrun discover  List workspace packages and their dependencies
    wsrun explain   Explain an error code

Usage::

    # Build every package, dependencies first:
    wsrun run npm run build

    # Run tests with no ordering at all:
    wsrun run --uncheck-all npm test

    # Ignore ordering on two packages, from a different root:
    wsrun run --root ../repo --uncheck legacy,tools npm run lint

    # Pass extra environment to every command:
    wsrun run --env NODE_ENV=production npm run build

    # Explain an error:
    wsrun explain WR-GRAPH-DEADLOCK
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from rich_argparse import RichHelpFormatter

from wsrun import __version__
from wsrun.config import load_config
from wsrun.errors import WsRunError, explain, render_error
from wsrun.graph import EXEMPT_ALL
from wsrun.logging import configure_logging, get_logger
from wsrun.runner import RunSettings, load_workspace, plan, resolve_settings, run_package_command
from wsrun.ui import create_observer
from wsrun.workspace import discover_manifests

logger = get_logger(__name__)


def _settings(args: argparse.Namespace) -> RunSettings:
    """Load ``wsrun.toml`` from ``--root`` and apply the CLI overrides."""
    root = Path(args.root)
    config = load_config(root.resolve())
    return resolve_settings(
        root,
        config,
        packages=args.packages,
        uncheck=getattr(args, 'uncheck', None),
        concurrency=getattr(args, 'concurrency', None),
        timeout=getattr(args, 'timeout', None),
        env=dict(getattr(args, 'env', None) or ()),
    )


async def _cmd_run(args: argparse.Namespace) -> int:
    """Handle the ``run`` subcommand."""
    settings = _settings(args)
    paths = discover_manifests(settings.packages_dir)
    observer = create_observer(json_log=args.json_log, quiet=args.quiet)
    result = await run_package_command(
        paths,
        args.cmd,
        args.cmd_args,
        uncheck=settings.exemption,
        concurrency=settings.concurrency,
        timeout=settings.timeout,
        dry_run=args.dry_run,
        exclude=settings.exclude,
        env=settings.env,
        observer=observer,
    )
    return 0 if result.ok else 1


async def _cmd_plan(args: argparse.Namespace) -> int:
    """Handle the ``plan`` subcommand."""
    settings = _settings(args)
    manifests = await load_workspace(settings.packages_dir, settings.exclude)
    waves = plan(manifests, settings.exemption)

    if args.format == 'json':
        print(json.dumps({'concurrency': settings.concurrency, 'waves': waves}, indent=2))  # noqa: T201 - CLI output
        return 0

    print(f'Packages: {len(manifests)}  max threads: {settings.concurrency}')  # noqa: T201 - CLI output
    for index, wave in enumerate(waves):
        print(f'  wave {index}: {", ".join(wave)}')  # noqa: T201 - CLI output
    return 0


async def _cmd_discover(args: argparse.Namespace) -> int:
    """Handle the ``discover`` subcommand."""
    settings = _settings(args)
    manifests = await load_workspace(settings.packages_dir, settings.exclude)

    if args.format == 'json':
        data = [
            {
                'name': m.name,
                'path': str(m.path),
                'dependencies': sorted(m.dependencies),
            }
            for m in manifests
        ]
        print(json.dumps(data, indent=2))  # noqa: T201 - CLI output
        return 0

    names = {m.name for m in manifests}
    for manifest in sorted(manifests, key=lambda m: m.name):
        internal = sorted(manifest.dependencies & names)
        deps = ', '.join(internal) if internal else '(none)'
        print(f'  {manifest.name} ({manifest.directory})')  # noqa: T201 - CLI output
        print(f'    deps: {deps}')  # noqa: T201 - CLI output
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        msg = f'must be at least 1, got {number}'
        raise argparse.ArgumentTypeError(msg)
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        msg = f'must be greater than 0, got {number}'
        raise argparse.ArgumentTypeError(msg)
    return number


def _env_pair(value: str) -> tuple[str, str]:
    key, sep, val = value.partition('=')
    if not sep or not key:
        msg = f'expected KEY=VALUE, got {value!r}'
        raise argparse.ArgumentTypeError(msg)
    return key, val


def _add_workspace_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--root',
        default='.',
        help='Workspace root holding wsrun.toml (default: current directory).',
    )
    parser.add_argument(
        '--packages',
        metavar='DIR',
        default=None,
        help='Packages directory, relative to the root (default: ./packages).',
    )


def _add_uncheck_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        '--uncheck',
        metavar='NAMES',
        default=None,
        help="Comma-separated packages nobody waits for; '*' disables ordering.",
    )
    group.add_argument(
        '--uncheck-all',
        dest='uncheck',
        action='store_const',
        const=EXEMPT_ALL,
        help='Disable dependency ordering; run everything in one wave.',
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='wsrun',
        description='Run a command across workspace packages in dependency order.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable debug logging.',
    )
    verbosity.add_argument(
        '--quiet',
        '-q',
        action='store_true',
        help='Only print the failure summary and errors.',
    )
    parser.add_argument(
        '--json-log',
        action='store_true',
        help='Emit structured JSON logs instead of console output.',
    )

    subparsers = parser.add_subparsers(dest='command')

    run_parser = subparsers.add_parser(
        'run',
        help='Run a command in every package, dependencies first.',
        formatter_class=RichHelpFormatter,
    )
    _add_workspace_args(run_parser)
    _add_uncheck_args(run_parser)
    run_parser.add_argument(
        '--concurrency',
        '-j',
        type=_positive_int,
        default=None,
        help='Maximum commands in flight (default: half the CPUs, at least 2).',
    )
    run_parser.add_argument(
        '--timeout',
        type=_positive_float,
        default=None,
        help='Kill a package command after this many seconds.',
    )
    run_parser.add_argument(
        '--env',
        metavar='KEY=VALUE',
        type=_env_pair,
        action='append',
        default=None,
        help='Extra environment variable for every command; repeatable.',
    )
    run_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Log the commands without executing them.',
    )
    run_parser.add_argument('cmd', metavar='COMMAND', help='Command to run in each package directory.')
    run_parser.add_argument(
        'cmd_args',
        metavar='ARGS',
        nargs=argparse.REMAINDER,
        help='Arguments passed through to the command verbatim.',
    )

    plan_parser = subparsers.add_parser(
        'plan',
        help='Preview the wave partition without running anything.',
        formatter_class=RichHelpFormatter,
    )
    _add_workspace_args(plan_parser)
    _add_uncheck_args(plan_parser)
    plan_parser.add_argument(
        '--concurrency',
        '-j',
        type=_positive_int,
        default=None,
        help='Concurrency to report (default: half the CPUs, at least 2).',
    )
    plan_parser.add_argument(
        '--format',
        choices=['table', 'json'],
        default='table',
        help='Output format.',
    )

    discover_parser = subparsers.add_parser(
        'discover',
        help='List workspace packages and their in-workspace dependencies.',
        formatter_class=RichHelpFormatter,
    )
    _add_workspace_args(discover_parser)
    discover_parser.add_argument(
        '--format',
        choices=['table', 'json'],
        default='table',
        help='Output format.',
    )

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
        formatter_class=RichHelpFormatter,
    )
    explain_parser.add_argument('code', help='Error code, e.g. WR-GRAPH-DEADLOCK.')

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Arguments to parse instead of ``sys.argv[1:]``.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Console output is the human channel; logs only add warnings unless asked.
    configure_logging(
        verbose=args.verbose,
        quiet=args.quiet or not (args.verbose or args.json_log),
        json_log=args.json_log,
    )

    try:
        command = args.command
        if command == 'run':
            return asyncio.run(_cmd_run(args))
        if command == 'plan':
            return asyncio.run(_cmd_plan(args))
        if command == 'discover':
            return asyncio.run(_cmd_discover(args))
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except WsRunError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]
