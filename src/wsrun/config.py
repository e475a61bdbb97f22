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

"""Configuration reader for wsrun.

Reads the optional ``wsrun.toml`` from the workspace root and returns a
validated :class:`RunConfig`. A missing file is not an error: every key
has a default, and CLI flags override whatever the file sets.

Validation Pipeline::

    wsrun.toml
    ┌───────────────────┐
    │ concurency = 4    │  ← typo!
    └────────┬──────────┘
             │
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 1. Unknown key   │────→│ WR-CONFIG-INVALID-KEY:       │
    │    detection     │     │ hint: "Did you mean          │
    └────────┬─────────┘     │       'concurrency'?"        │
             │               └──────────────────────────────┘
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 2. Type check    │────→│ WR-CONFIG-INVALID-VALUE:     │
    │    each value    │     │ 'timeout' must be a number   │
    └────────┬─────────┘     └──────────────────────────────┘
             │
             ▼
    ┌──────────────────┐
    │ RunConfig()      │  ← frozen dataclass, ready to use
    └──────────────────┘

Supported keys::

    packages    = "./packages"     # directory scanned for package.json
    uncheck     = "core,utils"     # or "*" / true to skip ordering entirely
    concurrency = 4                # overrides max(round(cpus / 2), 2)
    timeout     = 600              # seconds per command; unset = no limit
    exclude     = ["example-*"]    # package-name globs left out of the run

    [env]                          # extra environment for every command
    NODE_ENV = "production"
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from wsrun.errors import E, WsRunError
from wsrun.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILENAME = 'wsrun.toml'

DEFAULT_PACKAGES_DIR = './packages'

VALID_KEYS: frozenset[str] = frozenset({
    'concurrency',
    'env',
    'exclude',
    'packages',
    'timeout',
    'uncheck',
})

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'packages': str,
    'uncheck': (bool, str),
    'concurrency': int,
    'timeout': (int, float),
    'exclude': list,
    'env': dict,
}


@dataclass(frozen=True)
class RunConfig:
    """Settings for a wsrun invocation.

    Attributes:
        packages: Packages directory, relative to the workspace root.
        uncheck: Exemption value. ``True`` or ``"*"`` disables ordering,
            a comma-separated string exempts those packages, ``None``
            keeps full dependency checking.
        concurrency: Fixed concurrency limit, or ``None`` to derive it
            from the host CPU count.
        timeout: Per-command timeout in seconds, or ``None`` for none.
        exclude: Package-name glob patterns excluded from the run.
        env: Extra environment variables for every package command.
        config_path: Path of the file this was loaded from, if any.
    """

    packages: str = DEFAULT_PACKAGES_DIR
    uncheck: bool | str | None = None
    concurrency: int | None = None
    timeout: float | None = None
    exclude: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    config_path: Path | None = None


def _validate_value_type(key: str, value: Any) -> None:  # noqa: ANN401 - dynamic config values
    """Raise if a config value has the wrong type."""
    expected = _TYPE_MAP[key]
    # bool is an int subclass; only 'uncheck' accepts it.
    if isinstance(value, bool) and key != 'uncheck':
        ok = False
    else:
        ok = isinstance(value, expected)
    if not ok:
        if isinstance(expected, type):
            type_name = expected.__name__
        else:
            type_name = ' or '.join(t.__name__ for t in expected)
        raise WsRunError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {CONFIG_FILENAME}.',
        )


def _validate_values(raw: dict[str, Any]) -> None:  # noqa: ANN401
    """Range and content checks that go beyond the type map."""
    concurrency = raw.get('concurrency')
    if concurrency is not None and concurrency < 1:
        raise WsRunError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'concurrency' must be at least 1, got {concurrency}",
        )
    timeout = raw.get('timeout')
    if timeout is not None and timeout <= 0:
        raise WsRunError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'timeout' must be positive, got {timeout}",
        )
    for item in raw.get('exclude', []):
        if not isinstance(item, str):
            raise WsRunError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'exclude' entries must be strings, got {type(item).__name__}",
            )
    for key, value in raw.get('env', {}).items():
        if not isinstance(value, str):
            raise WsRunError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'env.{key}' must be a string, got {type(value).__name__}",
                hint='Quote environment values in wsrun.toml, e.g. PORT = "8080".',
            )


def load_config(workspace_root: Path) -> RunConfig:
    """Load and validate ``wsrun.toml`` from ``workspace_root``.

    Args:
        workspace_root: Directory that may contain ``wsrun.toml``.

    Returns:
        A validated :class:`RunConfig`. Defaults when the file is absent.

    Raises:
        WsRunError: If the file is unreadable, not valid TOML, or holds
            unknown keys or badly typed values.
    """
    config_path = workspace_root / CONFIG_FILENAME
    if not config_path.is_file():
        logger.debug('no_wsrun_config', path=str(config_path))
        return RunConfig()

    try:
        text = config_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as exc:
        raise WsRunError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to read {config_path}: {exc}',
        ) from exc

    try:
        doc = tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise WsRunError(
            code=E.CONFIG_PARSE_ERROR,
            message=f'Failed to parse {config_path}: {exc}',
            hint=f'Check that {config_path} contains valid TOML.',
        ) from exc

    # unwrap() turns tomlkit items into plain Python values.
    raw: dict[str, Any] = doc.unwrap()  # noqa: ANN401

    for key in raw:
        if key not in VALID_KEYS:
            suggestion = difflib.get_close_matches(key, VALID_KEYS, n=1, cutoff=0.6)
            hint = f"Did you mean '{suggestion[0]}'?" if suggestion else f'Valid keys: {", ".join(sorted(VALID_KEYS))}.'
            raise WsRunError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in {CONFIG_FILENAME}",
                hint=hint,
            )

    for key, value in raw.items():
        _validate_value_type(key, value)
    _validate_values(raw)

    if 'timeout' in raw:
        raw['timeout'] = float(raw['timeout'])

    logger.debug('loaded_wsrun_config', path=str(config_path), keys=sorted(raw))
    return RunConfig(**raw, config_path=config_path)


__all__ = [
    'CONFIG_FILENAME',
    'DEFAULT_PACKAGES_DIR',
    'RunConfig',
    'VALID_KEYS',
    'load_config',
]
