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

"""Package manifest reader.

Loads ``package.json`` files into immutable :class:`PackageManifest`
records. File I/O goes through ``aiofiles`` so loading a large workspace
does not block the event loop.

Only the ``"dependencies"`` table feeds ordering. ``"devDependencies"``
is recorded for display but never creates an edge.

Every manifest of a run is loaded before the first command starts. A
malformed manifest raises :class:`~wsrun.errors.WsRunError` with
``WR-MANIFEST-PARSE-ERROR`` and the run is aborted, whether or not
dependency checking is enabled.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles

from wsrun.errors import E, WsRunError
from wsrun.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PackageManifest:
    """A single parsed ``package.json``.

    Attributes:
        name: The package name.
        path: Absolute path to the manifest file.
        dependencies: Names listed under ``"dependencies"``.
        dev_dependencies: Names listed under ``"devDependencies"``.
    """

    name: str
    path: Path
    dependencies: frozenset[str] = field(default_factory=frozenset)
    dev_dependencies: frozenset[str] = field(default_factory=frozenset)

    @property
    def directory(self) -> Path:
        """The package directory (the manifest's parent)."""
        return self.path.parent


def _dep_names(data: dict[str, Any], key: str, path: Path) -> frozenset[str]:  # noqa: ANN401
    section = data.get(key)
    if section is None:
        return frozenset()
    if not isinstance(section, dict):
        raise WsRunError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'"{key}" in {path} must be an object, got {type(section).__name__}',
        )
    return frozenset(section)


def parse_manifest(text: str, path: Path) -> PackageManifest:
    """Parse manifest text that was read from ``path``.

    Raises:
        WsRunError: If the text is not a JSON object with a string name.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WsRunError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'Failed to parse {path}: {exc}',
            hint=f'Check that {path} contains valid JSON.',
        ) from exc
    if not isinstance(data, dict):
        raise WsRunError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'{path} is not a JSON object',
        )

    name = data.get('name')
    if not isinstance(name, str) or not name:
        raise WsRunError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'No "name" in {path}',
            hint='Every package.json in the workspace must have a name.',
        )

    return PackageManifest(
        name=name,
        path=path,
        dependencies=_dep_names(data, 'dependencies', path),
        dev_dependencies=_dep_names(data, 'devDependencies', path),
    )


async def read_manifest(path: Path) -> PackageManifest:
    """Read and parse one manifest asynchronously."""
    try:
        async with aiofiles.open(path, encoding='utf-8') as f:
            text = await f.read()
    except UnicodeDecodeError as exc:
        raise WsRunError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'Failed to decode {path}: {exc}',
            hint=f'Check that {path} is UTF-8 encoded.',
        ) from exc
    except OSError as exc:
        raise WsRunError(
            code=E.MANIFEST_PARSE_ERROR,
            message=f'Failed to read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc
    return parse_manifest(text, path.resolve())


async def load_manifests(paths: Sequence[Path]) -> list[PackageManifest]:
    """Load every manifest in ``paths``, preserving order.

    Raises:
        WsRunError: On the first manifest that cannot be loaded.
    """
    manifests = await asyncio.gather(*(read_manifest(p) for p in paths))
    logger.debug('loaded_manifests', count=len(manifests))
    return list(manifests)


__all__ = [
    'PackageManifest',
    'load_manifests',
    'parse_manifest',
    'read_manifest',
]
