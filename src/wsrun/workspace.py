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

"""Manifest discovery for JS workspaces.

Walks the packages directory and collects every ``package.json`` that
does not live under a ``node_modules`` directory::

    packages/
    ├── core/
    │   ├── package.json          ← collected
    │   └── node_modules/
    │       └── dep/package.json  ← skipped
    └── plugins/
        └── foo/
            └── package.json      ← collected

Usage::

    from wsrun.workspace import discover_manifests

    paths = discover_manifests(Path('packages'))
"""

from __future__ import annotations

import os
from pathlib import Path

from wsrun.errors import E, WsRunError
from wsrun.logging import get_logger

logger = get_logger(__name__)

MANIFEST_FILENAME = 'package.json'

_SKIP_DIRS = frozenset({'node_modules'})


def discover_manifests(packages_dir: Path) -> list[Path]:
    """Find all ``package.json`` files below ``packages_dir``.

    Args:
        packages_dir: Directory to scan recursively.

    Returns:
        Sorted list of absolute manifest paths.

    Raises:
        WsRunError: If ``packages_dir`` is not a directory, or if it holds
            no manifests at all.
    """
    root = packages_dir.resolve()
    if not root.is_dir():
        raise WsRunError(
            code=E.WORKSPACE_NOT_FOUND,
            message=f'Packages directory {root} does not exist',
            hint="Pass --packages or set 'packages' in wsrun.toml.",
        )

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        # Pruning in place stops os.walk from descending.
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        if MANIFEST_FILENAME in filenames:
            found.append(Path(dirpath) / MANIFEST_FILENAME)

    if not found:
        raise WsRunError(
            code=E.WORKSPACE_NO_PACKAGES,
            message=f'No {MANIFEST_FILENAME} found under {root}',
            hint='Check that the packages directory contains package folders.',
        )

    result = sorted(found)
    logger.debug('discovered_manifests', root=str(root), count=len(result))
    return result


__all__ = [
    'MANIFEST_FILENAME',
    'discover_manifests',
]
