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

"""Tests for wsrun.workspace: manifest discovery."""

from __future__ import annotations

from pathlib import Path

import pytest
from wsrun.errors import E, WsRunError
from wsrun.workspace import discover_manifests

from tests._fakes import write_package


class TestDiscoverManifests:
    """Tests for discover_manifests()."""

    def test_finds_nested_manifests_sorted(self, tmp_path: Path) -> None:
        """Manifests at any depth are found, sorted and absolute."""
        packages = tmp_path / 'packages'
        write_package(packages, 'b')
        write_package(packages, 'a')
        write_package(packages / 'group', 'nested')
        found = discover_manifests(packages)
        expected = sorted([
            (packages / 'a' / 'package.json').resolve(),
            (packages / 'b' / 'package.json').resolve(),
            (packages / 'group' / 'nested' / 'package.json').resolve(),
        ])
        if found != expected:
            raise AssertionError(f'Unexpected manifests: {found}')
        if not all(p.is_absolute() for p in found):
            raise AssertionError('Paths must be absolute')

    def test_skips_node_modules(self, tmp_path: Path) -> None:
        """Anything below node_modules is ignored."""
        packages = tmp_path / 'packages'
        write_package(packages, 'a')
        write_package(packages / 'a' / 'node_modules', 'left-pad')
        write_package(packages / 'node_modules', 'react')
        found = discover_manifests(packages)
        if [p.parent.name for p in found] != ['a']:
            raise AssertionError(f'node_modules must be skipped: {found}')

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A missing packages directory is WORKSPACE_NOT_FOUND."""
        with pytest.raises(WsRunError) as exc_info:
            discover_manifests(tmp_path / 'packages')
        if exc_info.value.code != E.WORKSPACE_NOT_FOUND:
            raise AssertionError(f'Unexpected code: {exc_info.value.code}')

    def test_no_manifests(self, tmp_path: Path) -> None:
        """An empty packages directory is WORKSPACE_NO_PACKAGES."""
        (tmp_path / 'packages' / 'empty').mkdir(parents=True)
        with pytest.raises(WsRunError) as exc_info:
            discover_manifests(tmp_path / 'packages')
        if exc_info.value.code != E.WORKSPACE_NO_PACKAGES:
            raise AssertionError(f'Unexpected code: {exc_info.value.code}')
