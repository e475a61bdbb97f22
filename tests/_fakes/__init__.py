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

"""Shared test fakes for wsrun.

Usage::

    from tests._fakes import FakeExecutor, RecordingObserver, make_manifest, write_package

    execute = FakeExecutor(fail={'b'})
    result = await WaveScheduler(items, graph, concurrency=2).run(execute)
    assert execute.peak <= 2
"""

from tests._fakes._executor import FakeExecutor as FakeExecutor
from tests._fakes._observer import RecordingObserver as RecordingObserver
from tests._fakes._workspace import (
    make_item as make_item,
    make_manifest as make_manifest,
    write_package as write_package,
)

__all__ = [
    'FakeExecutor',
    'RecordingObserver',
    'make_item',
    'make_manifest',
    'write_package',
]
