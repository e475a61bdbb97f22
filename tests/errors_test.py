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

"""Tests for wsrun.errors."""

from __future__ import annotations

import io
from unittest.mock import patch

from wsrun.errors import ERRORS, E, ErrorCode, WsRunError, explain, render_error


class TestErrorCode:
    """Tests for the ErrorCode enum."""

    def test_all_codes_have_wr_prefix(self) -> None:
        """Every error code starts with 'WR-'."""
        for code in ErrorCode:
            assert code.value.startswith('WR-'), f'{code.name} does not start with WR-'

    def test_no_duplicate_values(self) -> None:
        """Error code values are unique."""
        values = [c.value for c in ErrorCode]
        assert len(values) == len(set(values)), 'Duplicate error code values found'

    def test_e_alias(self) -> None:
        """E is an alias for ErrorCode."""
        assert E is ErrorCode


class TestWsRunError:
    """Tests for WsRunError."""

    def test_fields(self) -> None:
        """Code, message and hint are exposed."""
        err = WsRunError(E.GRAPH_DEADLOCK, 'stuck', hint='break it')
        assert err.code is E.GRAPH_DEADLOCK
        assert err.hint == 'break it'
        assert err.info.message == 'stuck'
        assert str(err) == '[WR-GRAPH-DEADLOCK] stuck'

    def test_catalog_entries_match_keys(self) -> None:
        """Each catalog entry is filed under its own code."""
        for code, info in ERRORS.items():
            assert info.code is code, f'{code} maps to {info.code}'


class TestExplain:
    """Tests for explain()."""

    def test_known_code(self) -> None:
        """A catalogued code returns its message and hint."""
        text = explain('WR-GRAPH-DEADLOCK')
        assert text is not None
        assert text.startswith('WR-GRAPH-DEADLOCK: ')
        assert 'Hint:' in text

    def test_every_code_has_entry(self) -> None:
        """Every code the tool can emit has a detailed explanation."""
        for code in ErrorCode:
            text = explain(code.value)
            assert text is not None
            assert 'No detailed explanation' not in text, code
            assert 'Hint:' in text, code

    def test_code_without_entry(self) -> None:
        """A valid code without a catalog entry still explains itself."""
        with patch.dict(ERRORS, clear=True):
            assert explain('WR-COMMAND-TIMEOUT') == 'WR-COMMAND-TIMEOUT: No detailed explanation available.'


    def test_unknown_code(self) -> None:
        """An unknown code returns None."""
        assert explain('WR-NOPE') is None


class TestRenderError:
    """Tests for render_error()."""

    def test_renders_code_message_and_hint(self) -> None:
        """Output has the code, the message and the hint."""
        buf = io.StringIO()
        render_error(WsRunError(E.CONFIG_INVALID_KEY, "Unknown key 'pakages'", hint="Did you mean 'packages'?"), file=buf)
        out = buf.getvalue()
        assert 'error[WR-CONFIG-INVALID-KEY]' in out
        assert "Unknown key 'pakages'" in out
        assert "hint: Did you mean 'packages'?" in out

    def test_no_hint_line_without_hint(self) -> None:
        """No hint line is printed when the hint is empty."""
        buf = io.StringIO()
        render_error(WsRunError(E.COMMAND_FAILED, 'failed'), file=buf)
        assert 'hint' not in buf.getvalue()
