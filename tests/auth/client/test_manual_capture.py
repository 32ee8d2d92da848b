"""Tests for manual capture of the authorization code.

Covers the parsing precedence for pasted input:
- Full redirected URL
- Raw query string
- Bare code
- Empty input and missing interactive input
"""

import io

import pytest

from gatepass.auth.client.models.errors import (
    ErrorKind,
    NoCodeProvidedError,
    NoInteractiveInputError,
    StateValidationError,
)
from gatepass.auth.client.models.flow import CallbackResult
from gatepass.auth.client.services.manual import (
    ManualCapture,
    TerminalPrompt,
    parse_manual_input,
)


class TestParseManualInput:
    def test_full_url_with_matching_state(self):
        # Act
        result = parse_manual_input("https://host/cb?code=ABC&state=S1", "S1")

        # Assert
        assert result == CallbackResult(code="ABC", state="S1")

    def test_full_url_with_mismatched_state(self):
        # Act & Assert
        with pytest.raises(StateValidationError) as exc_info:
            parse_manual_input("https://host/cb?code=ABC&state=S2", "S1")

        assert exc_info.value.kind is ErrorKind.STATE_MISMATCH

    def test_full_url_without_state_assumes_expected_state(self):
        # Act
        result = parse_manual_input("https://host/cb?code=ABC", "S1")

        # Assert
        assert result == CallbackResult(code="ABC", state="S1")

    def test_surrounding_whitespace_is_trimmed(self):
        # Act
        result = parse_manual_input(
            "  http://localhost:8080/oauth_callback?code=ABC&state=S1\n", "S1"
        )

        # Assert
        assert result.code == "ABC"

    def test_percent_encoded_values_are_decoded(self):
        # Act
        result = parse_manual_input("https://host/cb?code=a%2Fb%3D&state=S1", "S1")

        # Assert
        assert result.code == "a/b="

    def test_custom_scheme_url(self):
        # Act
        result = parse_manual_input("myapp:/cb?code=ABC&state=S1", "S1")

        # Assert
        assert result == CallbackResult(code="ABC", state="S1")

    def test_custom_scheme_url_with_stale_state(self):
        # Act & Assert
        with pytest.raises(StateValidationError):
            parse_manual_input("myapp:/cb?code=ABC&state=STALE", "S1")

    def test_host_and_port_without_http_prefix(self):
        # Act
        result = parse_manual_input(
            "localhost:8080/oauth_callback?code=X&state=S1", "S1"
        )

        # Assert
        assert result == CallbackResult(code="X", state="S1")

    def test_host_and_port_without_http_prefix_with_foreign_state(self):
        # Act & Assert
        with pytest.raises(StateValidationError):
            parse_manual_input("localhost:8080/oauth_callback?code=X&state=S2", "S1")

    def test_raw_query_string(self):
        # Act
        result = parse_manual_input("code=XYZ&state=S1", "S1")

        # Assert
        assert result == CallbackResult(code="XYZ", state="S1")

    def test_raw_query_string_with_mismatched_state(self):
        # Act & Assert
        with pytest.raises(StateValidationError):
            parse_manual_input("code=XYZ&state=S2", "S1")

    def test_raw_query_string_without_state(self):
        # Act
        result = parse_manual_input("code=XYZ&scope=read", "S1")

        # Assert
        assert result == CallbackResult(code="XYZ", state="S1")

    def test_bare_code(self):
        # Act
        result = parse_manual_input("onlycode", "S1")

        # Assert
        assert result == CallbackResult(code="onlycode", state="S1")

    def test_url_without_code_is_taken_as_bare_code(self):
        # Arrange
        pasted = "https://host/cb?state=S1"

        # Act
        result = parse_manual_input(pasted, "S1")

        # Assert - mirrors the fallback order: no code in URL, no '&', so raw text
        assert result == CallbackResult(code=pasted, state="S1")

    def test_empty_input(self):
        # Act & Assert
        with pytest.raises(NoCodeProvidedError) as exc_info:
            parse_manual_input("   \n", "S1")

        assert exc_info.value.kind is ErrorKind.NO_CODE_PROVIDED


class TestManualCapture:
    async def test_capture_reads_pasted_url(self, make_prompt):
        # Arrange
        prompt = make_prompt(["https://host/cb?code=ABC&state=S1\n"])
        capture = ManualCapture(prompt)

        # Act
        result = await capture.capture("S1")

        # Assert
        assert result == CallbackResult(code="ABC", state="S1")
        assert "Manual OAuth fallback" in prompt.output
        assert prompt.prompts == ["Paste here and press Enter: "]

    async def test_capture_without_interactive_input(self, make_prompt):
        # Arrange
        prompt = make_prompt(["ignored"], interactive=False)
        capture = ManualCapture(prompt)

        # Act & Assert
        with pytest.raises(NoInteractiveInputError) as exc_info:
            await capture.capture("S1")

        assert exc_info.value.kind is ErrorKind.NO_INTERACTIVE_INPUT
        assert prompt.prompts == []

    async def test_capture_on_end_of_input(self, make_prompt):
        # Arrange
        capture = ManualCapture(make_prompt([]))

        # Act & Assert
        with pytest.raises(NoCodeProvidedError):
            await capture.capture("S1")


class TestTerminalPrompt:
    async def test_reads_line_from_stream(self):
        # Arrange
        stdout = io.StringIO()
        prompt = TerminalPrompt(stdin=io.StringIO("pasted-code\n"), stdout=stdout)

        # Act
        line = await prompt.read_line("Paste: ")

        # Assert
        assert line == "pasted-code\n"
        assert stdout.getvalue() == "Paste: "

    def test_string_stream_is_not_interactive(self):
        # Arrange
        prompt = TerminalPrompt(stdin=io.StringIO(""), stdout=io.StringIO())

        # Act & Assert
        assert prompt.is_interactive() is False

    def test_write_appends_newline(self):
        # Arrange
        stdout = io.StringIO()
        prompt = TerminalPrompt(stdin=io.StringIO(""), stdout=stdout)

        # Act
        prompt.write("hello")

        # Assert
        assert stdout.getvalue() == "hello\n"
