"""Manual capture of the authorization code.

Fallback for when the callback listener does not receive the redirect: the
user pastes either the full redirected URL, its query string, or just the
code value.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Protocol
from urllib.parse import parse_qsl, urlparse

from gatepass.auth.client.models.errors import (
    NoCodeProvidedError,
    NoInteractiveInputError,
    StateValidationError,
)
from gatepass.auth.client.models.flow import CallbackResult

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "",
    "Manual OAuth fallback",
    "1) Open the printed URL in your browser",
    "2) After authorizing, copy either:",
    "   - the full redirected URL you land on, OR",
    "   - just the value of the 'code' parameter",
)
PASTE_PROMPT = "Paste here and press Enter: "


class Prompt(Protocol):
    """Interactive input/output used by the login flow."""

    def is_interactive(self) -> bool:
        """True if a human can answer prompts."""
        ...

    def write(self, line: str) -> None:
        """Write one line of user-facing output."""
        ...

    async def read_line(self, prompt: str) -> str:
        """Show ``prompt`` and return one line of input ('' on EOF)."""
        ...


class TerminalPrompt:
    """Prompt backed by the process's standard streams."""

    def __init__(self, stdin=None, stdout=None):
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout

    def is_interactive(self) -> bool:
        try:
            return self._stdin.isatty()
        except (AttributeError, ValueError):
            return False

    def write(self, line: str) -> None:
        print(line, file=self._stdout, flush=True)

    async def read_line(self, prompt: str) -> str:
        self._stdout.write(prompt)
        self._stdout.flush()
        # Blocking read kept off the event loop
        return await asyncio.to_thread(self._stdin.readline)


def _extract(
    params: list[tuple[str, str]], expected_state: str, source: str
) -> CallbackResult | None:
    values = dict(params)
    code = values.get("code")
    if not code:
        return None

    state = values.get("state")
    if state is None:
        logger.warning(
            f"Pasted {source} has no state parameter; assuming the expected state"
        )
        state = expected_state

    if state != expected_state:
        raise StateValidationError(f"State mismatch in pasted {source}")

    return CallbackResult(code=code, state=state)


def parse_manual_input(raw: str, expected_state: str) -> CallbackResult:
    """Extract the code/state pair from pasted text.

    Tried in order: an absolute URL, a raw query string, a bare code.

    Raises:
        StateValidationError: If a pasted state differs from ``expected_state``
        NoCodeProvidedError: If the input is empty
    """
    text = raw.strip()

    parsed = urlparse(text)
    # Any absolute URL, including custom schemes and host:port without http://
    if parsed.scheme:
        result = _extract(
            parse_qsl(parsed.query, keep_blank_values=True), expected_state, "URL"
        )
        if result is not None:
            return result

    if "=" in text and "&" in text:
        result = _extract(
            parse_qsl(text, keep_blank_values=True), expected_state, "parameters"
        )
        if result is not None:
            return result

    if text:
        # A bare code carries no state of its own
        return CallbackResult(code=text, state=expected_state)

    raise NoCodeProvidedError("No code provided")


class ManualCapture:
    """Reads the authorization code from an interactive prompt."""

    def __init__(self, prompt: Prompt | None = None):
        self.prompt = prompt or TerminalPrompt()

    async def capture(self, expected_state: str) -> CallbackResult:
        """Ask the user for the redirected URL or code.

        Raises:
            NoInteractiveInputError: If no interactive input is available
            StateValidationError: If the pasted state does not match
            NoCodeProvidedError: If nothing usable was pasted
        """
        if not self.prompt.is_interactive():
            raise NoInteractiveInputError(
                "No interactive input available. Re-run with a TTY and paste "
                "the code when prompted."
            )

        for line in INSTRUCTIONS:
            self.prompt.write(line)

        raw = await self.prompt.read_line(PASTE_PROMPT)
        return parse_manual_input(raw, expected_state)
