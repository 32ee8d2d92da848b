from collections.abc import Callable

import pytest


class FakePrompt:
    """Scripted prompt for testing manual capture."""

    def __init__(self, lines: list[str] | None = None, interactive: bool = True):
        self.lines = list(lines or [])
        self.interactive = interactive
        self.written: list[str] = []
        self.prompts: list[str] = []

    def is_interactive(self) -> bool:
        return self.interactive

    def write(self, line: str) -> None:
        self.written.append(line)

    async def read_line(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.lines:
            return ""
        return self.lines.pop(0)

    @property
    def output(self) -> str:
        return "\n".join(self.written)


@pytest.fixture
def make_prompt() -> Callable[..., FakePrompt]:
    return FakePrompt
