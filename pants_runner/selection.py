"""Target selection capability.

The core never decides how a list of choices is presented; it asks a
:class:`Selector`. Hosts plug in their own implementation, the CLI uses
:class:`PromptSelector`.
"""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.prompt import IntPrompt

from .utils import console as default_console
from .utils import print_targets_table


class SelectionCancelled(Exception):
    """Raised when the user declines to pick a choice."""


class Selector:
    """Abstract selection interface."""

    def select_one(self, prompt: str, choices: Sequence[str]) -> str:
        raise NotImplementedError


class PromptSelector(Selector):
    """Numbered Rich table followed by an integer prompt."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console

    def select_one(self, prompt: str, choices: Sequence[str]) -> str:
        if not choices:
            raise SelectionCancelled("Nothing to choose from")
        if len(choices) == 1:
            return choices[0]

        print_targets_table(list(choices), title=prompt)
        index = IntPrompt.ask(
            prompt,
            console=self.console,
            choices=[str(i) for i in range(1, len(choices) + 1)],
            show_choices=False,
            default=1,
        )
        return choices[index - 1]
