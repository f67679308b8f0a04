"""Interactive prompting.

The orchestrator never talks to the terminal directly. It asks a
``Prompter`` to select, type, confirm or edit, so transitions can be driven
by scripted answers in tests and by ``ClickPrompter`` on a real terminal.

Example:
    >>> prompter = ClickPrompter()
    >>> ticket = prompter.select("Select a ticket", tickets, label=lambda t: t.label)
    >>> if prompter.confirm("Merge this pull request?"):
    ...     body = prompter.edit("* Fix login")
"""

from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

import click

T = TypeVar("T")


class Prompter(Protocol):
    """Protocol for the user interaction a workflow transition needs."""

    def select(self, message: str, choices: Sequence[T], label: Callable[[T], str] = str) -> T:
        """Let the user pick one of ``choices`` (non-empty)."""
        ...

    def text(
        self,
        message: str,
        default: str | None = None,
        validate: Callable[[str], str | None] | None = None,
    ) -> str:
        """Ask for a line of text.

        Args:
            message: Prompt shown to the user
            default: Value used when the user just presses enter
            validate: Returns an error message for invalid input, or None
        """
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        ...

    def edit(self, text: str) -> str:
        """Open ``text`` in an editor and return the edited result."""
        ...

    def notify(self, message: str, level: str = "info") -> None:
        """Show a progress message (level: info, success or warning)."""
        ...


class ClickPrompter:
    """Prompter backed by click's terminal helpers."""

    def select(self, message: str, choices: Sequence[T], label: Callable[[T], str] = str) -> T:
        if not choices:
            raise ValueError("Nothing to select from")

        click.echo(click.style(message, bold=True))
        for index, choice in enumerate(choices, start=1):
            click.echo(f"  {index}. {label(choice)}")

        picked = click.prompt(
            "Enter a number",
            type=click.IntRange(1, len(choices)),
            default=1,
        )
        return choices[picked - 1]

    def text(
        self,
        message: str,
        default: str | None = None,
        validate: Callable[[str], str | None] | None = None,
    ) -> str:
        while True:
            value = click.prompt(message, default=default, type=str)
            error = validate(value) if validate else None
            if error is None:
                return value
            click.echo(click.style(error, fg="red"), err=True)

    def confirm(self, message: str, default: bool = False) -> bool:
        return click.confirm(message, default=default)

    def edit(self, text: str) -> str:
        edited = click.edit(text)
        # None means the editor was closed without saving
        return text if edited is None else edited

    def notify(self, message: str, level: str = "info") -> None:
        click.echo(click.style(message, fg=_LEVEL_COLORS.get(level)))


_LEVEL_COLORS = {"info": "blue", "success": "green", "warning": "yellow"}
