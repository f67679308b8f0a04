"""Terminal output helpers shared by the CLI commands."""

import click

from devotion.exceptions import DevotionError, ExternalServiceError, GitOperationError

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def print_error(error: DevotionError) -> None:
    """Print one ``Error: ...`` line (plus git's stderr for git failures)."""
    # Host errors carry their HTTP status only in the full message
    text = str(error) if isinstance(error, ExternalServiceError) else error.message
    click.echo(click.style(f"Error: {text}", fg="red"), err=True)
    if isinstance(error, GitOperationError) and error.stderr and error.stderr.strip():
        for line in error.stderr.strip().splitlines():
            click.echo(f"  {line}", err=True)


def print_values(title: str, values: dict[str, str]) -> None:
    """Print a titled block of ``name: value`` lines."""
    click.echo(click.style(title, bold=True))
    for name, value in values.items():
        click.echo(f"  {name}: {value}")
