"""CLI command for the per-user global configuration."""

import asyncio
import re
import sys
from collections.abc import Callable

import click
import structlog
from pydantic import ValidationError

from devotion.cli.output import EXIT_FAILURE, print_error, print_values
from devotion.config.settings import (
    GITHUB_API_KEY_PATTERN,
    NOTION_API_KEY_PATTERN,
    ConfigStore,
    GlobalConfig,
    global_store,
    normalize_database_id,
)
from devotion.exceptions import ConfigurationError, DevotionError
from devotion.models.domain import TrackerUser
from devotion.providers.notion_rest import NotionTicketGateway
from devotion.utils.interactive import ClickPrompter

log = structlog.get_logger(__name__)


def _pattern_check(pattern: re.Pattern[str], message: str, allow_blank: bool = False) -> Callable[[str], str]:
    """Build a click ``value_proc`` that re-prompts until ``pattern`` matches."""

    def check(value: str) -> str:
        value = value.strip()
        if allow_blank and not value:
            return ""
        if not pattern.match(value):
            raise click.BadParameter(message)
        return value

    return check


def _database_id_check(allow_blank: bool = False) -> Callable[[str], str]:
    def check(value: str) -> str:
        if allow_blank and not value.strip():
            return ""
        try:
            return normalize_database_id(value)
        except ValueError as e:
            raise click.BadParameter(str(e)) from e

    return check


_NOTION_KEY_MESSAGE = "Notion API key must start with 'ntn_' or 'secret_'"
_GITHUB_KEY_MESSAGE = "GitHub API key must start with 'ghp_' or 'github_pat_'"


async def _list_users(notion_api_key: str) -> list[TrackerUser]:
    async with NotionTicketGateway(notion_api_key) as notion:
        return await notion.list_users()


def _choose_user(notion_api_key: str) -> str | None:
    """Let the user pick their Notion account; None when skipped or unavailable."""
    try:
        users = asyncio.run(_list_users(notion_api_key))
    except DevotionError as e:
        log.warning("list_users_failed", error=str(e))
        click.echo(click.style(f"Could not list Notion users ({e.message}), skipping", fg="yellow"))
        return None

    if not users:
        return None

    choices: list[TrackerUser | None] = [*users, None]
    picked = ClickPrompter().select(
        "Which Notion user are you? (used to assign tickets)",
        choices,
        label=lambda user: "Skip" if user is None else f"{user.name} <{user.email or 'no email'}>",
    )
    return picked.id if picked else None


def _save(store: ConfigStore[GlobalConfig], values: dict[str, str | None]) -> GlobalConfig:
    try:
        # model_validate skips environment overrides, so the file gets what was typed
        config = GlobalConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    store.write(config)
    return config


def _create(store: ConfigStore[GlobalConfig]) -> None:
    if store.exists():
        click.echo(click.style("Setup is already complete.", fg="blue"))
        click.echo("  Use 'devotion setup --show' to view the configuration")
        click.echo("  Use 'devotion setup --edit' to change it")
        return

    click.echo(click.style("Welcome to devotion!", bold=True, fg="cyan"))
    click.echo("Please provide the following configuration values:")
    click.echo()

    notion_key = click.prompt(
        "Notion API key", hide_input=True, value_proc=_pattern_check(NOTION_API_KEY_PATTERN, _NOTION_KEY_MESSAGE)
    )
    github_key = click.prompt(
        "GitHub API key", hide_input=True, value_proc=_pattern_check(GITHUB_API_KEY_PATTERN, _GITHUB_KEY_MESSAGE)
    )
    projects_db_id = click.prompt("Notion projects database ID", value_proc=_database_id_check())
    user_id = _choose_user(notion_key)

    _save(
        store,
        {
            "notion_api_key": notion_key,
            "github_api_key": github_key,
            "notion_projects_db_id": projects_db_id,
            "user_id": user_id,
        },
    )
    click.echo(click.style(f"Setup complete. Configuration saved to {store.path}", fg="green"))


def _require(store: ConfigStore[GlobalConfig]) -> GlobalConfig:
    config = store.read()
    if config is None:
        raise ConfigurationError("No global configuration found. Run 'devotion setup' first.")
    return config


def _show(store: ConfigStore[GlobalConfig]) -> None:
    print_values("Current global configuration:", _require(store).masked())


def _edit(store: ConfigStore[GlobalConfig]) -> None:
    current = _require(store)

    click.echo(click.style("Edit global configuration", bold=True))
    click.echo("Leave blank to keep the current value.")
    click.echo()

    notion_key = click.prompt(
        "Notion API key",
        default="",
        show_default=False,
        hide_input=True,
        value_proc=_pattern_check(NOTION_API_KEY_PATTERN, _NOTION_KEY_MESSAGE, allow_blank=True),
    )
    github_key = click.prompt(
        "GitHub API key",
        default="",
        show_default=False,
        hide_input=True,
        value_proc=_pattern_check(GITHUB_API_KEY_PATTERN, _GITHUB_KEY_MESSAGE, allow_blank=True),
    )
    projects_db_id = click.prompt(
        f"Notion projects database ID (current: {current.notion_projects_db_id})",
        default="",
        show_default=False,
        value_proc=_database_id_check(allow_blank=True),
    )

    notion_key = notion_key or current.notion_api_key.get_secret_value()
    user_id = current.user_id
    if click.confirm("Change the Notion user?", default=user_id is None):
        user_id = _choose_user(notion_key)

    _save(
        store,
        {
            "notion_api_key": notion_key,
            "github_api_key": github_key or current.github_api_key.get_secret_value(),
            "notion_projects_db_id": projects_db_id or current.notion_projects_db_id,
            "user_id": user_id,
        },
    )
    click.echo(click.style("Global configuration updated.", fg="green"))


@click.command(name="setup")
@click.option("--show", is_flag=True, help="Show the current configuration (keys masked)")
@click.option("--edit", is_flag=True, help="Change the existing configuration")
def setup_command(show: bool, edit: bool) -> None:
    """Configure API keys and the Notion projects database.

    \b
    The configuration is stored in ~/.config/devotion.global.json.
    DEVOTION_NOTION_API_KEY, DEVOTION_GITHUB_API_KEY and
    DEVOTION_NOTION_PROJECTS_DB_ID override its values.
    """
    store = global_store()
    try:
        if show:
            _show(store)
        elif edit:
            _edit(store)
        else:
            _create(store)
    except DevotionError as e:
        print_error(e)
        log.debug("setup_error", exc_info=True)
        sys.exit(EXIT_FAILURE)
