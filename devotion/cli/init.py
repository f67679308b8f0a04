"""CLI command that binds a working copy to a project's tickets database."""

import asyncio
import sys

import click
import structlog
from pydantic import ValidationError

from devotion.cli.output import EXIT_FAILURE, print_error, print_values
from devotion.config.settings import (
    DEFAULT_DEVELOPMENT_BRANCH,
    ConfigStore,
    GlobalConfig,
    LocalConfig,
    global_store,
    local_store,
)
from devotion.exceptions import ConfigurationError, DevotionError, PreconditionError
from devotion.git.discovery import GitDiscovery
from devotion.models.domain import Project
from devotion.providers.notion_rest import NotionTicketGateway
from devotion.utils.interactive import ClickPrompter, Prompter

log = structlog.get_logger(__name__)


def _require_global() -> GlobalConfig:
    config = global_store().read()
    if config is None:
        raise ConfigurationError("Global configuration not found. Run 'devotion setup' first.")
    return config


def _require_working_copy(discovery: GitDiscovery) -> None:
    if not discovery.is_working_copy():
        raise PreconditionError("Not a git repository. Run 'devotion init' inside a working copy.")


async def _select_tickets_database(
    notion: NotionTicketGateway, global_config: GlobalConfig, prompter: Prompter
) -> tuple[Project, str, str]:
    """Pick an in-progress project and resolve its tickets database and prefix.

    Returns:
        The project, the tickets database id and the ticket prefix
    """
    projects = await notion.list_in_progress_projects(global_config.notion_projects_db_id)
    if not projects:
        raise PreconditionError("No projects in progress found in the projects database")

    project = prompter.select("Select the project for this repository", projects, label=lambda p: p.title)

    database_id = await notion.find_tickets_database(project.page_id)
    if database_id is None:
        raise PreconditionError(f"Project '{project.title}' has no Development database")

    database = await notion.get_database(database_id)
    if not database.ticket_prefix:
        raise PreconditionError(f"Development database of '{project.title}' has no ID property with a prefix")

    return project, database_id, database.ticket_prefix


def _ask_branch(prompter: Prompter, default: str) -> str:
    return prompter.text(
        "Development branch",
        default=default,
        validate=lambda value: None if value.strip() else "Development branch must not be empty",
    ).strip()


def _save(store: ConfigStore[LocalConfig], values: dict[str, object]) -> LocalConfig:
    try:
        config = LocalConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    store.write(config)
    return config


async def _create(store: ConfigStore[LocalConfig], global_config: GlobalConfig, prompter: Prompter) -> None:
    if store.exists():
        click.echo(click.style("Project is already initialized.", fg="blue"))
        click.echo("  Use 'devotion init --show' to view the configuration")
        click.echo("  Use 'devotion init --edit' to change it")
        return

    async with NotionTicketGateway(global_config.notion_api_key.get_secret_value()) as notion:
        project, database_id, prefix = await _select_tickets_database(notion, global_config, prompter)

    branch = _ask_branch(prompter, DEFAULT_DEVELOPMENT_BRANCH)
    assign = bool(global_config.user_id) and prompter.confirm(
        "Assign tickets to yourself when starting work?", default=True
    )

    _save(
        store,
        {
            "project_id": project.page_id,
            "tickets_database_id": database_id,
            "ticket_prefix": prefix,
            "development_branch": branch,
            "assign_on_start": assign,
        },
    )
    click.echo(click.style(f"Initialized '{project.title}' (tickets {prefix}-*). Saved to {store.path}", fg="green"))


async def _edit(store: ConfigStore[LocalConfig], global_config: GlobalConfig, prompter: Prompter) -> None:
    current = store.read()
    if current is None:
        raise ConfigurationError("Project is not initialized. Run 'devotion init' first.")

    values: dict[str, object] = current.model_dump()
    if prompter.confirm("Select a different project?", default=False):
        async with NotionTicketGateway(global_config.notion_api_key.get_secret_value()) as notion:
            project, database_id, prefix = await _select_tickets_database(notion, global_config, prompter)
        values.update(project_id=project.page_id, tickets_database_id=database_id, ticket_prefix=prefix)

    values["development_branch"] = _ask_branch(prompter, current.development_branch)
    if global_config.user_id:
        values["assign_on_start"] = prompter.confirm(
            "Assign tickets to yourself when starting work?", default=current.assign_on_start
        )

    _save(store, values)
    click.echo(click.style("Project configuration updated.", fg="green"))


@click.command(name="init")
@click.option("--show", is_flag=True, help="Show the project configuration")
@click.option("--edit", is_flag=True, help="Change the project configuration")
@click.pass_context
def init_command(ctx: click.Context, show: bool, edit: bool) -> None:
    """Bind this repository to a Notion project.

    Selects an in-progress project, finds its Development database and
    stores the ticket prefix and development branch in .devotion.json at
    the root of the working copy.
    """
    prompter: Prompter = (ctx.obj or {}).get("prompter") or ClickPrompter()
    discovery = GitDiscovery()

    try:
        _require_working_copy(discovery)
        store = local_store(discovery.working_dir)

        if show:
            config = store.read()
            if config is None:
                raise ConfigurationError("Project is not initialized. Run 'devotion init' first.")
            print_values("Current project configuration:", config.masked())
            return

        global_config = _require_global()
        if edit:
            asyncio.run(_edit(store, global_config, prompter))
        else:
            asyncio.run(_create(store, global_config, prompter))
    except DevotionError as e:
        print_error(e)
        log.debug("init_error", exc_info=True)
        sys.exit(EXIT_FAILURE)
