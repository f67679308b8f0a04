"""CLI entry point for devotion."""

import asyncio
import sys
from pathlib import Path

import click
import structlog

from devotion import __version__
from devotion.cli.init import init_command
from devotion.cli.output import EXIT_FAILURE, EXIT_INTERRUPTED, print_error
from devotion.cli.setup import setup_command
from devotion.config.settings import GlobalConfig, global_store, local_store
from devotion.engine.branching import BranchResolver
from devotion.engine.orchestrator import WorkflowOrchestrator
from devotion.exceptions import ConfigurationError, DevotionError, WorkflowCancelled
from devotion.git.client import GitClient
from devotion.git.discovery import GitDiscovery
from devotion.git.models import RepositoryInfo
from devotion.models.domain import WorkflowReport
from devotion.providers.base import ReviewGateway
from devotion.providers.github_rest import GitHubReviewGateway, api_url_for_host
from devotion.providers.notion_rest import NotionTicketGateway
from devotion.utils.interactive import ClickPrompter, Prompter
from devotion.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (logs go to stderr)",
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.version_option(__version__, prog_name="devotion")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool) -> None:
    """devotion: move Notion tickets through branches and pull requests."""
    configure_logging(log_level, json_output=json_logs)

    ctx.ensure_object(dict)
    ctx.obj.setdefault("prompter", ClickPrompter())


cli.add_command(setup_command)
cli.add_command(init_command)


@cli.command()
@click.pass_context
def dev(ctx: click.Context) -> None:
    """Start work on a ticket: branch, publish, mark In progress."""
    _execute(ctx, "start_work")


@cli.command()
@click.pass_context
def pr(ctx: click.Context) -> None:
    """Open a pull request for the current branch and mark the ticket In review."""
    _execute(ctx, "open_for_review")


@cli.command()
@click.pass_context
def finish(ctx: click.Context) -> None:
    """Squash-merge the current branch's pull request and mark the ticket Done."""
    _execute(ctx, "finish")


def _execute(ctx: click.Context, transition: str) -> None:
    prompter: Prompter = ctx.obj["prompter"]
    try:
        report = asyncio.run(_run_transition(prompter, transition))
    except WorkflowCancelled as e:
        click.echo(click.style(e.message, fg="yellow"))
        return
    except DevotionError as e:
        print_error(e)
        log.debug(f"{transition}_error", exc_info=True)
        sys.exit(EXIT_FAILURE)
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nInterrupted by user", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error(f"{transition}_unexpected", exc_info=True)
        sys.exit(EXIT_FAILURE)

    _print_summary(report)


async def _run_transition(prompter: Prompter, transition: str) -> WorkflowReport:
    orchestrator = _create_orchestrator(prompter)
    async with orchestrator.tickets:
        return await getattr(orchestrator, transition)()


def _create_orchestrator(prompter: Prompter) -> WorkflowOrchestrator:
    """Wire the collaborators for one invocation.

    Missing configuration is not an error here; the orchestrator reports it
    as a precondition failure before any request is made.
    """
    discovery = GitDiscovery()
    is_working_copy = discovery.is_working_copy()
    root = discovery.working_dir if is_working_copy else Path.cwd()

    global_config = global_store().read()
    local_config = local_store(root).read() if is_working_copy else None

    notion_key = global_config.notion_api_key.get_secret_value() if global_config else ""

    return WorkflowOrchestrator(
        global_config=global_config,
        local_config=local_config,
        discovery=discovery,
        resolver=BranchResolver(GitClient(root)),
        tickets=NotionTicketGateway(notion_key),
        review_factory=lambda repository: _create_review_gateway(global_config, repository),
        prompter=prompter,
    )


def _create_review_gateway(global_config: GlobalConfig | None, repository: RepositoryInfo) -> ReviewGateway:
    if global_config is None:
        raise ConfigurationError("Global configuration not found. Run 'devotion setup' first.")
    return GitHubReviewGateway(
        token=global_config.github_api_key.get_secret_value(),
        owner=repository.owner,
        repo=repository.repo,
        base_url=api_url_for_host(repository.host),
    )


def _print_summary(report: WorkflowReport) -> None:
    ticket_id = report.ticket.ticket_id if report.ticket else None

    click.echo()
    if report.transition == "start_work":
        click.echo(click.style(f"Ready to work on {ticket_id} on {report.branch}", bold=True, fg="green"))
    elif report.transition == "open_for_review" and report.pull_request:
        click.echo(click.style(f"Pull request: {report.pull_request.url}", bold=True, fg="green"))
    elif report.transition == "finish":
        click.echo(click.style(f"Finished {ticket_id}", bold=True, fg="green"))

    warnings = report.warnings
    if warnings:
        click.echo(click.style(f"Completed with {len(warnings)} warning(s):", fg="yellow"))
        for outcome in warnings:
            detail = outcome.message or outcome.step.replace("_", " ")
            click.echo(f"  - {detail}" + (f": {outcome.error}" if outcome.error else ""))


if __name__ == "__main__":
    cli()
