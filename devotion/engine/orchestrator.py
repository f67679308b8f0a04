"""
Workflow orchestrator for the three ticket transitions.

This module provides the WorkflowOrchestrator class, which coordinates the
issue tracker, the git working copy and the code host for one unit of work:

- ``start_work``: pick a ticket, get onto its branch, mark it In progress
- ``open_for_review``: push, open (or find) the pull request, mark In review
- ``finish``: gate, confirm and squash-merge the pull request, clean up,
  mark Done

Nothing is persisted between invocations. Every transition re-derives the
state from the three systems, so rerunning a transition after a partial
failure resumes it instead of duplicating work.

Step Semantics:
    Fatal steps (branch creation, pushes, pull request creation, the merge)
    raise and stop the transition. Best-effort steps (labels, assignees,
    link write-back, post-merge cleanup) never raise; their failure is
    recorded as a non-fatal ``StepOutcome`` and the transition continues.

Example:
    >>> orchestrator = WorkflowOrchestrator(
    ...     global_config, local_config, discovery, resolver, notion,
    ...     review_factory=make_review_gateway, prompter=ClickPrompter(),
    ... )
    >>> report = await orchestrator.open_for_review()
    >>> report.pull_request.url
    'https://github.com/acme/shop/pull/7'
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from devotion.config.settings import GlobalConfig, LocalConfig
from devotion.engine.branching import BranchResolver
from devotion.enums import CheckState, TicketStatus
from devotion.exceptions import (
    DevotionError,
    MergeBlockedError,
    PreconditionError,
    WorkflowCancelled,
    WorkflowError,
)
from devotion.git.discovery import GitDiscovery
from devotion.git.models import RepositoryInfo
from devotion.identifiers import (
    branch_prefix,
    build_branch_name,
    derive_prefix,
    extract_ticket_id,
    sanitize,
    suggest_description,
)
from devotion.models.domain import PullRequest, StepOutcome, Ticket, WorkflowReport
from devotion.providers.base import ReviewGateway, TicketGateway
from devotion.utils.colors import tracker_color_to_hex
from devotion.utils.interactive import Prompter

log = structlog.get_logger(__name__)

NO_COMMITS_BODY = "* No commit messages found"

ReviewGatewayFactory = Callable[[RepositoryInfo], ReviewGateway]


@dataclass
class BranchContext:
    """The checked-out branch and the ticket identifier it carries."""

    branch: str
    ticket_id: str


def ticket_link(ticket: Ticket) -> str:
    """Short web link to a ticket page."""
    return f"https://notion.so/{ticket.page_id.replace('-', '')}"


def squash_commit_body(messages: list[str]) -> str:
    """Default body of the squash commit: one bullet per commit."""
    return "\n".join(f"* {message}" for message in messages) or NO_COMMITS_BODY


def _validate_description(value: str) -> str | None:
    if not sanitize(value):
        return "Description must contain at least one letter or digit"
    return None


class WorkflowOrchestrator:
    """Coordinate tracker, git and code host through the ticket transitions.

    An orchestrator is built per command invocation with all collaborators
    passed in explicitly.

    Attributes:
        global_config: Credentials and projects database (None if not set up)
        local_config: Tickets database and development branch (None if the
            working copy is not initialized)
        discovery: Working copy discovery
        resolver: Branch operations
        tickets: Issue tracker gateway
        review_factory: Builds a code host gateway for a repository
        prompter: User interaction
    """

    def __init__(
        self,
        global_config: GlobalConfig | None,
        local_config: LocalConfig | None,
        discovery: GitDiscovery,
        resolver: BranchResolver,
        tickets: TicketGateway,
        review_factory: ReviewGatewayFactory,
        prompter: Prompter,
    ) -> None:
        self.global_config = global_config
        self.local_config = local_config
        self.discovery = discovery
        self.resolver = resolver
        self.tickets = tickets
        self.review_factory = review_factory
        self.prompter = prompter

    @property
    def _local(self) -> LocalConfig:
        assert self.local_config is not None
        return self.local_config

    # ========================================================================
    # Preconditions
    # ========================================================================

    async def ensure_preconditions(self, needs_ticket_branch: bool = False) -> BranchContext | None:
        """Check everything a transition needs before it mutates anything.

        Args:
            needs_ticket_branch: Also require a checked-out branch whose name
                carries a ticket identifier

        Returns:
            The branch context when ``needs_ticket_branch`` is set, else None

        Raises:
            PreconditionError: If any requirement is not met
        """
        if not self.discovery.is_working_copy():
            raise PreconditionError("Not a git repository. Run devotion inside a working copy.")
        if self.global_config is None:
            raise PreconditionError("Global configuration not found. Run 'devotion setup' first.")
        if self.local_config is None:
            raise PreconditionError("Project is not initialized. Run 'devotion init' first.")

        if not needs_ticket_branch:
            return None

        branch = await self.resolver.current()
        if not branch:
            raise PreconditionError("No branch is checked out (HEAD is detached)")

        ticket_id = extract_ticket_id(branch)
        if not ticket_id:
            raise PreconditionError(f"Could not extract a ticket ID from branch '{branch}'")

        log.debug("preconditions_met", branch=branch, ticket_id=ticket_id)
        return BranchContext(branch=branch, ticket_id=ticket_id)

    async def _require_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self.tickets.find_ticket(self._local.tickets_database_id, ticket_id)
        if ticket is None:
            raise PreconditionError(f"Could not find ticket {ticket_id} in the tickets database")
        return ticket

    # ========================================================================
    # Transitions
    # ========================================================================

    async def start_work(self) -> WorkflowReport:
        """Start (or resume) work on a ticket.

        Reuses the ticket's branch when one exists locally or on ``origin``;
        otherwise creates it from the up-to-date development branch and
        publishes it. Moves the ticket to In progress unless it already is.
        """
        await self.ensure_preconditions()
        report = WorkflowReport(transition="start_work")

        tickets = await self.tickets.list_workable_tickets(self._local.tickets_database_id)
        if not tickets:
            raise PreconditionError("No tickets in Backlog or In progress")

        ticket = self.prompter.select("Select a ticket to work on", tickets, label=lambda t: t.label)
        report.ticket = ticket
        if not ticket.ticket_id:
            raise PreconditionError(f"Ticket '{ticket.title}' has no ticket ID")

        log.info("start_work", ticket_id=ticket.ticket_id, status=str(ticket.status))

        branch = await self.resolver.find_by_ticket_id(ticket.ticket_id)
        if branch:
            await self.resolver.switch_to(branch)
            await self.resolver.pull()
            self._record(report, StepOutcome.success("switch_branch", f"Switched to {branch} and pulled", fatal=True))
        else:
            category = derive_prefix(ticket.type)
            description = self.prompter.text(
                f"Branch description ({branch_prefix(category, ticket.ticket_id)}...)",
                default=suggest_description(ticket.title) or None,
                validate=_validate_description,
            )
            branch = build_branch_name(category, ticket.ticket_id, description)

            await self.resolver.create_from(branch, self._local.development_branch)
            self._record(report, StepOutcome.success("create_branch", f"Created {branch}", fatal=True))

            await self.resolver.publish(branch)
            self._record(report, StepOutcome.success("publish_branch", f"Pushed {branch} to origin", fatal=True))

        report.branch = branch
        await self._set_status(report, ticket, TicketStatus.IN_PROGRESS, fatal=True)

        user_id = self.global_config.user_id if self.global_config else None
        if self._local.assign_on_start and user_id:
            await self._best_effort(
                report,
                "assign_ticket",
                self._assign_ticket(ticket, user_id),
                f"Assigned {ticket.ticket_id} to you",
            )

        return report

    async def open_for_review(self) -> WorkflowReport:
        """Push the current branch and open its pull request.

        When an open pull request from this branch already exists, only the
        ticket status is brought to In review; no second pull request is
        ever created.
        """
        context = await self.ensure_preconditions(needs_ticket_branch=True)
        assert context is not None
        report = WorkflowReport(transition="open_for_review", branch=context.branch)

        ticket = await self._require_ticket(context.ticket_id)
        report.ticket = ticket

        await self.resolver.push_current()
        self._record(report, StepOutcome.success("push_branch", f"Pushed {context.branch}", fatal=True))

        repository = self.discovery.parse_repository()
        development = self._local.development_branch

        async with self.review_factory(repository) as review:
            existing = await review.find_existing(context.branch, development)
            if existing:
                report.pull_request = existing
                self._record(
                    report,
                    StepOutcome.skipped("create_pull_request", f"Pull request already exists: {existing.url}"),
                )
                await self._set_status(report, ticket, TicketStatus.IN_REVIEW, fatal=True)
                return report

            text = self.prompter.text("Pull request title", default=ticket.title)
            title = f"{context.ticket_id}: {text.strip() or ticket.title}"
            body = f"[{context.ticket_id}: {ticket.title}]({ticket_link(ticket)})"

            pr = await review.create(context.branch, development, title, body)
            report.pull_request = pr
            self._record(report, StepOutcome.success("create_pull_request", f"Opened {pr.title}: {pr.url}", fatal=True))

            if ticket.type:
                await self._label_pull_request(report, review, pr, ticket.type)
            else:
                self._record(report, StepOutcome.skipped("label_pull_request", "Ticket has no type"))

            await self._best_effort(report, "assign_pull_request", self._assign_self(review, pr), "Assigned you")

        await self._best_effort(
            report,
            "link_pull_request",
            self._write_link(ticket, pr),
            f"Linked the pull request on {ticket.ticket_id}",
        )
        await self._set_status(report, ticket, TicketStatus.IN_REVIEW, fatal=True)
        return report

    async def finish(self) -> WorkflowReport:
        """Squash-merge the current branch's pull request and clean up.

        Raises:
            PreconditionError: If there is no ticket or no open pull request
            MergeBlockedError: If the pull request is merged, conflicted or
                failing checks
            WorkflowCancelled: If the user declines the merge
        """
        context = await self.ensure_preconditions(needs_ticket_branch=True)
        assert context is not None
        report = WorkflowReport(transition="finish", branch=context.branch)

        ticket = await self._require_ticket(context.ticket_id)
        report.ticket = ticket

        repository = self.discovery.parse_repository()
        development = self._local.development_branch

        async with self.review_factory(repository) as review:
            existing = await review.find_existing(context.branch, development)
            if existing is None:
                raise PreconditionError(f"No open pull request found for branch '{context.branch}'")

            pr = await review.get_details(existing.number)
            report.pull_request = pr

            checks = await self._merge_gate(review, pr)
            self._show_summary(pr, context.ticket_id, checks)
            if checks == CheckState.PENDING:
                self._record(
                    report,
                    StepOutcome(step="check_status", ok=False, message="Some checks are still pending"),
                )

            if not self.prompter.confirm("Merge this pull request with a squash commit?", default=False):
                log.info("merge_cancelled", number=pr.number)
                raise WorkflowCancelled("Merge cancelled")

            messages = await review.list_commit_messages(pr.number)
            body = self.prompter.edit(squash_commit_body(messages)).strip()

            await review.merge(pr.number, f"{pr.title} (#{pr.number})", body)
            self._record(report, StepOutcome.success("merge_pull_request", f"Merged #{pr.number}", fatal=True))

        await self._best_effort(
            report,
            "switch_to_development",
            self._switch_and_pull(development),
            f"Switched to {development} and pulled",
        )
        for outcome in await self.resolver.delete_everywhere(context.branch):
            self._record(report, outcome)
        await self._set_status(report, ticket, TicketStatus.DONE, fatal=False)
        return report

    # ========================================================================
    # Steps
    # ========================================================================

    async def _merge_gate(self, review: ReviewGateway, pr: PullRequest) -> CheckState:
        if pr.merged:
            raise MergeBlockedError(f"Pull request #{pr.number} is already merged")
        # None means GitHub is still computing mergeability
        if pr.mergeable is False:
            raise MergeBlockedError(f"Pull request #{pr.number} has merge conflicts")

        checks = await review.get_aggregated_status(pr.head_sha)
        if checks.is_blocking:
            raise MergeBlockedError(f"Checks of pull request #{pr.number} are failing ({checks})")
        return checks

    def _show_summary(self, pr: PullRequest, ticket_id: str, checks: CheckState) -> None:
        self.prompter.notify("Pull request:")
        self.prompter.notify(f"  Title: {pr.title}")
        self.prompter.notify(f"  URL: {pr.url}")
        self.prompter.notify(f"  Branch: {pr.head} -> {pr.base}")
        self.prompter.notify(f"  Ticket: {ticket_id}")
        if checks == CheckState.SUCCESS:
            self.prompter.notify("  All checks passing", level="success")

    async def _label_pull_request(
        self, report: WorkflowReport, review: ReviewGateway, pr: PullRequest, label: str
    ) -> None:
        color = tracker_color_to_hex(None)
        try:
            database = await self.tickets.get_database(self._local.tickets_database_id)
            color = tracker_color_to_hex(database.type_colors.get(label))
        except DevotionError as e:
            log.warning("label_color_lookup_failed", label=label, error=str(e))
            self.prompter.notify(f"Could not fetch the colour for {label}, using the default", level="warning")

        outcome = self._record(report, await review.ensure_label(label, color))
        if not outcome.ok:
            return

        await self._best_effort(report, "label_pull_request", review.add_labels(pr.number, [label]), f"Labelled {label}")

    async def _assign_self(self, review: ReviewGateway, pr: PullRequest) -> None:
        login = await review.get_authenticated_login()
        await review.assign(pr.number, [login])

    async def _assign_ticket(self, ticket: Ticket, user_id: str) -> None:
        if not await self.tickets.update_assignee(ticket.page_id, user_id):
            raise WorkflowError(f"Ticket {ticket.ticket_id} has no assignee property", step="assign_ticket")

    async def _write_link(self, ticket: Ticket, pr: PullRequest) -> None:
        if not await self.tickets.update_pull_request_link(ticket.page_id, pr.url):
            raise WorkflowError(f"Ticket {ticket.ticket_id} has no pull request property", step="link_pull_request")

    async def _switch_and_pull(self, branch: str) -> None:
        await self.resolver.switch_to(branch)
        await self.resolver.pull()

    async def _set_status(self, report: WorkflowReport, ticket: Ticket, status: TicketStatus, fatal: bool) -> None:
        step = "update_status"
        if ticket.status == status:
            self._record(report, StepOutcome.skipped(step, f"{ticket.ticket_id} is already {status.display}"))
            return

        action = self.tickets.update_status(ticket.page_id, status)
        message = f"Moved {ticket.ticket_id} to {status.display}"
        if fatal:
            await action
            ticket.status = status
            self._record(report, StepOutcome.success(step, message, fatal=True))
        elif (await self._best_effort(report, step, action, message)).ok:
            ticket.status = status

    async def _best_effort(
        self,
        report: WorkflowReport,
        step: str,
        action: Awaitable[Any],
        message: str,
    ) -> StepOutcome:
        """Await ``action``, recording a failure instead of raising it."""
        try:
            await action
        except DevotionError as e:
            log.warning("workflow_step_failed", transition=report.transition, step=step, error=str(e))
            return self._record(report, StepOutcome.failure(step, e))
        return self._record(report, StepOutcome.success(step, message))

    def _record(self, report: WorkflowReport, outcome: StepOutcome) -> StepOutcome:
        log.info(
            "workflow_step",
            transition=report.transition,
            step=outcome.step,
            ok=outcome.ok,
            error=outcome.error,
        )
        if outcome.ok:
            self.prompter.notify(outcome.message, level="success")
        else:
            detail = outcome.message or outcome.step.replace("_", " ")
            suffix = f": {outcome.error}" if outcome.error else ""
            self.prompter.notify(f"Warning: {detail}{suffix}", level="warning")
        return report.record(outcome)
