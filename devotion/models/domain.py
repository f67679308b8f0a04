"""
Domain models for the devotion workflow.

This module contains the data classes the orchestrator works with. They are
the normalized internal representation, decoded once at the gateway
boundary from the issue tracker's page payloads and the code host's pull
request objects. The orchestrator never sees raw remote payloads.

Example:
    Creating a ticket from decoded tracker data::

        ticket = Ticket(
            page_id="0f1c2d3e-...",
            ticket_id="ABC-12",
            title="Fix login",
            status=TicketStatus.BACKLOG,
            type="Bug",
        )
"""

from dataclasses import dataclass, field

from devotion.enums import TicketStatus


@dataclass
class Ticket:
    """Represents one unit of work in the issue tracker.

    Example:
        Checking whether work has already started::

            if ticket.status == TicketStatus.IN_PROGRESS:
                # no status write needed
                pass
    """

    page_id: str
    """Tracker-internal page reference used for every mutation."""

    ticket_id: str | None
    """Stable external key of the form ``PREFIX-NUMBER``.

    None when the page has no unique-id property value. Such tickets cannot
    be correlated with a branch.
    """

    title: str = "Untitled"
    """Display title. ``"Untitled"`` when the page has no title text."""

    status: TicketStatus = TicketStatus.UNKNOWN
    """Current lifecycle status; UNKNOWN for unrecognized tracker values."""

    type: str | None = None
    """Optional ticket category (e.g. "Bug", "Feature", "Dokumentation")."""

    pull_request_url: str | None = None
    """Link to the pull request, once one has been opened."""

    url: str = ""
    """Web URL of the ticket page."""

    @property
    def label(self) -> str:
        """One-line description used in selection lists."""
        return f"{self.ticket_id or 'Unknown'} - {self.title} ({self.status.display})"


@dataclass
class Project:
    """A project page in the projects database (used by ``devotion init``)."""

    page_id: str
    title: str = "Untitled"
    status: str = ""


@dataclass
class TicketDatabase:
    """Schema information about a tickets database."""

    id: str
    title: str = "Untitled Database"

    ticket_prefix: str | None = None
    """Prefix of the unique-id property (e.g. "ABC"), if the schema has one."""

    type_colors: dict[str, str] = field(default_factory=dict)
    """Ticket type option name -> tracker colour name."""


@dataclass
class TrackerUser:
    """A human member of the tracker workspace."""

    id: str
    name: str
    email: str | None = None


@dataclass
class PullRequest:
    """Represents a pull request on the code host.

    Example:
        Checking whether a merge may be attempted::

            if not pr.merged and pr.mergeable is not False:
                # None means the host is still computing mergeability
                pass
    """

    number: int
    """Human-readable PR number (e.g., #123)."""

    title: str
    """Pull request title."""

    url: str
    """Web URL to view the pull request."""

    head: str = ""
    """Source branch name."""

    base: str = ""
    """Target branch name (the development branch)."""

    body: str = ""
    """Pull request description in markdown format."""

    state: str = "open"
    """Provider state ("open", "closed")."""

    mergeable: bool | None = None
    """Tri-state mergeability.

    True/False as computed by the host. None means the host has not finished
    computing it, which callers must treat as "unknown", not as False.
    """

    merged: bool = False
    """Whether the PR has already been merged."""

    head_sha: str = ""
    """Commit SHA at the head of the source branch."""


@dataclass
class StepOutcome:
    """Result of one workflow step.

    Best-effort steps report failures through this object instead of raising,
    so they are logged and shown but never lost. ``fatal`` records whether a
    failure of this step stops the transition.
    """

    step: str
    ok: bool
    fatal: bool = False
    message: str = ""
    error: str | None = None

    @classmethod
    def success(cls, step: str, message: str = "", fatal: bool = False) -> "StepOutcome":
        return cls(step=step, ok=True, fatal=fatal, message=message)

    @classmethod
    def failure(cls, step: str, error: BaseException | str, message: str = "", fatal: bool = False) -> "StepOutcome":
        return cls(step=step, ok=False, fatal=fatal, message=message, error=str(error))

    @classmethod
    def skipped(cls, step: str, message: str) -> "StepOutcome":
        return cls(step=step, ok=True, message=message)


@dataclass
class WorkflowReport:
    """Everything a transition did, in order."""

    transition: str
    outcomes: list[StepOutcome] = field(default_factory=list)
    ticket: Ticket | None = None
    branch: str | None = None
    pull_request: PullRequest | None = None

    def record(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes.append(outcome)
        return outcome

    def steps(self, ok: bool | None = None) -> list[str]:
        """Names of recorded steps, optionally filtered by success."""
        return [o.step for o in self.outcomes if ok is None or o.ok == ok]

    @property
    def warnings(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if not o.ok and not o.fatal]
