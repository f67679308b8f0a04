"""
Abstract base classes for the remote systems a workflow touches.

``TicketGateway`` is the issue tracker side (tickets and their statuses),
``ReviewGateway`` the code host side (pull requests, checks, labels). Both
normalize remote payloads into the domain models of
``devotion.models.domain``, so the orchestrator never sees raw responses.

All methods are async. Genuine remote failures raise
``ExternalServiceError``; "not found" is reported as None, never as an
exception, and never confused with a failure.
"""

from abc import ABC, abstractmethod
from typing import Any

from devotion.enums import CheckState, TicketStatus
from devotion.models.domain import (
    Project,
    PullRequest,
    StepOutcome,
    Ticket,
    TicketDatabase,
    TrackerUser,
)


class TicketGateway(ABC):
    """Abstract base class for issue tracker implementations."""

    @abstractmethod
    async def list_in_progress_projects(self, projects_db_id: str) -> list[Project]:
        """List projects whose status is "in progress".

        Args:
            projects_db_id: Id of the projects database

        Returns:
            Matching projects, possibly empty
        """
        pass

    @abstractmethod
    async def find_tickets_database(self, project_page_id: str) -> str | None:
        """Locate the tickets database that belongs to a project page.

        Returns:
            Database id, or None if the project has no development database
        """
        pass

    @abstractmethod
    async def get_database(self, database_id: str) -> TicketDatabase:
        """Read the schema of a tickets database (prefix, type colours)."""
        pass

    @abstractmethod
    async def list_workable_tickets(self, database_id: str) -> list[Ticket]:
        """List tickets that work can be started on (backlog or in progress)."""
        pass

    @abstractmethod
    async def find_ticket(self, database_id: str, ticket_id: str) -> Ticket | None:
        """Find a ticket by its ``PREFIX-NUMBER`` identifier.

        Returns:
            The ticket, or None when no ticket carries that identifier
        """
        pass

    @abstractmethod
    async def update_status(self, page_id: str, status: TicketStatus) -> None:
        """Set the status of a ticket.

        Raises:
            ValueError: If ``status`` is UNKNOWN
            ExternalServiceError: If the tracker rejects the update
        """
        pass

    @abstractmethod
    async def update_pull_request_link(self, page_id: str, url: str) -> bool:
        """Store the pull request URL on a ticket.

        Returns:
            False when the ticket has no property to hold the link
        """
        pass

    @abstractmethod
    async def update_assignee(self, page_id: str, user_id: str) -> bool:
        """Assign a tracker user to a ticket.

        Returns:
            False when the ticket has no assignee property
        """
        pass

    @abstractmethod
    async def list_users(self) -> list[TrackerUser]:
        """List human members of the tracker workspace."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    async def __aenter__(self) -> "TicketGateway":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class ReviewGateway(ABC):
    """Abstract base class for code host implementations.

    An instance is scoped to one ``owner/repo``.
    """

    @abstractmethod
    async def find_existing(self, head: str, base: str) -> PullRequest | None:
        """Find an open pull request from ``head`` into ``base``.

        Returns:
            The first match, or None when there is none

        Raises:
            ExternalServiceError: If the lookup itself fails
        """
        pass

    @abstractmethod
    async def create(self, head: str, base: str, title: str, body: str) -> PullRequest:
        """Open a pull request."""
        pass

    @abstractmethod
    async def get_details(self, number: int) -> PullRequest:
        """Fetch a pull request including mergeability."""
        pass

    @abstractmethod
    async def get_aggregated_status(self, head_sha: str) -> CheckState:
        """Aggregate check runs and legacy statuses of a commit."""
        pass

    @abstractmethod
    async def merge(self, number: int, title: str, body: str) -> None:
        """Squash-merge a pull request."""
        pass

    @abstractmethod
    async def list_commit_messages(self, number: int) -> list[str]:
        """First lines of the commit messages of a pull request."""
        pass

    @abstractmethod
    async def ensure_label(self, name: str, color: str) -> StepOutcome:
        """Create a label unless it exists. Never raises for remote errors."""
        pass

    @abstractmethod
    async def add_labels(self, number: int, labels: list[str]) -> None:
        """Attach labels to a pull request."""
        pass

    @abstractmethod
    async def assign(self, number: int, logins: list[str]) -> None:
        """Add assignees to a pull request."""
        pass

    @abstractmethod
    async def get_authenticated_login(self) -> str:
        """Login of the user the API token belongs to."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    async def __aenter__(self) -> "ReviewGateway":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
