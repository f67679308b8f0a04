"""Core domain models for the devotion workflow.

Key Models:
    - Ticket: Issue tracker ticket (status, type, PR link)
    - Project: Project page the tickets database belongs to
    - TicketDatabase: Tickets database schema (prefix, type colours)
    - PullRequest: Code host pull request with tri-state mergeability
    - StepOutcome / WorkflowReport: What a transition did

Example:
    >>> from devotion.models import Ticket
    >>> ticket = Ticket(page_id="abc", ticket_id="ABC-12", title="Fix login")
"""

from devotion.models.domain import (
    Project,
    PullRequest,
    StepOutcome,
    Ticket,
    TicketDatabase,
    TrackerUser,
    WorkflowReport,
)

__all__ = [
    "Project",
    "PullRequest",
    "StepOutcome",
    "Ticket",
    "TicketDatabase",
    "TrackerUser",
    "WorkflowReport",
]
