"""Enumerations for ticket statuses, branch categories and check states."""

import re
from enum import Enum

_EMOJI_PREFIX = re.compile(r"^[^\w]+", re.UNICODE)


class TicketStatus(str, Enum):
    """Lifecycle status of a ticket in the issue tracker.

    The set is closed: values read from the tracker that match none of the
    known labels become UNKNOWN rather than failing. UNKNOWN is never
    written back.
    """

    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Status option name as it appears in the tracker."""
        if self == TicketStatus.UNKNOWN:
            raise ValueError("UNKNOWN has no tracker label")
        return _STATUS_LABELS[self]

    @property
    def display(self) -> str:
        """Human-readable name without the emoji marker."""
        if self == TicketStatus.UNKNOWN:
            return "Unknown"
        return _normalize(_STATUS_LABELS[self]).capitalize()

    @classmethod
    def from_label(cls, label: str | None) -> "TicketStatus":
        """Map a tracker status option name back to a status.

        Matches the exact label first, then a case-insensitive comparison
        with any leading emoji removed ("In Progress" == "🏗 In progress").
        """
        if not label:
            return cls.UNKNOWN
        for status, known in _STATUS_LABELS.items():
            if label == known:
                return status
        wanted = _normalize(label)
        for status, known in _STATUS_LABELS.items():
            if wanted == _normalize(known):
                return status
        return cls.UNKNOWN


def _normalize(label: str) -> str:
    return _EMOJI_PREFIX.sub("", label).strip().lower()


_STATUS_LABELS: dict[TicketStatus, str] = {
    TicketStatus.BACKLOG: "📋 Backlog",
    TicketStatus.IN_PROGRESS: "🏗 In progress",
    TicketStatus.IN_REVIEW: "👀 In review",
    TicketStatus.DONE: "✅ Done",
}

# Statuses offered when starting work on a ticket
WORKABLE_STATUSES = (TicketStatus.BACKLOG, TicketStatus.IN_PROGRESS)


class BranchCategory(str, Enum):
    """Branch name category, derived from the ticket type."""

    FEATURE = "feature"
    BUGFIX = "bugfix"
    DOC = "doc"

    def __str__(self) -> str:
        return self.value


class BranchPresence(str, Enum):
    """Where a branch exists right now."""

    ABSENT = "absent"
    LOCAL_ONLY = "local-only"
    REMOTE_ONLY = "remote-only"
    LOCAL_AND_REMOTE = "local-and-remote"

    def __str__(self) -> str:
        return self.value

    @property
    def is_local(self) -> bool:
        return self in (BranchPresence.LOCAL_ONLY, BranchPresence.LOCAL_AND_REMOTE)

    @property
    def is_remote(self) -> bool:
        return self in (BranchPresence.REMOTE_ONLY, BranchPresence.LOCAL_AND_REMOTE)


class CheckState(str, Enum):
    """Aggregated CI verdict for a commit."""

    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def is_blocking(self) -> bool:
        """Whether this state must stop a merge."""
        return self in (CheckState.FAILURE, CheckState.ERROR)
