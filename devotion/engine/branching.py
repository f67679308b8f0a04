"""Branch resolution against the local working copy and ``origin``.

The resolver answers "where does this branch exist" and "which branch
belongs to this ticket" from a fresh branch listing on every call, and
performs the switch/create/publish/delete sequences the workflow needs.

Example:
    >>> resolver = BranchResolver(GitClient("."))
    >>> name = await resolver.find_by_ticket_id("ABC-12")
    >>> if name:
    ...     await resolver.switch_to(name)
    ...     await resolver.pull()
"""

import structlog

from devotion.enums import BranchPresence
from devotion.exceptions import BranchNotFoundError, GitOperationError
from devotion.git.client import REMOTE, GitClient
from devotion.models.domain import StepOutcome

log = structlog.get_logger(__name__)


class BranchResolver:
    """Resolves and manipulates branches through a ``GitClient``."""

    def __init__(self, git: GitClient) -> None:
        """Initialize the resolver.

        Args:
            git: Client for the working copy
        """
        self.git = git

    async def presence(self, name: str) -> BranchPresence:
        """Report where ``name`` currently exists."""
        listing = await self.git.list_branches()
        local = name in listing.local
        remote = name in listing.remote

        if local and remote:
            return BranchPresence.LOCAL_AND_REMOTE
        if local:
            return BranchPresence.LOCAL_ONLY
        if remote:
            return BranchPresence.REMOTE_ONLY
        return BranchPresence.ABSENT

    async def find_by_ticket_id(self, ticket_id: str) -> str | None:
        """Find the branch that carries ``ticket_id``.

        A branch matches when its name contains ``"{ticket_id}_"``
        (case-sensitive). Local names are checked before remote ones.

        Note:
            If several branches match, the first one wins. Tickets whose
            identifier is a prefix of another's (``ABC-1`` vs ``ABC-12``)
            are told apart by the trailing underscore.
        """
        marker = f"{ticket_id}_"
        listing = await self.git.list_branches()
        for name in listing.all_names():
            if marker in name:
                log.debug("branch_found_for_ticket", ticket_id=ticket_id, branch=name)
                return name
        return None

    async def switch_to(self, name: str) -> None:
        """Check out ``name``, creating a tracking branch if it is remote-only.

        Raises:
            BranchNotFoundError: If the branch exists neither locally nor remotely
        """
        presence = await self.presence(name)
        if presence.is_local:
            await self.git.checkout(name)
        elif presence.is_remote:
            await self.git.checkout_new(name, start_point=f"{REMOTE}/{name}")
        else:
            raise BranchNotFoundError(name)

    async def create_from(self, new_name: str, base_name: str) -> None:
        """Create ``new_name`` from an up-to-date ``base_name``.

        Any failure switching to or pulling the base propagates, so a new
        branch is never created from a stale or missing base.
        """
        log.info("create_branch", branch=new_name, base=base_name)
        await self.switch_to(base_name)
        await self.git.pull()
        await self.git.checkout_new(new_name)

    async def publish(self, name: str) -> None:
        """Push ``name`` to ``origin`` and track it."""
        await self.git.push(name, set_upstream=True)

    async def current(self) -> str:
        """Checked-out branch, empty when HEAD is detached."""
        return await self.git.current_branch()

    async def pull(self) -> None:
        await self.git.pull()

    async def push_current(self) -> str:
        """Push the checked-out branch.

        Returns:
            Name of the pushed branch

        Raises:
            GitOperationError: If HEAD is detached or the push fails
        """
        current = await self.git.current_branch()
        if not current:
            raise GitOperationError("Cannot push: HEAD is detached")
        await self.git.push(current)
        return current

    async def delete_everywhere(self, name: str) -> list[StepOutcome]:
        """Delete ``name`` on ``origin`` and locally.

        Both deletions are attempted even if the other one fails; each is
        reported as its own non-fatal outcome.
        """
        outcomes = []

        try:
            await self.git.delete_remote(name)
            outcomes.append(StepOutcome.success("delete_remote_branch", f"Deleted {REMOTE}/{name}"))
        except GitOperationError as e:
            log.warning("delete_remote_branch_failed", branch=name, error=str(e))
            outcomes.append(StepOutcome.failure("delete_remote_branch", e, f"Could not delete {REMOTE}/{name}"))

        try:
            await self.git.delete_local(name)
            outcomes.append(StepOutcome.success("delete_local_branch", f"Deleted local branch {name}"))
        except GitOperationError as e:
            log.warning("delete_local_branch_failed", branch=name, error=str(e))
            outcomes.append(StepOutcome.failure("delete_local_branch", e, f"Could not delete local branch {name}"))

        return outcomes
