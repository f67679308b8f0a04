"""Async wrapper around the ``git`` executable.

Every operation runs one git command in the working copy and either returns
its parsed output or raises ``GitOperationError`` with the failed command
line and git's stderr. The client keeps no state between calls; branch
listings are read fresh each time.

Example:
    >>> client = GitClient("/path/to/repo")
    >>> await client.current_branch()
    'feature/ABC-12_fix_login'
    >>> listing = await client.list_branches()
    >>> listing.remote
    ['develop', 'feature/ABC-12_fix_login']
"""

import subprocess
from pathlib import Path

import structlog

from devotion.exceptions import GitOperationError
from devotion.git.models import BranchListing
from devotion.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

REMOTE = "origin"


class GitClient:
    """Runs git commands in one working copy.

    Attributes:
        repo_path: Directory git commands run in
        timeout: Per-command timeout in seconds (None waits indefinitely)
    """

    def __init__(self, repo_path: str | Path = ".", timeout: float | None = None) -> None:
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    async def _git(self, *args: str) -> str:
        """Run ``git <args>`` and return stdout.

        Raises:
            GitOperationError: If git is missing or the command fails
        """
        command = ["git", *args]
        log.debug("git_command", command=" ".join(command))
        try:
            stdout, _, _ = await run_command(*command, cwd=self.repo_path, check=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            log.debug("git_command_failed", command=" ".join(command), returncode=e.returncode)
            raise GitOperationError(
                f"git {args[0]} failed",
                command=command,
                stderr=e.stderr,
            ) from e
        except FileNotFoundError as e:
            raise GitOperationError("git executable not found", command=command) from e
        except TimeoutError as e:
            raise GitOperationError(f"git {args[0]} timed out", command=command) from e
        return stdout

    async def current_branch(self) -> str:
        """Name of the checked-out branch, or an empty string when detached."""
        stdout = await self._git("branch", "--show-current")
        return stdout.strip()

    async def list_branches(self) -> BranchListing:
        """List local branches and the remote-tracking branches of ``origin``.

        Remote names are returned without the ``origin/`` prefix. Symbolic
        refs such as ``origin/HEAD`` are excluded.
        """
        local_out = await self._git("branch", "--format=%(refname:short)")
        remote_out = await self._git("branch", "-r", "--format=%(refname:short)")

        local = [line.strip() for line in local_out.splitlines() if line.strip()]

        remote = []
        prefix = f"{REMOTE}/"
        for line in remote_out.splitlines():
            name = line.strip()
            if not name.startswith(prefix) or "->" in name:
                continue
            name = name[len(prefix) :]
            if name and name != "HEAD":
                remote.append(name)

        return BranchListing(local=local, remote=remote)

    async def checkout(self, name: str) -> None:
        """Switch to an existing local branch."""
        log.info("git_checkout", branch=name)
        await self._git("checkout", name)

    async def checkout_new(self, name: str, start_point: str | None = None) -> None:
        """Create and switch to a new branch.

        Args:
            name: New branch name
            start_point: Commit-ish to start from. A remote-tracking ref
                such as ``origin/name`` also sets up tracking.
        """
        log.info("git_checkout_new", branch=name, start_point=start_point)
        args = ["checkout", "-b", name]
        if start_point:
            args.append(start_point)
        await self._git(*args)

    async def pull(self) -> None:
        """Pull the current branch from its upstream."""
        log.info("git_pull")
        await self._git("pull")

    async def push(self, branch: str, set_upstream: bool = False) -> None:
        """Push a branch to ``origin``.

        Args:
            branch: Branch to push
            set_upstream: Record ``origin/<branch>`` as the upstream
        """
        log.info("git_push", branch=branch, set_upstream=set_upstream)
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args.extend([REMOTE, branch])
        await self._git(*args)

    async def delete_local(self, name: str) -> None:
        """Force-delete a local branch (squash merges leave it unmerged)."""
        log.info("git_delete_local_branch", branch=name)
        await self._git("branch", "-D", name)

    async def delete_remote(self, name: str) -> None:
        """Delete a branch on ``origin``."""
        log.info("git_delete_remote_branch", branch=name)
        await self._git("push", REMOTE, "--delete", name)
