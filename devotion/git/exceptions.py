"""Exceptions raised while discovering the git working copy and its origin.

All of them derive from ``GitOperationError`` so the CLI reports them as
precondition failures of the git side.
"""

from devotion.exceptions import GitOperationError


class GitDiscoveryError(GitOperationError):
    """Base class for working copy discovery failures."""

    pass


class NotGitRepositoryError(GitDiscoveryError):
    """The current directory is not inside a git working copy."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Not a git repository: {path}")


class NoRemotesError(GitDiscoveryError):
    """The working copy has no usable remote."""

    def __init__(self, remote_name: str = "origin") -> None:
        self.remote_name = remote_name
        super().__init__(f"Git remote '{remote_name}' is not configured")


class InvalidGitUrlError(GitDiscoveryError):
    """A remote URL is neither an SSH nor an HTTPS repository URL."""

    def __init__(self, url: str, reason: str | None = None) -> None:
        self.url = url
        self.reason = reason
        message = f"Invalid Git URL '{url}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
