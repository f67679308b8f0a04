"""Custom exception hierarchy for the devotion workflow tool.

This module defines a structured exception hierarchy that lets the CLI
distinguish precondition failures (nothing was mutated) from remote
operation failures (something may have been mutated) and print one clear
message per terminal failure.

Exception Hierarchy:
    DevotionError (base)
    ├── ConfigurationError
    ├── PreconditionError
    ├── GitOperationError
    │   ├── BranchNotFoundError
    │   └── GitDiscoveryError (see devotion.git.exceptions)
    ├── ExternalServiceError
    └── WorkflowError
        ├── MergeBlockedError
        └── WorkflowCancelled

Example Usage:
    >>> from devotion.exceptions import ConfigurationError
    >>> try:
    ...     store.read()
    ... except ValueError as e:
    ...     raise ConfigurationError(f"Config file is invalid: {path}") from e
"""


class DevotionError(Exception):
    """Base exception for all devotion errors.

    All custom exceptions inherit from this base class, allowing callers to
    catch every devotion-specific error with a single except clause.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(DevotionError):
    """Configuration-related errors.

    Raised when a configuration file is missing, unreadable, or contains
    invalid values.

    Examples:
        - Global configuration not found (run ``devotion setup``)
        - Project not initialized (run ``devotion init``)
        - Invalid JSON in a configuration file
    """

    pass


class PreconditionError(DevotionError):
    """A workflow precondition does not hold.

    Raised before any remote mutation is attempted, so the external systems
    are left exactly as they were.

    Examples:
        - Current directory is not a git working copy
        - Ticket identifier cannot be recovered from the current branch
        - No ticket or open pull request matches the current branch
    """

    pass


class GitOperationError(DevotionError):
    """Git operation errors.

    Raised when a git command fails (checkout, pull, push, branch deletion)
    or the repository state is invalid for the requested operation.

    Attributes:
        command: The git command line that failed, if any
        stderr: Captured standard error of the failed command, if any
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            command: Git command line that failed
            stderr: Standard error output of the failed command
        """
        self.command = command
        self.stderr = stderr

        full_message = message
        if stderr and stderr.strip():
            full_message = f"{message}: {stderr.strip()}"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class BranchNotFoundError(GitOperationError):
    """Branch exists neither locally nor on the remote."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Branch {branch} does not exist locally or remotely")


class ExternalServiceError(DevotionError):
    """External service communication errors.

    Raised when the issue tracker or the code host rejects a request or
    cannot be reached.

    Examples:
        - HTTP request failed
        - Pull request creation rejected (no diff, branch not pushed)
        - Merge rejected (conflicts, branch protection)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
        """
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class WorkflowError(DevotionError):
    """Workflow transition errors.

    Raised when a transition cannot proceed for a reason that is not a
    missing precondition, for example a pull request that is not mergeable.

    Attributes:
        step: Name of the workflow step that failed, if known
    """

    def __init__(self, message: str, step: str | None = None) -> None:
        self.step = step
        super().__init__(message)


class MergeBlockedError(WorkflowError):
    """The pull request may not be merged in its current state.

    Examples:
        - Pull request is already merged
        - Host reports merge conflicts (``mergeable`` is explicitly false)
        - Required checks failed
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, step="merge_gate")


class WorkflowCancelled(WorkflowError):
    """The user declined a confirmation gate.

    Not a failure: the CLI exits with status 0 and nothing was mutated.
    """

    pass
