"""GitHub review gateway using PyGithub.

PyGithub is synchronous, so every call runs in a worker thread to keep the
event loop free. Neither ``GithubException`` nor a ``requests`` transport
error leaves this module: lookups that find nothing return None, everything
else is re-raised as ``ExternalServiceError`` (with the HTTP status when
there is one).
"""

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import requests
import structlog
from github import Auth, Github, GithubException  # type: ignore[import-not-found]
from github.PullRequest import PullRequest as GHPullRequest  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from devotion.enums import CheckState
from devotion.exceptions import ExternalServiceError
from devotion.models.domain import PullRequest, StepOutcome
from devotion.providers.base import ReviewGateway

log = structlog.get_logger(__name__)

T = TypeVar("T")

GITHUB_API_URL = "https://api.github.com"

# Check run conclusions that block a merge
FAILING_CONCLUSIONS = frozenset({"failure", "cancelled", "timed_out"})

# API errors plus the transport errors PyGithub lets through from requests
GITHUB_ERRORS = (GithubException, requests.RequestException)

_LEGACY_STATES = {
    "success": CheckState.SUCCESS,
    "pending": CheckState.PENDING,
    "failure": CheckState.FAILURE,
    "error": CheckState.ERROR,
}


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a synchronous function in a thread pool.

    This prevents blocking the event loop when calling synchronous
    PyGithub methods.
    """
    return await asyncio.to_thread(func)


def api_url_for_host(host: str) -> str:
    """REST API root for a code host (GitHub Enterprise serves it under /api/v3)."""
    if host.lower() in ("github.com", "www.github.com"):
        return GITHUB_API_URL
    return f"https://{host}/api/v3"


def _wrap(message: str, error: Exception) -> ExternalServiceError:
    if not isinstance(error, GithubException):
        return ExternalServiceError(f"{message}: {error}")
    data = getattr(error, "data", None)
    detail = data.get("message") if isinstance(data, dict) else None
    if detail:
        message = f"{message}: {detail}"
    return ExternalServiceError(message, status_code=error.status, response_text=str(data) if data else None)


def aggregate_check_state(
    runs: Sequence[tuple[str, str | None]],
    legacy_state: str | None,
    legacy_total: int,
) -> CheckState:
    """Reduce check runs and the legacy combined status to one verdict.

    Check runs are authoritative when a commit has any: a failed, cancelled
    or timed out run fails the commit; otherwise an unfinished run (or one
    without a conclusion) keeps it pending. Without check runs the legacy
    combined status decides, and a commit without any status passes.

    Args:
        runs: ``(status, conclusion)`` per check run
        legacy_state: State of the combined commit status
        legacy_total: Number of legacy statuses behind ``legacy_state``

    Returns:
        The aggregated check state

    Example:
        >>> aggregate_check_state([("completed", "success"), ("in_progress", None)], None, 0)
        <CheckState.PENDING: 'pending'>
        >>> aggregate_check_state([], "pending", 0)
        <CheckState.SUCCESS: 'success'>
    """
    if any(conclusion in FAILING_CONCLUSIONS for _, conclusion in runs):
        return CheckState.FAILURE
    if any(status != "completed" or conclusion is None for status, conclusion in runs):
        return CheckState.PENDING
    if runs:
        return CheckState.SUCCESS

    if legacy_total == 0:
        return CheckState.SUCCESS
    return _LEGACY_STATES.get((legacy_state or "").lower(), CheckState.PENDING)


class GitHubReviewGateway(ReviewGateway):
    """Pull requests, checks and labels of one GitHub repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        """Initialize the gateway.

        Args:
            token: GitHub personal access token
            owner: Repository owner (user or organization)
            repo: Repository name
            base_url: GitHub API base URL (for GitHub Enterprise)
        """
        self.token = token.strip() if token else token
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self._client: Github | None = None
        self._repo: GHRepository | None = None

    async def connect(self) -> None:
        """Create the client and resolve the repository."""
        if self._repo is not None:
            return

        def _connect() -> tuple[Github, GHRepository]:
            client = Github(auth=Auth.Token(self.token), base_url=self.base_url)
            repo = client.get_repo(f"{self.owner}/{self.repo}")
            return client, repo

        try:
            self._client, self._repo = await _run_sync(_connect)
        except GITHUB_ERRORS as e:
            log.error("github_connect_failed", owner=self.owner, repo=self.repo, error=str(e))
            raise _wrap(f"Cannot access repository {self.owner}/{self.repo}", e) from e

        log.info("github_connected", base_url=self.base_url, owner=self.owner, repo=self.repo)

    async def close(self) -> None:
        """Close the GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repo = None

    async def __aenter__(self) -> "GitHubReviewGateway":
        await self.connect()
        return self

    async def _repository(self) -> GHRepository:
        await self.connect()
        assert self._repo is not None
        return self._repo

    async def find_existing(self, head: str, base: str) -> PullRequest | None:
        """Find the open pull request from ``head`` into ``base``."""
        log.info("find_pull_request", head=head, base=base)
        repo = await self._repository()

        def _find() -> GHPullRequest | None:
            pulls = repo.get_pulls(state="open", head=f"{self.owner}:{head}", base=base)
            return next(iter(pulls), None)

        try:
            gh_pr = await _run_sync(_find)
        except GITHUB_ERRORS as e:
            log.error("github_find_pr_failed", head=head, base=base, error=str(e))
            raise _wrap("Failed to look up pull requests", e) from e

        return self._convert_pull_request(gh_pr) if gh_pr else None

    async def create(self, head: str, base: str, title: str, body: str) -> PullRequest:
        """Create a pull request."""
        log.info("create_pull_request", title=title, head=head, base=base)
        repo = await self._repository()

        try:
            gh_pr = await _run_sync(lambda: repo.create_pull(title=title, body=body, head=head, base=base))
        except GITHUB_ERRORS as e:
            log.error("github_create_pr_failed", head=head, base=base, error=str(e))
            raise _wrap("Failed to create pull request", e) from e

        return self._convert_pull_request(gh_pr)

    async def get_details(self, number: int) -> PullRequest:
        """Get a pull request by number, with tri-state mergeability."""
        log.info("get_pull_request", number=number)
        repo = await self._repository()

        try:
            gh_pr = await _run_sync(lambda: repo.get_pull(number))
        except GITHUB_ERRORS as e:
            log.error("github_get_pr_failed", number=number, error=str(e))
            raise _wrap(f"Failed to fetch pull request #{number}", e) from e

        return self._convert_pull_request(gh_pr)

    async def get_aggregated_status(self, head_sha: str) -> CheckState:
        """Aggregate the CI state of a commit (see ``aggregate_check_state``)."""
        log.info("get_commit_status", sha=head_sha)
        repo = await self._repository()

        def _collect() -> tuple[list[tuple[str, str | None]], str | None, int]:
            commit = repo.get_commit(head_sha)
            runs = [(run.status, run.conclusion) for run in commit.get_check_runs()]
            if runs:
                return runs, None, 0
            combined = commit.get_combined_status()
            return runs, combined.state, combined.total_count

        try:
            runs, legacy_state, legacy_total = await _run_sync(_collect)
        except GITHUB_ERRORS as e:
            log.error("github_get_status_failed", sha=head_sha, error=str(e))
            raise _wrap("Failed to fetch commit status", e) from e

        state = aggregate_check_state(runs, legacy_state, legacy_total)
        log.debug("commit_status_aggregated", sha=head_sha, runs=len(runs), state=str(state))
        return state

    async def merge(self, number: int, title: str, body: str) -> None:
        """Squash-merge a pull request.

        Raises:
            ExternalServiceError: If GitHub rejects the merge
        """
        log.info("merge_pull_request", number=number, title=title)
        repo = await self._repository()

        def _merge() -> Any:
            gh_pr = repo.get_pull(number)
            return gh_pr.merge(commit_title=title, commit_message=body, merge_method="squash")

        try:
            status = await _run_sync(_merge)
        except GITHUB_ERRORS as e:
            log.error("github_merge_failed", number=number, error=str(e))
            raise _wrap(f"Failed to merge pull request #{number}", e) from e

        if not status.merged:
            raise ExternalServiceError(f"Failed to merge pull request #{number}: {status.message}")

    async def list_commit_messages(self, number: int) -> list[str]:
        """First line of every commit message in the pull request."""
        repo = await self._repository()

        def _messages() -> list[str]:
            gh_pr = repo.get_pull(number)
            return [commit.commit.message for commit in gh_pr.get_commits()]

        try:
            messages = await _run_sync(_messages)
        except GITHUB_ERRORS as e:
            log.error("github_list_commits_failed", number=number, error=str(e))
            raise _wrap(f"Failed to list commits of pull request #{number}", e) from e

        first_lines = [message.splitlines()[0].strip() if message else "" for message in messages]
        return [line for line in first_lines if line]

    async def ensure_label(self, name: str, color: str) -> StepOutcome:
        """Create ``name`` with ``color`` unless the label already exists."""
        repo = await self._repository()

        try:
            await _run_sync(lambda: repo.get_label(name))
            log.debug("label_exists", name=name)
            return StepOutcome.success("ensure_label", f"Label {name} exists")
        except GITHUB_ERRORS as e:
            if not isinstance(e, GithubException) or e.status != 404:
                log.warning("github_get_label_failed", name=name, error=str(e))
                return StepOutcome.failure("ensure_label", _wrap(f"Failed to look up label {name}", e))

        try:
            await _run_sync(lambda: repo.create_label(name=name, color=color))
        except GITHUB_ERRORS as e:
            log.warning("github_create_label_failed", name=name, error=str(e))
            return StepOutcome.failure("ensure_label", _wrap(f"Failed to create label {name}", e))

        log.info("label_created", name=name, color=color)
        return StepOutcome.success("ensure_label", f"Created label {name}")

    async def add_labels(self, number: int, labels: list[str]) -> None:
        log.info("add_labels", number=number, labels=labels)
        repo = await self._repository()

        try:
            await _run_sync(lambda: repo.get_pull(number).add_to_labels(*labels))
        except GITHUB_ERRORS as e:
            log.error("github_add_labels_failed", number=number, error=str(e))
            raise _wrap(f"Failed to label pull request #{number}", e) from e

    async def assign(self, number: int, logins: list[str]) -> None:
        log.info("assign_pull_request", number=number, logins=logins)
        repo = await self._repository()

        try:
            await _run_sync(lambda: repo.get_pull(number).add_to_assignees(*logins))
        except GITHUB_ERRORS as e:
            log.error("github_assign_failed", number=number, error=str(e))
            raise _wrap(f"Failed to assign pull request #{number}", e) from e

    async def get_authenticated_login(self) -> str:
        await self._repository()
        assert self._client is not None
        client = self._client

        try:
            return await _run_sync(lambda: client.get_user().login)
        except GITHUB_ERRORS as e:
            log.error("github_get_user_failed", error=str(e))
            raise _wrap("Failed to fetch the authenticated user", e) from e

    def _convert_pull_request(self, gh_pr: GHPullRequest) -> PullRequest:
        """Convert a GitHub pull request to our PullRequest model."""
        return PullRequest(
            number=gh_pr.number,
            title=gh_pr.title,
            url=gh_pr.html_url,
            head=gh_pr.head.ref,
            base=gh_pr.base.ref,
            body=gh_pr.body or "",
            state=gh_pr.state,
            mergeable=gh_pr.mergeable,
            merged=bool(gh_pr.merged),
            head_sha=gh_pr.head.sha,
        )
