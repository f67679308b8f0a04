"""Tests for devotion/providers/github_rest.py - GitHub review gateway."""

from unittest.mock import Mock, patch

import pytest
import requests
from github import GithubException

from devotion.enums import CheckState
from devotion.exceptions import ExternalServiceError
from devotion.providers.github_rest import (
    GITHUB_API_URL,
    GitHubReviewGateway,
    aggregate_check_state,
    api_url_for_host,
)


def _gh_pull(number=7, mergeable=True, merged=False):
    pr = Mock()
    pr.number = number
    pr.title = "ABC-12: Fix login"
    pr.html_url = f"https://github.com/acme/shop/pull/{number}"
    pr.head.ref = "bugfix/ABC-12_fix_login"
    pr.head.sha = "abc123"
    pr.base.ref = "develop"
    pr.body = None
    pr.state = "open"
    pr.mergeable = mergeable
    pr.merged = merged
    return pr


@pytest.fixture
def mock_github_repo():
    """Create a mock GitHub repository."""
    return Mock()


@pytest.fixture
def mock_github(mock_github_repo):
    """Patch the Github client class."""
    with patch("devotion.providers.github_rest.Github") as mock_github_class:
        client = Mock()
        client.get_repo.return_value = mock_github_repo
        mock_github_class.return_value = client
        yield mock_github_class


@pytest.fixture
def gateway(mock_github):
    return GitHubReviewGateway(token="ghp_test_token_123", owner="acme", repo="shop")


class TestAggregateCheckState:
    """Tests for the check aggregation policy."""

    @pytest.mark.parametrize(
        "runs,expected",
        [
            ([("completed", "success"), ("completed", "failure")], CheckState.FAILURE),
            ([("completed", "cancelled")], CheckState.FAILURE),
            ([("completed", "timed_out"), ("in_progress", None)], CheckState.FAILURE),
            ([("completed", "success"), ("in_progress", None)], CheckState.PENDING),
            ([("queued", None)], CheckState.PENDING),
            ([("completed", None)], CheckState.PENDING),
            ([("completed", "success"), ("completed", "skipped"), ("completed", "neutral")], CheckState.SUCCESS),
        ],
    )
    def test_check_runs_are_authoritative(self, runs, expected):
        assert aggregate_check_state(runs, "failure", 3) == expected

    def test_no_statuses_at_all_is_success(self):
        """GitHub reports "pending" for a commit without any status."""
        assert aggregate_check_state([], "pending", 0) == CheckState.SUCCESS

    @pytest.mark.parametrize(
        "state,expected",
        [
            ("success", CheckState.SUCCESS),
            ("pending", CheckState.PENDING),
            ("failure", CheckState.FAILURE),
            ("error", CheckState.ERROR),
        ],
    )
    def test_legacy_status(self, state, expected):
        assert aggregate_check_state([], state, 2) == expected


class TestApiUrl:
    """Tests for host to API URL mapping."""

    def test_github_com(self):
        assert api_url_for_host("github.com") == GITHUB_API_URL

    def test_enterprise(self):
        assert api_url_for_host("github.acme.io") == "https://github.acme.io/api/v3"


class TestConnection:
    """Tests for connection management."""

    @pytest.mark.asyncio
    async def test_connect_uses_token_auth(self, gateway, mock_github, mock_github_repo):
        await gateway.connect()

        _, kwargs = mock_github.call_args
        assert kwargs["base_url"] == GITHUB_API_URL
        assert kwargs["auth"].token == "ghp_test_token_123"
        mock_github.return_value.get_repo.assert_called_once_with("acme/shop")

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, gateway, mock_github):
        async with gateway:
            pass

        mock_github.return_value.close.assert_called_once()
        assert gateway._client is None

    @pytest.mark.asyncio
    async def test_inaccessible_repository(self, gateway, mock_github):
        mock_github.return_value.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway.connect()

        assert exc_info.value.status_code == 404
        assert "acme/shop" in exc_info.value.message


class TestPullRequests:
    """Tests for pull request lookup, creation and merge."""

    @pytest.mark.asyncio
    async def test_find_existing(self, gateway, mock_github_repo):
        mock_github_repo.get_pulls.return_value = [_gh_pull(7), _gh_pull(8)]

        pr = await gateway.find_existing("bugfix/ABC-12_fix_login", "develop")

        mock_github_repo.get_pulls.assert_called_once_with(
            state="open", head="acme:bugfix/ABC-12_fix_login", base="develop"
        )
        assert pr.number == 7
        assert pr.head == "bugfix/ABC-12_fix_login"
        assert pr.body == ""

    @pytest.mark.asyncio
    async def test_find_existing_none(self, gateway, mock_github_repo):
        mock_github_repo.get_pulls.return_value = []
        assert await gateway.find_existing("feature/ABC-1_x", "develop") is None

    @pytest.mark.asyncio
    async def test_find_existing_failure_raises(self, gateway, mock_github_repo):
        """A failed lookup is never reported as "no pull request"."""
        mock_github_repo.get_pulls.side_effect = GithubException(500, {"message": "Server Error"}, None)

        with pytest.raises(ExternalServiceError):
            await gateway.find_existing("feature/ABC-1_x", "develop")

    @pytest.mark.asyncio
    async def test_create(self, gateway, mock_github_repo):
        mock_github_repo.create_pull.return_value = _gh_pull(9)

        pr = await gateway.create("feature/ABC-1_x", "develop", "ABC-1: X", "body")

        mock_github_repo.create_pull.assert_called_once_with(
            title="ABC-1: X", body="body", head="feature/ABC-1_x", base="develop"
        )
        assert pr.number == 9

    @pytest.mark.asyncio
    async def test_create_rejected(self, gateway, mock_github_repo):
        mock_github_repo.create_pull.side_effect = GithubException(
            422, {"message": "No commits between develop and feature/ABC-1_x"}, None
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway.create("feature/ABC-1_x", "develop", "ABC-1: X", "body")

        assert exc_info.value.message.startswith("Failed to create pull request")
        assert "No commits" in exc_info.value.message
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_get_details_keeps_unknown_mergeability(self, gateway, mock_github_repo):
        mock_github_repo.get_pull.return_value = _gh_pull(7, mergeable=None)

        pr = await gateway.get_details(7)

        assert pr.mergeable is None
        assert pr.merged is False
        assert pr.head_sha == "abc123"

    @pytest.mark.asyncio
    async def test_merge_squash(self, gateway, mock_github_repo):
        gh_pr = _gh_pull(7)
        gh_pr.merge.return_value = Mock(merged=True)
        mock_github_repo.get_pull.return_value = gh_pr

        await gateway.merge(7, "ABC-12: Fix login (#7)", "* Fix login")

        gh_pr.merge.assert_called_once_with(
            commit_title="ABC-12: Fix login (#7)", commit_message="* Fix login", merge_method="squash"
        )

    @pytest.mark.asyncio
    async def test_merge_not_merged(self, gateway, mock_github_repo):
        gh_pr = _gh_pull(7)
        gh_pr.merge.return_value = Mock(merged=False, message="Base branch was modified")
        mock_github_repo.get_pull.return_value = gh_pr

        with pytest.raises(ExternalServiceError, match="Base branch was modified"):
            await gateway.merge(7, "t", "b")

    @pytest.mark.asyncio
    async def test_merge_rejected(self, gateway, mock_github_repo):
        gh_pr = _gh_pull(7)
        gh_pr.merge.side_effect = GithubException(405, {"message": "Pull Request is not mergeable"}, None)
        mock_github_repo.get_pull.return_value = gh_pr

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway.merge(7, "t", "b")

        assert exc_info.value.status_code == 405

    @pytest.mark.asyncio
    async def test_list_commit_messages_first_lines(self, gateway, mock_github_repo):
        commits = [Mock(), Mock(), Mock()]
        commits[0].commit.message = "Fix login\n\nLonger explanation"
        commits[1].commit.message = ""
        commits[2].commit.message = "Add test"
        mock_github_repo.get_pull.return_value.get_commits.return_value = commits

        assert await gateway.list_commit_messages(7) == ["Fix login", "Add test"]


class TestChecks:
    """Tests for commit status aggregation against the API."""

    @pytest.mark.asyncio
    async def test_check_runs(self, gateway, mock_github_repo):
        commit = mock_github_repo.get_commit.return_value
        commit.get_check_runs.return_value = [Mock(status="completed", conclusion="failure")]

        assert await gateway.get_aggregated_status("abc123") == CheckState.FAILURE
        commit.get_combined_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_legacy_status_fallback(self, gateway, mock_github_repo):
        commit = mock_github_repo.get_commit.return_value
        commit.get_check_runs.return_value = []
        commit.get_combined_status.return_value = Mock(state="pending", total_count=1)

        assert await gateway.get_aggregated_status("abc123") == CheckState.PENDING


class TestLabelsAndAssignees:
    """Tests for labels and assignees."""

    @pytest.mark.asyncio
    async def test_ensure_label_exists(self, gateway, mock_github_repo):
        outcome = await gateway.ensure_label("Bug", "e03e3e")

        assert outcome.ok
        mock_github_repo.create_label.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_label_creates_missing(self, gateway, mock_github_repo):
        mock_github_repo.get_label.side_effect = GithubException(404, {"message": "Not Found"}, None)

        outcome = await gateway.ensure_label("Bug", "e03e3e")

        assert outcome.ok
        mock_github_repo.create_label.assert_called_once_with(name="Bug", color="e03e3e")

    @pytest.mark.asyncio
    async def test_ensure_label_failure_is_outcome(self, gateway, mock_github_repo):
        mock_github_repo.get_label.side_effect = GithubException(404, {"message": "Not Found"}, None)
        mock_github_repo.create_label.side_effect = GithubException(403, {"message": "Forbidden"}, None)

        outcome = await gateway.ensure_label("Bug", "e03e3e")

        assert not outcome.ok
        assert not outcome.fatal
        assert "Forbidden" in outcome.error

    @pytest.mark.asyncio
    async def test_add_labels_and_assign(self, gateway, mock_github_repo):
        gh_pr = mock_github_repo.get_pull.return_value

        await gateway.add_labels(7, ["Bug"])
        await gateway.assign(7, ["octocat"])

        gh_pr.add_to_labels.assert_called_once_with("Bug")
        gh_pr.add_to_assignees.assert_called_once_with("octocat")

    @pytest.mark.asyncio
    async def test_authenticated_login(self, gateway, mock_github):
        mock_github.return_value.get_user.return_value.login = "octocat"
        assert await gateway.get_authenticated_login() == "octocat"


class TestTransportFailures:
    """Connection errors from the HTTP transport surface as ExternalServiceError."""

    @pytest.mark.asyncio
    async def test_connect(self, gateway, mock_github):
        mock_github.return_value.get_repo.side_effect = requests.exceptions.ConnectionError("connection reset")

        with pytest.raises(ExternalServiceError) as exc_info:
            await gateway.connect()

        assert exc_info.value.status_code is None
        assert "connection reset" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_find_existing(self, gateway, mock_github_repo):
        mock_github_repo.get_pulls.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(ExternalServiceError, match="read timed out"):
            await gateway.find_existing("bugfix/ABC-12_fix_login", "develop")

    @pytest.mark.asyncio
    async def test_assign_and_add_labels(self, gateway, mock_github_repo):
        mock_github_repo.get_pull.side_effect = requests.exceptions.ConnectionError("connection reset")

        with pytest.raises(ExternalServiceError, match="Failed to assign pull request #7"):
            await gateway.assign(7, ["octocat"])
        with pytest.raises(ExternalServiceError, match="Failed to label pull request #7"):
            await gateway.add_labels(7, ["Bug"])

    @pytest.mark.asyncio
    async def test_ensure_label_lookup_is_outcome(self, gateway, mock_github_repo):
        mock_github_repo.get_label.side_effect = requests.exceptions.ConnectionError("connection reset")

        outcome = await gateway.ensure_label("Bug", "e03e3e")

        assert not outcome.ok
        assert "connection reset" in outcome.error
        mock_github_repo.create_label.assert_not_called()
