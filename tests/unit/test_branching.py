"""Tests for devotion/engine/branching.py - branch resolution."""

from unittest.mock import AsyncMock, call

import pytest

from devotion.engine.branching import BranchResolver
from devotion.enums import BranchPresence
from devotion.exceptions import BranchNotFoundError, GitOperationError
from devotion.git.client import GitClient
from devotion.git.models import BranchListing


@pytest.fixture
def git_client() -> AsyncMock:
    client = AsyncMock(spec=GitClient)
    client.list_branches.return_value = BranchListing(
        local=["develop", "feature/ABC-1_local_work"],
        remote=["develop", "feature/ABC-1_local_work", "bugfix/ABC-12_remote_only"],
    )
    client.current_branch.return_value = "feature/ABC-1_local_work"
    return client


@pytest.fixture
def resolver(git_client) -> BranchResolver:
    return BranchResolver(git_client)


class TestPresence:
    """Tests for locating a branch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("develop", BranchPresence.LOCAL_AND_REMOTE),
            ("bugfix/ABC-12_remote_only", BranchPresence.REMOTE_ONLY),
            ("feature/ABC-99_nowhere", BranchPresence.ABSENT),
        ],
    )
    async def test_presence(self, resolver, name, expected):
        assert await resolver.presence(name) == expected

    @pytest.mark.asyncio
    async def test_local_only(self, resolver, git_client):
        git_client.list_branches.return_value = BranchListing(local=["scratch"], remote=[])
        assert await resolver.presence("scratch") == BranchPresence.LOCAL_ONLY

    @pytest.mark.asyncio
    async def test_listing_is_fresh_each_call(self, resolver, git_client):
        await resolver.presence("develop")
        await resolver.presence("develop")
        assert git_client.list_branches.await_count == 2


class TestFindByTicketId:
    """Tests for ticket id to branch correlation."""

    @pytest.mark.asyncio
    async def test_local_branch(self, resolver):
        assert await resolver.find_by_ticket_id("ABC-1") == "feature/ABC-1_local_work"

    @pytest.mark.asyncio
    async def test_remote_only_branch(self, resolver):
        assert await resolver.find_by_ticket_id("ABC-12") == "bugfix/ABC-12_remote_only"

    @pytest.mark.asyncio
    async def test_not_found(self, resolver):
        assert await resolver.find_by_ticket_id("ABC-2") is None

    @pytest.mark.asyncio
    async def test_prefix_id_does_not_match_longer_id(self, resolver, git_client):
        """ABC-1 must not match the branch of ABC-12."""
        git_client.list_branches.return_value = BranchListing(local=[], remote=["bugfix/ABC-12_remote_only"])
        assert await resolver.find_by_ticket_id("ABC-1") is None

    @pytest.mark.asyncio
    async def test_case_sensitive(self, resolver):
        assert await resolver.find_by_ticket_id("abc-1") is None


class TestSwitching:
    """Tests for switching, creating and publishing branches."""

    @pytest.mark.asyncio
    async def test_switch_to_local(self, resolver, git_client):
        await resolver.switch_to("develop")

        git_client.checkout.assert_awaited_once_with("develop")
        git_client.checkout_new.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_switch_to_remote_only_creates_tracking_branch(self, resolver, git_client):
        await resolver.switch_to("bugfix/ABC-12_remote_only")

        git_client.checkout_new.assert_awaited_once_with(
            "bugfix/ABC-12_remote_only", start_point="origin/bugfix/ABC-12_remote_only"
        )
        git_client.checkout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_switch_to_absent(self, resolver, git_client):
        with pytest.raises(BranchNotFoundError):
            await resolver.switch_to("feature/ABC-99_nowhere")
        git_client.checkout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_from_updates_base_first(self, resolver, git_client):
        await resolver.create_from("feature/ABC-3_new", "develop")

        assert git_client.method_calls[-3:] == [
            call.checkout("develop"),
            call.pull(),
            call.checkout_new("feature/ABC-3_new"),
        ]

    @pytest.mark.asyncio
    async def test_create_from_missing_base(self, resolver, git_client):
        with pytest.raises(BranchNotFoundError):
            await resolver.create_from("feature/ABC-3_new", "main")
        git_client.checkout_new.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_from_failed_pull(self, resolver, git_client):
        git_client.pull.side_effect = GitOperationError("git pull failed")

        with pytest.raises(GitOperationError):
            await resolver.create_from("feature/ABC-3_new", "develop")
        git_client.checkout_new.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_sets_upstream(self, resolver, git_client):
        await resolver.publish("feature/ABC-3_new")
        git_client.push.assert_awaited_once_with("feature/ABC-3_new", set_upstream=True)


class TestPushCurrent:
    """Tests for pushing the checked-out branch."""

    @pytest.mark.asyncio
    async def test_push_current(self, resolver, git_client):
        assert await resolver.push_current() == "feature/ABC-1_local_work"
        git_client.push.assert_awaited_once_with("feature/ABC-1_local_work")

    @pytest.mark.asyncio
    async def test_detached_head(self, resolver, git_client):
        git_client.current_branch.return_value = ""

        with pytest.raises(GitOperationError, match="detached"):
            await resolver.push_current()
        git_client.push.assert_not_awaited()


class TestDeleteEverywhere:
    """Tests for post-merge branch cleanup."""

    @pytest.mark.asyncio
    async def test_both_deleted_remote_first(self, resolver, git_client):
        outcomes = await resolver.delete_everywhere("feature/ABC-1_local_work")

        assert [o.step for o in outcomes] == ["delete_remote_branch", "delete_local_branch"]
        assert all(o.ok for o in outcomes)
        assert git_client.method_calls == [
            call.delete_remote("feature/ABC-1_local_work"),
            call.delete_local("feature/ABC-1_local_work"),
        ]

    @pytest.mark.asyncio
    async def test_remote_failure_still_deletes_local(self, resolver, git_client):
        git_client.delete_remote.side_effect = GitOperationError("git push failed", stderr="remote ref does not exist")

        outcomes = await resolver.delete_everywhere("feature/ABC-1_local_work")

        assert [o.ok for o in outcomes] == [False, True]
        assert not outcomes[0].fatal
        assert "remote ref does not exist" in outcomes[0].error
        git_client.delete_local.assert_awaited_once_with("feature/ABC-1_local_work")

    @pytest.mark.asyncio
    async def test_local_failure_reported(self, resolver, git_client):
        git_client.delete_local.side_effect = GitOperationError("git branch failed")

        outcomes = await resolver.delete_everywhere("feature/ABC-1_local_work")

        assert [o.ok for o in outcomes] == [True, False]
