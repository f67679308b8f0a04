"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Sequence
from typing import Any

import pytest
import structlog

from devotion.config.settings import GlobalConfig, LocalConfig
from devotion.enums import TicketStatus
from devotion.models.domain import PullRequest, Ticket

NOTION_KEY = "ntn_testkey1234567890"
GITHUB_KEY = "ghp_testkey1234567890"
PROJECTS_DB_ID = "0123456789abcdef0123456789abcdef"
TICKETS_DB_ID = "fedcba9876543210fedcba9876543210"
USER_ID = "12345678-1234-1234-1234-1234567890ab"


class ScriptedPrompter:
    """Prompter that answers from pre-recorded responses.

    ``select`` picks by index (default 0), ``text`` returns the next scripted
    answer or the default, ``confirm`` returns the next scripted answer and
    ``edit`` applies an optional transformation. Every call is recorded.
    """

    def __init__(
        self,
        selections: list[int] | None = None,
        texts: list[str] | None = None,
        confirms: list[bool] | None = None,
        edit: Callable[[str], str] | None = None,
    ) -> None:
        self.selections = list(selections or [])
        self.texts = list(texts or [])
        self.confirms = list(confirms or [])
        self._edit = edit
        self.calls: list[tuple[str, Any]] = []
        self.notifications: list[tuple[str, str]] = []

    def select(self, message: str, choices: Sequence[Any], label: Callable[[Any], str] = str) -> Any:
        self.calls.append(("select", [label(c) for c in choices]))
        index = self.selections.pop(0) if self.selections else 0
        return choices[index]

    def text(
        self,
        message: str,
        default: str | None = None,
        validate: Callable[[str], str | None] | None = None,
    ) -> str:
        self.calls.append(("text", default))
        while self.texts:
            value = self.texts.pop(0)
            if validate is None or validate(value) is None:
                return value
        return default or ""

    def confirm(self, message: str, default: bool = False) -> bool:
        self.calls.append(("confirm", message))
        return self.confirms.pop(0) if self.confirms else default

    def edit(self, text: str) -> str:
        self.calls.append(("edit", text))
        return self._edit(text) if self._edit else text

    def notify(self, message: str, level: str = "info") -> None:
        self.notifications.append((level, message))


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop logging configuration bound to streams a test has captured."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_prompter() -> type[ScriptedPrompter]:
    """Factory for prompters with scripted answers."""
    return ScriptedPrompter


@pytest.fixture
def prompter() -> ScriptedPrompter:
    """Prompter that accepts every default."""
    return ScriptedPrompter()


@pytest.fixture
def global_config() -> GlobalConfig:
    """Global configuration that ignores DEVOTION_* environment variables."""
    return GlobalConfig.model_validate(
        {
            "notion_api_key": NOTION_KEY,
            "github_api_key": GITHUB_KEY,
            "notion_projects_db_id": PROJECTS_DB_ID,
            "user_id": USER_ID,
        }
    )


@pytest.fixture
def local_config() -> LocalConfig:
    """Local configuration bound to the ABC tickets database."""
    return LocalConfig(
        project_id="project-page-1",
        tickets_database_id=TICKETS_DB_ID,
        ticket_prefix="ABC",
        development_branch="develop",
    )


@pytest.fixture
def sample_ticket() -> Ticket:
    """Backlog bug ticket ABC-12."""
    return Ticket(
        page_id="0f1c2d3e-0000-4000-8000-000000000012",
        ticket_id="ABC-12",
        title="Fix login redirect",
        status=TicketStatus.BACKLOG,
        type="Bug",
        url="https://www.notion.so/Fix-login-redirect-0f1c2d3e000040008000000000000012",
    )


@pytest.fixture
def sample_pull_request() -> PullRequest:
    """Open, mergeable pull request for ABC-12."""
    return PullRequest(
        number=7,
        title="ABC-12: Fix login redirect",
        url="https://github.com/acme/shop/pull/7",
        head="bugfix/ABC-12_fix_login_redirect",
        base="develop",
        mergeable=True,
        head_sha="abc123",
    )
