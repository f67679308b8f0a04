"""Git repository data models."""

from dataclasses import dataclass, field

from pydantic import BaseModel, field_validator


class RepositoryInfo(BaseModel):
    """Code host repository a working copy pushes to.

    Example:
        >>> info = RepositoryInfo(owner="acme", repo="shop", host="github.com")
        >>> info.full_name
        'acme/shop'
    """

    owner: str
    repo: str
    host: str
    remote_name: str = "origin"

    @field_validator("owner", "repo")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Ensure owner and repo are not blank."""
        if not v or not v.strip():
            raise ValueError("Owner and repo must not be empty")
        return v.strip()

    @field_validator("repo")
    @classmethod
    def validate_no_git_suffix(cls, v: str) -> str:
        return v.removesuffix(".git")

    @property
    def full_name(self) -> str:
        """Return owner/repo format."""
        return f"{self.owner}/{self.repo}"


@dataclass
class BranchListing:
    """Branch names visible in a working copy.

    Attributes:
        local: Local branch names
        remote: Branch names on ``origin``, without the ``origin/`` prefix
    """

    local: list[str] = field(default_factory=list)
    remote: list[str] = field(default_factory=list)

    def all_names(self) -> list[str]:
        """Local and remote names without duplicates, local order first."""
        seen: dict[str, None] = dict.fromkeys(self.local)
        for name in self.remote:
            seen.setdefault(name, None)
        return list(seen)
