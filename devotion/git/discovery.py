"""Working copy discovery.

Answers the questions the workflow asks before touching anything: is the
current directory inside a git working copy, and which code host
repository does its ``origin`` remote point to.

Example:
    >>> from devotion.git.discovery import GitDiscovery
    >>> discovery = GitDiscovery()
    >>> if discovery.is_working_copy():
    ...     info = discovery.parse_repository()
    ...     print(info.full_name)
    acme/shop
"""

from pathlib import Path

import git
import structlog
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from devotion.git.exceptions import NoRemotesError, NotGitRepositoryError
from devotion.git.models import RepositoryInfo
from devotion.git.parser import GitUrlParser

log = structlog.get_logger(__name__)

ORIGIN = "origin"


class GitDiscovery:
    """Discovers repository information from a local working copy.

    The ``git.Repo`` object is created lazily on first use, so an instance
    can be constructed before it is known whether the path is a working
    copy. Nothing is cached across instances; the orchestrator creates one
    per invocation.

    Attributes:
        repo_path: Resolved path the search starts from
    """

    def __init__(self, repo_path: str | Path = ".") -> None:
        """Initialize discovery for a path.

        Args:
            repo_path: Any path inside the working copy. Parent directories
                are searched. Default is the current directory.
        """
        self.repo_path = Path(repo_path).resolve()
        self._repo: git.Repo | None = None

    def _get_repo(self) -> git.Repo:
        if self._repo is None:
            try:
                self._repo = git.Repo(self.repo_path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise NotGitRepositoryError(str(self.repo_path)) from e
        return self._repo

    def is_working_copy(self) -> bool:
        """Check whether ``repo_path`` is inside a git working copy."""
        try:
            repo = self._get_repo()
        except NotGitRepositoryError:
            return False
        return not repo.bare

    @property
    def working_dir(self) -> Path:
        """Top-level directory of the working copy.

        Raises:
            NotGitRepositoryError: If not inside a working copy
        """
        return Path(self._get_repo().working_tree_dir or self.repo_path)

    def get_origin_url(self) -> str:
        """Return the URL of the ``origin`` remote.

        Raises:
            NotGitRepositoryError: If not inside a working copy
            NoRemotesError: If ``origin`` is not configured
        """
        repo = self._get_repo()
        for remote in repo.remotes:
            if remote.name == ORIGIN:
                return remote.url
        raise NoRemotesError(ORIGIN)

    def parse_repository(self) -> RepositoryInfo:
        """Resolve the code host repository from the ``origin`` URL.

        Returns:
            Owner, repo and host of the ``origin`` remote

        Raises:
            NotGitRepositoryError: If not inside a working copy
            NoRemotesError: If ``origin`` is not configured
            InvalidGitUrlError: If the URL is not an SSH or HTTPS repo URL
        """
        url = self.get_origin_url()
        parser = GitUrlParser(url)
        log.debug("origin_resolved", url=url, owner=parser.owner, repo=parser.repo)
        return RepositoryInfo(
            owner=parser.owner,
            repo=parser.repo,
            host=parser.host,
            remote_name=ORIGIN,
        )
