"""Parsing of ``origin`` remote URLs.

The code host repository a working copy belongs to is derived from the URL
of its ``origin`` remote. Both common shapes are accepted:

    SSH:
        - git@github.com:owner/repo.git
        - git@github.com:owner/repo
    HTTPS:
        - https://github.com/owner/repo.git
        - https://github.com:8443/owner/repo

Example:
    >>> parser = GitUrlParser("git@github.com:acme/shop.git")
    >>> parser.owner, parser.repo
    ('acme', 'shop')
    >>> parser.full_name
    'acme/shop'
"""

import re
from typing import Literal

from devotion.git.exceptions import InvalidGitUrlError


class GitUrlParser:
    """Parser for git remote URLs in SSH and HTTPS formats.

    Parsing happens in the constructor; an instance always carries a valid
    host, owner and repo. Unparseable URLs raise ``InvalidGitUrlError``.

    Attributes:
        url: Original URL, whitespace-trimmed
        url_type: 'ssh' or 'https'
        host: Hostname of the git server
        port: Explicit HTTPS port, or None
        owner: Repository owner or organization
        repo: Repository name without the ``.git`` suffix
    """

    # user@host:path, the user part keeps "https://..." from matching
    SSH_PATTERN = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[a-zA-Z0-9._-]+):(?P<path>.+?)(?:\.git)?/?$")

    HTTPS_PATTERN = re.compile(
        r"^https?://(?:[^@/]+@)?(?P<host>[a-zA-Z0-9._-]+)(?::(?P<port>\d+))?/(?P<path>.+?)(?:\.git)?/?$"
    )

    def __init__(self, url: str) -> None:
        """Parse a git remote URL.

        Args:
            url: Remote URL, surrounding whitespace is ignored

        Raises:
            InvalidGitUrlError: If the URL is neither SSH nor HTTPS shaped or
                lacks an owner/repo path
        """
        self.url = url.strip()
        self.url_type: Literal["ssh", "https"]
        self.port: int | None = None

        ssh = self.SSH_PATTERN.match(self.url)
        https = None if ssh else self.HTTPS_PATTERN.match(self.url)

        if ssh:
            self.url_type = "ssh"
            self.host = ssh.group("host")
            path = ssh.group("path")
        elif https:
            self.url_type = "https"
            self.host = https.group("host")
            port = https.group("port")
            self.port = int(port) if port else None
            path = https.group("path")
        else:
            raise InvalidGitUrlError(
                self.url,
                reason="Must be SSH (git@host:owner/repo) or HTTPS (https://host/owner/repo)",
            )

        self.owner, self.repo = self._split_path(path)

    def _split_path(self, path: str) -> tuple[str, str]:
        parts = path.strip("/").removesuffix(".git").split("/")
        if len(parts) < 2:
            raise InvalidGitUrlError(self.url, reason=f"Path must contain owner/repo (got: {path})")

        owner, repo = parts[0], parts[1]
        if not owner or not repo:
            raise InvalidGitUrlError(self.url, reason="Owner and repo must not be empty")
        return owner, repo

    @property
    def full_name(self) -> str:
        """Repository in ``owner/repo`` form."""
        return f"{self.owner}/{self.repo}"

    @property
    def base_url(self) -> str:
        """Web base URL of the host (always HTTPS)."""
        if self.port:
            return f"https://{self.host}:{self.port}"
        return f"https://{self.host}"
