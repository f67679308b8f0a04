"""Git working copy discovery, URL parsing and command execution."""

from devotion.git.client import GitClient
from devotion.git.discovery import GitDiscovery
from devotion.git.exceptions import (
    GitDiscoveryError,
    InvalidGitUrlError,
    NoRemotesError,
    NotGitRepositoryError,
)
from devotion.git.models import BranchListing, RepositoryInfo
from devotion.git.parser import GitUrlParser

__all__ = [
    "BranchListing",
    "GitClient",
    "GitDiscovery",
    "GitDiscoveryError",
    "GitUrlParser",
    "InvalidGitUrlError",
    "NoRemotesError",
    "NotGitRepositoryError",
    "RepositoryInfo",
]
