"""devotion: keep Notion tickets, git branches and GitHub pull requests in step."""

__version__ = "0.1.0"
