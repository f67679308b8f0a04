"""Gateways to the issue tracker (Notion) and the code host (GitHub)."""

from devotion.providers.base import ReviewGateway, TicketGateway
from devotion.providers.github_rest import GitHubReviewGateway
from devotion.providers.notion_rest import NotionTicketGateway

__all__ = [
    "GitHubReviewGateway",
    "NotionTicketGateway",
    "ReviewGateway",
    "TicketGateway",
]
