"""Notion ticket gateway using direct REST API calls.

Pages are decoded once, at this boundary, into ``Ticket`` and ``Project``
models (see ``devotion.models.notion`` for the property decoding). Missing
optional data never raises: an absent title becomes "Untitled", an absent
type None, an unrecognized status UNKNOWN. Only HTTP and transport failures
raise, as ``ExternalServiceError``.

Example:
    >>> async with NotionTicketGateway(api_key) as notion:
    ...     ticket = await notion.find_ticket(database_id, "ABC-12")
    ...     if ticket:
    ...         await notion.update_status(ticket.page_id, TicketStatus.IN_REVIEW)
"""

from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from devotion.enums import WORKABLE_STATUSES, TicketStatus
from devotion.exceptions import ExternalServiceError
from devotion.identifiers import format_ticket_id
from devotion.models.domain import Project, Ticket, TicketDatabase, TrackerUser
from devotion.models.notion import (
    ASSIGNEE_ALIASES,
    DEVELOPMENT_ALIASES,
    PULL_REQUEST_ALIASES,
    STATUS_ALIASES,
    TYPE_ALIASES,
    PageProperty,
    PeopleProperty,
    SelectProperty,
    StatusProperty,
    TitleProperty,
    UniqueIdProperty,
    UrlProperty,
    decode_properties,
    decode_schema,
    find_property,
    first_of_kind,
)
from devotion.providers.base import TicketGateway
from devotion.utils.connection_pool import HTTPConnectionPool

log = structlog.get_logger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100

# Projects are offered by "devotion init" only while in progress
PROJECT_STATUS_IN_PROGRESS = TicketStatus.IN_PROGRESS.label


class NotionTicketGateway(TicketGateway):
    """Tickets, projects and users of a Notion workspace."""

    def __init__(self, api_key: str, base_url: str = NOTION_API_URL, timeout: float = 30.0) -> None:
        """Initialize the gateway.

        Args:
            api_key: Notion integration token
            base_url: Notion API base URL
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self._pool = HTTPConnectionPool(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key.strip()}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> "NotionTicketGateway":
        await self._pool.initialize()
        return self

    async def _request(self, method: str, path: str, what: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Args:
            method: "get", "post" or "patch"
            path: API path relative to the base URL
            what: Description used in the error message ("fetch tickets")

        Raises:
            ExternalServiceError: On transport errors and non-2xx responses
        """
        send = getattr(self._pool, method)
        try:
            response = await send(path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_message(e.response)
            log.error("notion_request_failed", path=path, status_code=e.response.status_code, error=detail)
            raise ExternalServiceError(
                f"Failed to {what}: {detail}",
                status_code=e.response.status_code,
                response_text=e.response.text,
            ) from e
        except httpx.RequestError as e:
            log.error("notion_request_failed", path=path, error=str(e))
            raise ExternalServiceError(f"Failed to {what}: {e}") from e

        return response.json()

    async def _query_all(
        self,
        database_id: str,
        what: str,
        filter_: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every page of a database query, following pagination cursors."""
        body: dict[str, Any] = {"page_size": PAGE_SIZE}
        if filter_:
            body["filter"] = filter_

        while True:
            data = await self._request("post", f"/databases/{database_id}/query", what, json=body)
            for page in data.get("results", []):
                yield page
            if not data.get("has_more") or not data.get("next_cursor"):
                return
            body["start_cursor"] = data["next_cursor"]

    async def list_in_progress_projects(self, projects_db_id: str) -> list[Project]:
        log.info("list_projects", database_id=projects_db_id)
        status_filter = {"property": STATUS_ALIASES[0], "status": {"equals": PROJECT_STATUS_IN_PROGRESS}}
        return [
            self._parse_project(page) async for page in self._query_all(projects_db_id, "fetch projects", status_filter)
        ]

    async def find_tickets_database(self, project_page_id: str) -> str | None:
        """Find the child database titled "Development" (or a localized alias)."""
        log.info("find_tickets_database", project_id=project_page_id)
        params: dict[str, Any] = {"page_size": PAGE_SIZE}

        while True:
            data = await self._request(
                "get", f"/blocks/{project_page_id}/children", "read project page", params=params
            )
            for block in data.get("results", []):
                if block.get("type") != "child_database":
                    continue
                title = (block.get("child_database") or {}).get("title")
                if title in DEVELOPMENT_ALIASES:
                    return block["id"]
            if not data.get("has_more") or not data.get("next_cursor"):
                return None
            params["start_cursor"] = data["next_cursor"]

    async def get_database(self, database_id: str) -> TicketDatabase:
        log.info("get_database", database_id=database_id)
        data = await self._request("get", f"/databases/{database_id}", "fetch database schema")

        schema = decode_schema(data.get("properties"))
        prefix = next(
            (prop.unique_id_prefix for prop in schema.values() if prop.type == "unique_id" and prop.unique_id_prefix),
            None,
        )
        type_colors: dict[str, str] = {}
        for alias in TYPE_ALIASES:
            prop = schema.get(alias)
            if prop and prop.type == "select":
                type_colors = dict(prop.option_colors)
                break

        title = "".join(part.get("plain_text", "") for part in data.get("title") or [])
        return TicketDatabase(
            id=data.get("id", database_id),
            title=title or "Untitled Database",
            ticket_prefix=prefix,
            type_colors=type_colors,
        )

    async def list_workable_tickets(self, database_id: str) -> list[Ticket]:
        log.info("list_workable_tickets", database_id=database_id)
        status_filter = {
            "or": [
                {"property": STATUS_ALIASES[0], "status": {"equals": status.label}} for status in WORKABLE_STATUSES
            ]
        }
        return [self._parse_ticket(page) async for page in self._query_all(database_id, "fetch tickets", status_filter)]

    async def find_ticket(self, database_id: str, ticket_id: str) -> Ticket | None:
        """Scan all tickets of the database for ``ticket_id``."""
        log.info("find_ticket", database_id=database_id, ticket_id=ticket_id)
        async for page in self._query_all(database_id, "find ticket"):
            ticket = self._parse_ticket(page)
            if ticket.ticket_id == ticket_id:
                return ticket
        return None

    async def update_status(self, page_id: str, status: TicketStatus) -> None:
        if status == TicketStatus.UNKNOWN:
            raise ValueError("Cannot write an unknown status")

        log.info("update_ticket_status", page_id=page_id, status=str(status))
        await self._request(
            "patch",
            f"/pages/{page_id}",
            "update ticket status",
            json={"properties": {STATUS_ALIASES[0]: {"status": {"name": status.label}}}},
        )

    async def update_pull_request_link(self, page_id: str, url: str) -> bool:
        """Write ``url`` into the ticket's pull request property.

        Returns:
            False when the ticket has no URL property for pull requests
        """
        properties = await self._page_properties(page_id)
        prop = find_property(properties, PULL_REQUEST_ALIASES, UrlProperty)
        if prop is None:
            log.info("ticket_has_no_pull_request_property", page_id=page_id)
            return False

        log.info("update_pull_request_link", page_id=page_id, url=url)
        await self._request(
            "patch",
            f"/pages/{page_id}",
            "store pull request link",
            json={"properties": {prop.name: {"url": url}}},
        )
        return True

    async def update_assignee(self, page_id: str, user_id: str) -> bool:
        """Add ``user_id`` to the ticket's assignee property.

        Returns:
            False when the ticket has no people property for assignees
        """
        properties = await self._page_properties(page_id)
        prop = find_property(properties, ASSIGNEE_ALIASES, PeopleProperty)
        if prop is None:
            log.info("ticket_has_no_assignee_property", page_id=page_id)
            return False
        if user_id in prop.user_ids:
            return True

        people = [{"object": "user", "id": uid} for uid in (*prop.user_ids, user_id)]
        log.info("update_assignee", page_id=page_id, user_id=user_id)
        await self._request(
            "patch",
            f"/pages/{page_id}",
            "assign ticket",
            json={"properties": {prop.name: {"people": people}}},
        )
        return True

    async def list_users(self) -> list[TrackerUser]:
        users: list[TrackerUser] = []
        params: dict[str, Any] = {"page_size": PAGE_SIZE}

        while True:
            data = await self._request("get", "/users", "list users", params=params)
            for user in data.get("results", []):
                if user.get("type") != "person":
                    continue
                users.append(
                    TrackerUser(
                        id=user["id"],
                        name=user.get("name") or "Unknown",
                        email=(user.get("person") or {}).get("email"),
                    )
                )
            if not data.get("has_more") or not data.get("next_cursor"):
                return users
            params["start_cursor"] = data["next_cursor"]

    async def _page_properties(self, page_id: str) -> dict[str, PageProperty]:
        data = await self._request("get", f"/pages/{page_id}", "fetch ticket")
        return decode_properties(data.get("properties"))

    def _parse_ticket(self, page: dict[str, Any]) -> Ticket:
        """Convert a Notion page to our Ticket model."""
        properties = decode_properties(page.get("properties"))

        title = first_of_kind(properties, TitleProperty)
        status = find_property(properties, STATUS_ALIASES, StatusProperty)
        ticket_type = find_property(properties, TYPE_ALIASES, SelectProperty)
        pr_link = find_property(properties, PULL_REQUEST_ALIASES, UrlProperty)

        ticket_id = None
        for prop in properties.values():
            if isinstance(prop, UniqueIdProperty) and prop.prefix and prop.number is not None:
                ticket_id = format_ticket_id(prop.prefix, prop.number)
                break

        return Ticket(
            page_id=page["id"],
            ticket_id=ticket_id,
            title=(title.text if title else None) or "Untitled",
            status=TicketStatus.from_label(status.value if status else None),
            type=ticket_type.value if ticket_type else None,
            pull_request_url=pr_link.url if pr_link else None,
            url=page.get("url", ""),
        )

    def _parse_project(self, page: dict[str, Any]) -> Project:
        """Convert a Notion page to our Project model."""
        properties = decode_properties(page.get("properties"))
        title = first_of_kind(properties, TitleProperty)
        status = find_property(properties, STATUS_ALIASES, StatusProperty)
        return Project(
            page_id=page["id"],
            title=(title.text if title else None) or "Untitled",
            status=(status.value if status else None) or "",
        )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase
