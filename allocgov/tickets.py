# allocgov/tickets.py
"""
Application tickets.

An application starts from a GitHub issue filled in through an issue form.
Issue forms render as markdown sections:

    ### Data Owner Name

    Acme Research

    ### Total amount of DataCap being requested

    5 PiB

This module fetches the issue and maps the known sections onto client and
project metadata plus the total requested amount.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import AdapterError, CorruptDocument, NotFound
from .lifecycle.models import Amount
from .store.http import GitHubClient, error_message

NO_RESPONSE = "_No response_"

CLIENT_FIELDS = {
    "data owner name": "name",
    "data owner country/region": "region",
    "data owner industry": "industry",
    "website": "website",
    "social media": "social_media",
    "role": "role",
}

PROJECT_FIELDS = {
    "project id": "project_id",
    "share a brief history of your project and organization": "history",
    "describe the data being stored onchain": "description",
    "where was the data currently stored in this dataset sourced from": "data_source",
    "how do you plan to prepare the dataset": "preparation",
    "how many replicas": "replicas",
    "how do you plan to distribute your data": "distribution",
    "expected size of single dataset (one copy)": "dataset_size",
    "weekly allocation of datacap requested": "weekly_allocation",
}

TOTAL_FIELD = "total amount of datacap being requested"
UNIT_FIELD = "unit for total amount of datacap being requested"

_SECTION = re.compile(r"^###\s+(.+?)\s*$", re.MULTILINE)


@dataclass(frozen=True)
class Ticket:
    """An issue an application is created from."""
    number: str
    title: str
    body: str
    author: str


@dataclass(frozen=True)
class ParsedTicket:
    """Structured metadata extracted from a ticket body."""
    client: Dict[str, Any] = field(default_factory=dict)
    project: Dict[str, Any] = field(default_factory=dict)
    total_requested: Optional[Amount] = None


def split_sections(body: str) -> Dict[str, str]:
    """Map lower-cased section headings to their trimmed text."""
    sections: Dict[str, str] = {}
    matches = list(_SECTION.finditer(body))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(body)
        value = body[match.end():end].strip()
        if value == NO_RESPONSE:
            value = ""
        sections[match.group(1).strip().lower()] = value
    return sections


def parse_ticket(body: str) -> ParsedTicket:
    """
    Parse an issue-form body.

    Raises:
        CorruptDocument: If the total requested amount is missing or invalid
    """
    sections = split_sections(body or "")
    client = {key: sections[label] for label, key in CLIENT_FIELDS.items() if sections.get(label)}
    project = {key: sections[label] for label, key in PROJECT_FIELDS.items() if sections.get(label)}

    total = sections.get(TOTAL_FIELD, "")
    if not total:
        raise CorruptDocument("Ticket does not state the total amount of DataCap requested")
    unit = sections.get(UNIT_FIELD, "")
    try:
        amount = Amount.parse(f"{total} {unit}" if unit else total)
    except ValueError as e:
        raise CorruptDocument(f"Ticket total amount is invalid: {e}")

    return ParsedTicket(client=client, project=project, total_requested=amount)


class TicketSource(ABC):
    """Where application tickets are read from."""

    @abstractmethod
    async def get_ticket(self, number: str) -> Ticket:
        """
        Fetch a ticket.

        Raises:
            NotFound: No such ticket
            AdapterError: Remote failure
        """


class GitHubTicketSource(TicketSource):
    """Tickets are issues of the applications repository."""

    def __init__(self, client: GitHubClient):
        self.client = client

    async def get_ticket(self, number: str) -> Ticket:
        if not str(number).isdigit():
            raise NotFound(f"Issue {number} does not exist")
        response = await self.client.get(f"issues/{number}")
        if response.status_code in (404, 410):
            raise NotFound(f"Issue {number} does not exist")
        if response.status_code != 200:
            raise AdapterError(f"Reading issue {number}: HTTP {response.status_code} {error_message(response)}")
        issue = response.json()
        if "pull_request" in issue:
            raise NotFound(f"#{number} is a pull request, not an issue")
        return Ticket(
            number=str(issue["number"]),
            title=issue.get("title") or "",
            body=issue.get("body") or "",
            author=(issue.get("user") or {}).get("login", ""),
        )


class InMemoryTicketSource(TicketSource):
    """Tickets held in a dictionary, for development and tests."""

    def __init__(self):
        self._tickets: Dict[str, Ticket] = {}

    def add(self, ticket: Ticket) -> Ticket:
        self._tickets[ticket.number] = ticket
        return ticket

    async def get_ticket(self, number: str) -> Ticket:
        ticket = self._tickets.get(str(number))
        if ticket is None:
            raise NotFound(f"Issue {number} does not exist")
        return ticket
