# tests/test_tickets.py
"""
Test issue-form parsing.

Verifies that known sections map onto client and project metadata and that
a ticket without a usable total is rejected.
"""

import pytest

from allocgov.errors import CorruptDocument, NotFound
from allocgov.lifecycle.models import Amount
from allocgov.tickets import InMemoryTicketSource, parse_ticket, split_sections

from conftest import TICKET_BODY


class TestSplitSections:
    """Tests for issue-form section splitting."""

    def test_sections(self):
        sections = split_sections(TICKET_BODY)

        assert sections["data owner name"] == "Acme Research"
        assert sections["project id"] == "acme-climate-01"

    def test_no_response_is_empty(self):
        assert split_sections(TICKET_BODY)["website"] == ""

    def test_multiline_value(self):
        body = "### Share a brief history of your project and organization\n\nLine one\nLine two\n"
        assert split_sections(body)["share a brief history of your project and organization"] == "Line one\nLine two"


class TestParseTicket:
    """Tests for ticket parsing."""

    def test_parse(self):
        parsed = parse_ticket(TICKET_BODY)

        assert parsed.client == {"name": "Acme Research", "region": "Iceland"}
        assert parsed.project == {"project_id": "acme-climate-01", "description": "Climate model output"}
        assert parsed.total_requested == Amount("5", "PiB")

    def test_total_with_inline_unit(self):
        body = "### Total amount of DataCap being requested\n\n10 TiB\n"
        assert parse_ticket(body).total_requested == Amount("10", "TiB")

    def test_missing_total(self):
        with pytest.raises(CorruptDocument):
            parse_ticket("### Data Owner Name\n\nAcme\n")

    def test_invalid_total(self):
        body = "### Total amount of DataCap being requested\n\nlots\n"
        with pytest.raises(CorruptDocument):
            parse_ticket(body)

    @pytest.mark.parametrize("total", ["5,000", "1e3", "-5"])
    def test_malformed_total_with_unit(self, total):
        """A total that is not a plain decimal is refused instead of folded into the unit."""
        body = (
            f"### Total amount of DataCap being requested\n\n{total}\n\n"
            "### Unit for total amount of DataCap being requested\n\nTiB\n"
        )
        with pytest.raises(CorruptDocument):
            parse_ticket(body)

    def test_empty_body(self):
        with pytest.raises(CorruptDocument):
            parse_ticket("")


class TestInMemoryTickets:
    """Tests for the in-memory ticket source."""

    @pytest.mark.asyncio
    async def test_lookup(self, tickets):
        ticket = await tickets.get_ticket("42")
        assert ticket.title == "Acme application"

        with pytest.raises(NotFound):
            await InMemoryTicketSource().get_ticket("42")
