# tests/conftest.py
"""
Pytest configuration and fixtures.

Lifecycle tests run against the in-memory document store and ticket source,
so no hosting service or network access is needed.
"""

from dataclasses import replace

import pytest

from allocgov.lifecycle.application import Application
from allocgov.lifecycle.directory import ApplicationDirectory
from allocgov.lifecycle.engine import LifecycleEngine
from allocgov.lifecycle.locations import ApplicationLocations
from allocgov.lifecycle.models import (
    AllocationRequest,
    Amount,
    AppState,
    Lifecycle,
    RequestType,
    Signer,
)
from allocgov.store.memory import InMemoryDocumentStore
from allocgov.tickets import InMemoryTicketSource, Ticket

TICKET_BODY = """### Data Owner Name

Acme Research

### Data Owner Country/Region

Iceland

### Website

_No response_

### Project ID

acme-climate-01

### Describe the data being stored onchain

Climate model output

### Total amount of DataCap being requested

5

### Unit for total amount of DataCap being requested

PiB
"""


def make_signer(address: str, message: str = "bafy-msg") -> Signer:
    """A notary signature for tests."""
    return Signer(
        signing_address=address,
        time_of_signature="2024-01-01T00:00:00+00:00",
        message_reference=f"{message}-{address}",
        actor_identity=f"notary-{address}",
    )


def make_granted(
    application_id: str = "7",
    total: str = "100",
    granted: str = "100",
    unit: str = "TiB",
) -> Application:
    """A Granted application whose initial request is fully signed."""
    request = AllocationRequest(
        id=f"req-{application_id}",
        request_type=RequestType.initial(),
        requested_amount=Amount(granted, unit),
        actor="alice",
        created_at="2024-01-01T00:00:00+00:00",
        signers=(make_signer("f1a"), make_signer("f1b")),
    )
    return Application(
        id=application_id,
        issue_number=application_id,
        client={"name": "Acme"},
        project={},
        total_requested=Amount(total, unit),
        allocations=(request,),
        lifecycle=Lifecycle(
            state=AppState.GRANTED,
            validated_by="alice",
            validated_at="2024-01-01T00:00:00+00:00",
            updated_at="2024-01-01T00:00:00+00:00",
        ),
    )


def make_archived(application_id: str = "9") -> Application:
    application = make_granted(application_id)
    return replace(application, lifecycle=replace(application.lifecycle, is_active=False))


@pytest.fixture
def locations():
    return ApplicationLocations()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def tickets():
    source = InMemoryTicketSource()
    source.add(Ticket(number="42", title="Acme application", body=TICKET_BODY, author="acme"))
    source.add(Ticket(number="43", title="Broken application", body="### Data Owner Name\n\nNobody\n", author="x"))
    return source


@pytest.fixture
def engine(store, tickets, locations):
    return LifecycleEngine(store, tickets, locations)


@pytest.fixture
def directory(store, locations):
    return ApplicationDirectory(store, locations, concurrency=2)


@pytest.fixture
def seed_merged(store, locations):
    """Write applications straight onto the main line."""

    async def seed(*applications: Application) -> None:
        for application in applications:
            location = locations.merged(application.id)
            await store.write(location.path, location.ref, application.to_json(), None, "seed")

    return seed


@pytest.fixture
def grant(engine, store):
    """Drive ticket 42 through review and sign-off, then merge its pull request."""

    async def run(ticket: str = "42") -> Application:
        await engine.create_application(ticket)
        application = await engine.complete_governance_review(ticket, actor="alice")
        request_id = application.active_request.id
        await engine.propose(ticket, make_signer("f1a"), request_id)
        application = await engine.approve(ticket, make_signer("f1b"), request_id)
        for pull in await store.list_pull_requests():
            if pull.head_branch.endswith(f"/{ticket}"):
                await store.merge_pull_request(pull.number)
        return application

    return run
