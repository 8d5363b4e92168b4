# allocgov/lifecycle/engine.py
"""
Lifecycle engine.

Every mutation follows the same protocol:

1. Resolve   application id -> (path, branch)
2. Load      document bytes + version token        (NotFound, CorruptDocument)
3. Transition Application.apply(event), no I/O      (InvalidTransition)
4. Commit    conditional write with the loaded token (VersionConflict)

A VersionConflict is never retried here: the winner may have changed the
state the event was validated against, so the caller must reload and
decide again.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..errors import AlreadyExists, CorruptDocument, LifecycleError, NotFound, VersionConflict
from ..logging import get_logger
from ..store.base import DocumentStore
from ..tickets import TicketSource, parse_ticket
from .application import Application
from .events import (
    Approve,
    CompleteGovernanceReview,
    LifecycleEvent,
    Propose,
    Refill,
    TotalDatacapReached,
    utc_now,
)
from .locations import ApplicationLocations, Location
from .models import Amount, AppState, Signer

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadedApplication:
    """An application together with the version token it was read at."""
    application: Application
    version: str
    location: Location


@dataclass
class SweepReport:
    """Outcome of a total-datacap-reached sweep."""
    archived: List[str] = field(default_factory=list)
    not_reached: List[str] = field(default_factory=list)
    conflicted: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)


class LifecycleEngine:
    """
    Loads, transitions and commits application documents.

    Usage:
        engine = LifecycleEngine(store, tickets, ApplicationLocations())
        app = await engine.create_application("42")
        app = await engine.complete_governance_review(app.id, actor="alice")
    """

    def __init__(
        self,
        store: DocumentStore,
        tickets: TicketSource,
        locations: ApplicationLocations,
    ):
        self.store = store
        self.tickets = tickets
        self.locations = locations

    # ------------------------------------------------------------------
    # Load / commit
    # ------------------------------------------------------------------

    async def load(self, application_id: str, merged: bool = False) -> LoadedApplication:
        """
        Load the staged (or merged) copy of an application.

        Raises:
            NotFound: No document at the resolved location
            CorruptDocument: Document does not parse or belongs to another id
        """
        if merged:
            location = self.locations.merged(application_id)
        else:
            location = self.locations.staging(application_id)
        document = await self.store.read(location.path, location.ref)
        application = Application.from_json(document.content)
        if application.id != application_id:
            raise CorruptDocument(
                f"{location.path}@{location.ref} holds application {application.id}, "
                f"expected {application_id}"
            )
        return LoadedApplication(application=application, version=document.version, location=location)

    async def commit(self, loaded: LoadedApplication, event: LifecycleEvent) -> Application:
        """
        Apply an event to a loaded application and write it back.

        Raises:
            InvalidTransition: Event rejected; nothing is written
            VersionConflict: Document changed since it was loaded
        """
        updated = loaded.application.apply(event)
        location = loaded.location
        log = logger.bind(application_id=updated.id, event=event.type.value, ref=location.ref)
        try:
            await self.store.write(
                location.path,
                location.ref,
                updated.to_json(),
                expected_version=loaded.version,
                message=event.commit_message(),
            )
        except VersionConflict:
            log.warning("version_conflict", expected_version=loaded.version)
            raise
        log.info(
            "application_transitioned",
            from_state=loaded.application.step.value,
            to_state=updated.step.value,
        )
        return updated

    async def transition(
        self,
        application_id: str,
        event: LifecycleEvent,
        merged: bool = False,
    ) -> Application:
        """Load, apply and commit one event."""
        loaded = await self.load(application_id, merged=merged)
        return await self.commit(loaded, event)

    # ------------------------------------------------------------------
    # Named transitions
    # ------------------------------------------------------------------

    async def complete_governance_review(self, application_id: str, actor: str) -> Application:
        return await self.transition(application_id, CompleteGovernanceReview(actor=actor))

    async def propose(self, application_id: str, signer: Signer, request_id: str) -> Application:
        return await self.transition(application_id, Propose(signer=signer, request_id=request_id))

    async def approve(self, application_id: str, signer: Signer, request_id: str) -> Application:
        return await self.transition(application_id, Approve(signer=signer, request_id=request_id))

    # ------------------------------------------------------------------
    # Creation and staging
    # ------------------------------------------------------------------

    async def create_application(self, ticket_ref: str) -> Application:
        """
        Start a new application from a ticket.

        Creates the staging branch, commits the GovernanceReview document
        and opens the staging pull request.

        Raises:
            NotFound: Ticket does not exist
            CorruptDocument: Ticket body lacks required fields
            AlreadyExists: Application already staged or merged
        """
        ticket = await self.tickets.get_ticket(ticket_ref)
        parsed = parse_ticket(ticket.body)
        application_id = self.locations.validate_id(ticket.number)
        staging = self.locations.staging(application_id)

        await self._ensure_absent(staging)
        await self._ensure_absent(self.locations.merged(application_id))

        application = Application.new(
            application_id=application_id,
            issue_number=ticket.number,
            client=parsed.client,
            project=parsed.project,
            total_requested=parsed.total_requested,
            created_at=utc_now(),
        )
        await self._ensure_branch(staging)
        try:
            await self.store.write(
                staging.path,
                staging.ref,
                application.to_json(),
                expected_version=None,
                message=self.locations.initial_commit_message(application_id, application.client_name),
            )
        except VersionConflict:
            raise AlreadyExists(f"Application {application_id} was created concurrently")
        await self.store.open_pull_request(
            staging.ref,
            self.locations.pull_request_title(application_id, application.client_name),
            self.locations.pull_request_body(ticket.number),
        )
        logger.info("application_created", application_id=application_id, branch=staging.ref)
        return application

    async def refill(self, application_id: str, amount: Amount, actor: str = "SSA Bot") -> Application:
        """
        Stage a refill request for a merged application.

        The refill is applied to the merged copy and committed to a fresh
        staging branch cut from the main line, using the merged version
        token, then a pull request is opened.

        Raises:
            NotFound: No merged application with that id
            InvalidTransition: Application cannot be refilled
            AlreadyExists: Changes for the application are already staged
            VersionConflict: Merged copy changed since it was loaded
        """
        loaded = await self.load(application_id, merged=True)
        event = Refill(amount=amount, actor=actor)
        updated = loaded.application.apply(event)

        staging = self.locations.staging(application_id)
        await self._ensure_branch(staging, unchanged_from=loaded.version)
        await self.store.write(
            staging.path,
            staging.ref,
            updated.to_json(),
            expected_version=loaded.version,
            message=event.commit_message(),
        )
        await self.store.open_pull_request(
            staging.ref,
            self.locations.pull_request_title(application_id, updated.client_name),
            self.locations.pull_request_body(updated.issue_number),
        )
        logger.info(
            "refill_staged",
            application_id=application_id,
            request_id=updated.active_request.id,
            amount=str(amount),
        )
        return updated

    async def _ensure_absent(self, location: Location) -> None:
        try:
            await self.store.read(location.path, location.ref)
        except NotFound:
            return
        raise AlreadyExists(f"{location.path} already exists on {location.ref}")

    async def _ensure_branch(self, staging: Location, unchanged_from: Optional[str] = None) -> None:
        """
        Create the staging branch, or reuse a leftover one holding no changes.

        A branch left behind by an earlier attempt that failed before its
        commit is safe to reuse: it holds no document, or the same document
        version as the main line.
        """
        try:
            await self.store.create_branch(staging.ref, self.locations.main_branch)
            return
        except AlreadyExists:
            pass
        try:
            existing = await self.store.read(staging.path, staging.ref)
        except NotFound:
            return
        if existing.version != unchanged_from:
            raise AlreadyExists(f"Changes for {staging.path} are already staged on {staging.ref}")

    # ------------------------------------------------------------------
    # Total datacap reached
    # ------------------------------------------------------------------

    async def check_total_reached(self, application_id: str) -> bool:
        """
        Archive a merged application once its total has been granted.

        Returns:
            True if the archival transition was committed, False if the
            application is not Granted or has not reached its total

        Raises:
            NotFound: No merged application with that id
            VersionConflict: Merged copy changed since it was loaded
        """
        loaded = await self.load(application_id, merged=True)
        event = TotalDatacapReached()
        if not loaded.application.accepts(event):
            return False
        await self.commit(loaded, event)
        return True

    async def sweep_total_reached(self, applications: Iterable[Application]) -> SweepReport:
        """
        Run check_total_reached over every Granted application.

        Each application is checked on its own: conflicts and other failures
        are collected in the report rather than retried, and never stop the
        sweep, so archives already committed are always reported.
        """
        report = SweepReport()
        for application in applications:
            if application.state != AppState.GRANTED:
                continue
            try:
                archived = await self.check_total_reached(application.id)
            except VersionConflict:
                report.conflicted.append(application.id)
                continue
            except LifecycleError as e:
                logger.warning(
                    "total_reached_check_failed",
                    application_id=application.id,
                    kind=e.kind.value,
                    reason=e.reason,
                )
                report.failed.append({"id": application.id, **e.to_dict()})
                continue
            if archived:
                report.archived.append(application.id)
            else:
                report.not_reached.append(application.id)
        logger.info(
            "total_reached_sweep",
            archived=len(report.archived),
            not_reached=len(report.not_reached),
            conflicted=len(report.conflicted),
            failed=len(report.failed),
        )
        return report
