# allocgov/lifecycle/application.py
"""
Application aggregate.

Combines client/project metadata, the ordered allocation requests and the
lifecycle. apply() is pure: it validates an event against the current value
and returns a new Application, or raises InvalidTransition. It never does
I/O. The aggregate also owns the canonical JSON document form.

Invariants:
- at most one allocation request is active (incomplete) at any time
- recorded signers are never removed or edited
- the lifecycle state agrees with the signers on the active request;
  a loaded document that breaks this is CorruptDocument
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from ..errors import CorruptDocument, InactiveRequest, InvalidTransition
from . import allocations as alloc
from .events import (
    Approve,
    CompleteGovernanceReview,
    EventType,
    LifecycleEvent,
    Propose,
    Refill,
    TotalDatacapReached,
)
from .documents import ApplicationDocument, describe_errors
from .models import AllocationRequest, Amount, AppState, Lifecycle, RequestType
from .state_machine import effective_step, next_state


@dataclass(frozen=True)
class Application:
    """A governance application document."""
    id: str
    issue_number: str
    client: Dict[str, Any]
    project: Dict[str, Any]
    total_requested: Amount
    allocations: Tuple[AllocationRequest, ...] = ()
    lifecycle: Lifecycle = field(default_factory=Lifecycle)

    @classmethod
    def new(
        cls,
        application_id: str,
        issue_number: str,
        client: Dict[str, Any],
        project: Dict[str, Any],
        total_requested: Amount,
        created_at: str,
    ) -> "Application":
        """Fresh application awaiting governance review."""
        return cls(
            id=application_id,
            issue_number=issue_number,
            client=dict(client),
            project=dict(project),
            total_requested=total_requested,
            lifecycle=Lifecycle(updated_at=created_at),
        )

    @property
    def state(self) -> AppState:
        return self.lifecycle.state

    @property
    def step(self) -> AppState:
        """Effective step, accounting for an in-flight refill."""
        return effective_step(self.lifecycle.state, self.allocations)

    @property
    def active_request(self) -> Optional[AllocationRequest]:
        return alloc.active_request(self.allocations)

    @property
    def client_name(self) -> str:
        return str(self.client.get("name") or "unknown")

    def total_reached(self) -> bool:
        return alloc.total_reached(self.allocations, self.total_requested)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply(self, event: LifecycleEvent) -> "Application":
        """
        Apply an event and return the resulting application.

        Raises:
            StateMismatch: Event not accepted from the current step
            InactiveRequest: Referenced request is not the active one
            InvalidTransition: Any other failed precondition
        """
        target = next_state(self.lifecycle.state, self.allocations, event.type)
        handlers = {
            EventType.COMPLETE_GOVERNANCE_REVIEW: self._complete_governance_review,
            EventType.PROPOSE: self._sign,
            EventType.APPROVE: self._sign,
            EventType.TOTAL_DATACAP_REACHED: self._total_datacap_reached,
            EventType.REFILL: self._refill,
        }
        updated = handlers[event.type](event, target)
        _check_transition_invariants(self, updated)
        return updated

    def accepts(self, event: LifecycleEvent) -> bool:
        """Whether apply() would succeed for this event."""
        try:
            self.apply(event)
        except InvalidTransition:
            return False
        return True

    def _complete_governance_review(
        self, event: CompleteGovernanceReview, target: AppState
    ) -> "Application":
        request = alloc.create_request(
            self.allocations,
            amount=self.total_requested,
            actor=event.actor,
            created_at=event.occurred_at,
        )
        return replace(
            self,
            allocations=self.allocations + (request,),
            lifecycle=replace(
                self.lifecycle,
                state=target,
                validated_by=event.actor,
                validated_at=event.occurred_at,
                updated_at=event.occurred_at,
            ),
        )

    def _sign(self, event: Union[Propose, Approve], target: AppState) -> "Application":
        if not alloc.is_active(self.allocations, event.request_id):
            raise InactiveRequest(event.request_id)
        allocations = tuple(
            alloc.add_signer(a, event.signer) if a.id == event.request_id else a
            for a in self.allocations
        )
        return replace(
            self,
            allocations=allocations,
            lifecycle=replace(self.lifecycle, state=target, updated_at=event.occurred_at),
        )

    def _total_datacap_reached(
        self, event: TotalDatacapReached, target: AppState
    ) -> "Application":
        if not self.lifecycle.is_active:
            raise InvalidTransition(f"Application {self.id} is already archived")
        if not self.total_reached():
            raise InvalidTransition(
                f"Application {self.id} has not reached its total of {self.total_requested}"
            )
        return replace(
            self,
            lifecycle=replace(
                self.lifecycle, state=target, is_active=False, updated_at=event.occurred_at
            ),
        )

    def _refill(self, event: Refill, target: AppState) -> "Application":
        if not self.lifecycle.is_active:
            raise InvalidTransition(f"Application {self.id} is archived and cannot be refilled")
        request = alloc.create_request(
            self.allocations,
            amount=event.amount,
            actor=event.actor,
            created_at=event.occurred_at,
            refill=True,
        )
        return replace(
            self,
            allocations=self.allocations + (request,),
            lifecycle=replace(self.lifecycle, state=target, updated_at=event.occurred_at),
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "issue_number": self.issue_number,
            "client": self.client,
            "project": self.project,
            "total_requested": self.total_requested.to_document(),
            "allocations": [a.to_document() for a in self.allocations],
            "lifecycle": self.lifecycle.to_document(),
        }

    def to_json(self) -> bytes:
        """Canonical serialized form written to the store."""
        return (json.dumps(self.to_document(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")

    @classmethod
    def from_document(cls, doc: Any) -> "Application":
        """
        Build an application from its document.

        Raises:
            CorruptDocument: If the document does not match the schema, or its
                lifecycle disagrees with its allocation requests
        """
        try:
            document = ApplicationDocument.model_validate(doc)
        except ValidationError as e:
            raise CorruptDocument(f"invalid application document: {describe_errors(e)}")

        application = cls(
            id=document.id,
            issue_number=document.issue_number,
            client=dict(document.client),
            project=dict(document.project),
            total_requested=document.total_requested.to_amount(),
            allocations=tuple(a.to_request() for a in document.allocations),
            lifecycle=document.lifecycle.to_lifecycle(),
        )
        _check_document_invariants(application)
        return application

    @classmethod
    def from_json(cls, content: Union[bytes, str]) -> "Application":
        try:
            if isinstance(content, bytes):
                content = content.decode("utf-8")
            doc = json.loads(content)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptDocument(f"application file is not valid JSON: {e}")
        return cls.from_document(doc)


# Signers recorded on the initial request while it is being signed
_SIGNING_STEPS = {AppState.READY_TO_SIGN: 0, AppState.START_SIGN_DATACAP: 1}


def _check_document_invariants(application: Application) -> None:
    name = f"application {application.id}"
    requests = application.allocations
    state = application.state

    ids = [a.id for a in requests]
    if len(ids) != len(set(ids)):
        raise CorruptDocument(f"{name} repeats an allocation request id")
    if alloc.incomplete_count(requests) > 1:
        raise CorruptDocument(f"{name} has more than one active request")
    for position, request in enumerate(requests):
        expected = RequestType.refill(position) if position else RequestType.initial()
        if request.request_type != expected:
            raise CorruptDocument(
                f"{name} request {request.id} should be {expected}, found {request.request_type}"
            )

    if (state == AppState.GOVERNANCE_REVIEW) != (not requests):
        raise CorruptDocument(f"{name} allocations do not match state {state.value}")

    active = alloc.active_request(requests)
    if state in _SIGNING_STEPS:
        if len(requests) != 1:
            raise CorruptDocument(f"{name} holds refill requests while still {state.value}")
        signed = len(requests[0].signers)
        if signed != _SIGNING_STEPS[state]:
            raise CorruptDocument(f"{name} is {state.value} but its initial request has {signed} signers")
    if state == AppState.GRANTED and active is not None and not active.request_type.is_refill:
        raise CorruptDocument(f"{name} is {state.value} with its initial request unsigned")

    if not application.lifecycle.is_active:
        if state != AppState.GRANTED:
            raise CorruptDocument(f"{name} is archived in state {state.value}")
        if active is not None:
            raise CorruptDocument(f"{name} is archived with request {active.id} still active")


def _check_transition_invariants(before: Application, after: Application) -> None:
    if alloc.incomplete_count(after.allocations) > 1:
        raise InvalidTransition(f"application {before.id} would have two active requests")
    for old, new in zip(before.allocations, after.allocations):
        if new.id != old.id or new.request_type != old.request_type:
            raise InvalidTransition(f"allocation request {old.id} cannot be replaced")
        if new.signers[: len(old.signers)] != old.signers:
            raise InvalidTransition(f"allocation request {old.id} signers are append-only")
