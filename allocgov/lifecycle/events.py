# allocgov/lifecycle/events.py
"""
Lifecycle events.

Each event carries its payload and the time it occurred, so applying an
event to an application is deterministic.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from .models import Amount, Signer


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventType(Enum):
    """Events accepted by the lifecycle state machine."""
    COMPLETE_GOVERNANCE_REVIEW = "complete_governance_review"
    PROPOSE = "propose"
    APPROVE = "approve"
    TOTAL_DATACAP_REACHED = "total_datacap_reached"
    REFILL = "refill"


@dataclass(frozen=True)
class CompleteGovernanceReview:
    actor: str
    occurred_at: str = field(default_factory=utc_now)

    type = EventType.COMPLETE_GOVERNANCE_REVIEW

    def commit_message(self) -> str:
        return (
            f"Governance team user {self.actor} moved application "
            f"from GovernanceReview to ReadyToSign"
        )


@dataclass(frozen=True)
class Propose:
    signer: Signer
    request_id: str
    occurred_at: str = field(default_factory=utc_now)

    type = EventType.PROPOSE

    def commit_message(self) -> str:
        return (
            f"Notary {self.signer.signing_address} proposed allocation "
            f"request {self.request_id}"
        )


@dataclass(frozen=True)
class Approve:
    signer: Signer
    request_id: str
    occurred_at: str = field(default_factory=utc_now)

    type = EventType.APPROVE

    def commit_message(self) -> str:
        return (
            f"Notary {self.signer.signing_address} approved allocation "
            f"request {self.request_id}"
        )


@dataclass(frozen=True)
class TotalDatacapReached:
    occurred_at: str = field(default_factory=utc_now)

    type = EventType.TOTAL_DATACAP_REACHED

    def commit_message(self) -> str:
        return "Total requested datacap reached, application archived"


@dataclass(frozen=True)
class Refill:
    amount: Amount
    actor: str = "SSA Bot"
    occurred_at: str = field(default_factory=utc_now)

    type = EventType.REFILL

    def commit_message(self) -> str:
        return f"{self.actor} started refill request for {self.amount}"


LifecycleEvent = Union[
    CompleteGovernanceReview,
    Propose,
    Approve,
    TotalDatacapReached,
    Refill,
]
