# Lifecycle module - application aggregate, events and state machine
from .application import Application
from .documents import ApplicationDocument
from .events import (
    Approve,
    CompleteGovernanceReview,
    EventType,
    LifecycleEvent,
    Propose,
    Refill,
    TotalDatacapReached,
)
from .locations import ApplicationLocations, Location
from .models import (
    AllocationRequest,
    Amount,
    AppState,
    Lifecycle,
    RequestKind,
    RequestType,
    Signer,
)
from .state_machine import TRANSITIONS, get_valid_events, next_state

__all__ = [
    "Application",
    "ApplicationDocument",
    "Approve",
    "CompleteGovernanceReview",
    "EventType",
    "LifecycleEvent",
    "Propose",
    "Refill",
    "TotalDatacapReached",
    "ApplicationLocations",
    "Location",
    "AllocationRequest",
    "Amount",
    "AppState",
    "Lifecycle",
    "RequestKind",
    "RequestType",
    "Signer",
    "TRANSITIONS",
    "get_valid_events",
    "next_state",
]
