# allocgov/lifecycle/state_machine.py
"""
Application lifecycle state machine.

States:
GovernanceReview -> ReadyToSign        (complete_governance_review)
ReadyToSign      -> StartSignDatacap   (propose)
StartSignDatacap -> Granted            (approve)
Granted          -> Granted            (total_datacap_reached, refill)

A refill runs the ReadyToSign -> StartSignDatacap sign-off again for the new
request while the state label stays Granted. Transitions are checked against
the effective step, which for a Granted application with a request in flight
is derived from that request's signer count.
"""

from typing import Dict, Optional, Sequence, Set

from ..errors import StateMismatch
from .allocations import active_request
from .events import EventType
from .models import AllocationRequest, AppState


# Valid transitions: effective step -> event -> next step
TRANSITIONS: Dict[AppState, Dict[EventType, AppState]] = {
    AppState.GOVERNANCE_REVIEW: {
        EventType.COMPLETE_GOVERNANCE_REVIEW: AppState.READY_TO_SIGN,
    },
    AppState.READY_TO_SIGN: {
        EventType.PROPOSE: AppState.START_SIGN_DATACAP,
    },
    AppState.START_SIGN_DATACAP: {
        EventType.APPROVE: AppState.GRANTED,
    },
    AppState.GRANTED: {
        EventType.TOTAL_DATACAP_REACHED: AppState.GRANTED,
        EventType.REFILL: AppState.GRANTED,
    },
}


def get_valid_events(step: AppState) -> Set[EventType]:
    """Events accepted from an effective step."""
    return set(TRANSITIONS.get(step, {}))


def required_step(event: EventType) -> Optional[AppState]:
    """The step an event must be received in."""
    for step, events in TRANSITIONS.items():
        if event in events:
            return step
    return None


def effective_step(
    state: AppState,
    allocations: Sequence[AllocationRequest],
) -> AppState:
    """
    Step the application is actually in.

    Equal to the state label, except for a Granted application whose refill
    request is still collecting signatures.
    """
    if state != AppState.GRANTED:
        return state
    request = active_request(allocations)
    if request is None:
        return AppState.GRANTED
    if not request.signers:
        return AppState.READY_TO_SIGN
    return AppState.START_SIGN_DATACAP


def next_state(
    state: AppState,
    allocations: Sequence[AllocationRequest],
    event: EventType,
) -> AppState:
    """
    Next state label for an event.

    Raises:
        StateMismatch: If the event is not accepted from the effective step
    """
    step = effective_step(state, allocations)
    target = TRANSITIONS.get(step, {}).get(event)
    if target is None:
        expected = required_step(event)
        raise StateMismatch(
            current=step.value,
            event=event.value,
            expected=expected.value if expected else "none",
        )
    # The refill sign-off never moves the label off Granted
    if state == AppState.GRANTED:
        return AppState.GRANTED
    return target
