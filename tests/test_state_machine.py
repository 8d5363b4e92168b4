# tests/test_state_machine.py
"""
Test the lifecycle state machine.

Verifies the transition table, effective steps during a refill and
rejection of out-of-order events.
"""

import pytest

from allocgov.errors import InvalidTransition, StateMismatch
from allocgov.lifecycle.allocations import add_signer, create_request
from allocgov.lifecycle.events import EventType
from allocgov.lifecycle.models import Amount, AppState
from allocgov.lifecycle.state_machine import (
    TRANSITIONS,
    effective_step,
    get_valid_events,
    next_state,
    required_step,
)

from conftest import make_granted, make_signer


class TestTransitionTable:
    """Tests for the transition table."""

    def test_primary_flow(self):
        """Each step accepts exactly the event that moves it forward."""
        assert next_state(AppState.GOVERNANCE_REVIEW, (), EventType.COMPLETE_GOVERNANCE_REVIEW) == AppState.READY_TO_SIGN
        assert next_state(AppState.READY_TO_SIGN, (), EventType.PROPOSE) == AppState.START_SIGN_DATACAP
        assert next_state(AppState.START_SIGN_DATACAP, (), EventType.APPROVE) == AppState.GRANTED

    def test_every_state_has_entry(self):
        """All states appear in the table."""
        assert set(TRANSITIONS) == set(AppState)

    def test_valid_events_for_granted(self):
        assert get_valid_events(AppState.GRANTED) == {
            EventType.TOTAL_DATACAP_REACHED,
            EventType.REFILL,
        }

    def test_required_step(self):
        assert required_step(EventType.APPROVE) == AppState.START_SIGN_DATACAP
        assert required_step(EventType.REFILL) == AppState.GRANTED


class TestStateMismatch:
    """Tests for events received in the wrong step."""

    @pytest.mark.parametrize("state,event", [
        (AppState.GOVERNANCE_REVIEW, EventType.PROPOSE),
        (AppState.GOVERNANCE_REVIEW, EventType.APPROVE),
        (AppState.READY_TO_SIGN, EventType.COMPLETE_GOVERNANCE_REVIEW),
        (AppState.READY_TO_SIGN, EventType.APPROVE),
        (AppState.START_SIGN_DATACAP, EventType.PROPOSE),
        (AppState.START_SIGN_DATACAP, EventType.REFILL),
    ])
    def test_rejected(self, state, event):
        """No forward skipping and no rollback."""
        with pytest.raises(StateMismatch):
            next_state(state, (), event)

    def test_mismatch_is_invalid_transition(self):
        """StateMismatch reports the current and required steps."""
        with pytest.raises(InvalidTransition) as exc_info:
            next_state(AppState.GOVERNANCE_REVIEW, (), EventType.APPROVE)

        error = exc_info.value
        assert error.current == "GovernanceReview"
        assert error.expected == "StartSignDatacap"


class TestRefillSubCycle:
    """Tests for the sign-off cycle a refill re-enters."""

    def _with_refill(self, signers=()):
        application = make_granted()
        refill = create_request(
            application.allocations, Amount("10", "TiB"), "SSA Bot", "2024-02-01T00:00:00+00:00", refill=True
        )
        for signer in signers:
            refill = add_signer(refill, signer)
        return application.allocations + (refill,)

    def test_granted_without_active_request(self):
        """A fully signed application sits at Granted."""
        assert effective_step(AppState.GRANTED, make_granted().allocations) == AppState.GRANTED

    def test_unsigned_refill_is_ready_to_sign(self):
        allocations = self._with_refill()
        assert effective_step(AppState.GRANTED, allocations) == AppState.READY_TO_SIGN

    def test_proposed_refill_is_start_sign(self):
        allocations = self._with_refill(signers=(make_signer("f1a"),))
        assert effective_step(AppState.GRANTED, allocations) == AppState.START_SIGN_DATACAP

    def test_label_stays_granted(self):
        """Propose and approve on a refill keep the Granted label."""
        allocations = self._with_refill()
        assert next_state(AppState.GRANTED, allocations, EventType.PROPOSE) == AppState.GRANTED

    def test_second_refill_rejected_while_first_in_flight(self):
        """Only one request may be collecting signatures."""
        allocations = self._with_refill()
        with pytest.raises(StateMismatch):
            next_state(AppState.GRANTED, allocations, EventType.REFILL)
