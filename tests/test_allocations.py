# tests/test_allocations.py
"""
Test the allocation request model.

Verifies request numbering, the active request and granted totals.
"""

import pytest

from allocgov.lifecycle.allocations import (
    active_request,
    add_signer,
    create_request,
    granted_totals,
    incomplete_count,
    is_active,
    next_request_type,
    total_reached,
)
from allocgov.lifecycle.models import AllocationRequest, Amount, RequestKind, RequestType

from conftest import make_signer

NOW = "2024-01-01T00:00:00+00:00"


def _signed(request: AllocationRequest) -> AllocationRequest:
    return add_signer(add_signer(request, make_signer("f1a")), make_signer("f1b"))


class TestRequestTypes:
    """Tests for request classification."""

    def test_first_request_is_initial(self):
        assert next_request_type((), refill=False) == RequestType.initial()

    def test_refills_number_from_one(self):
        """Refill(n) is the number of earlier refills plus one."""
        initial = _signed(create_request((), Amount("1", "TiB"), "alice", NOW))
        first = next_request_type((initial,), refill=True)
        assert first == RequestType.refill(1)

        refill = _signed(create_request((initial,), Amount("1", "TiB"), "bot", NOW, refill=True))
        assert next_request_type((initial, refill), refill=True) == RequestType.refill(2)

    def test_str(self):
        assert str(RequestType.refill(3)) == "Refill(3)"
        assert str(RequestType.initial()) == "Initial"

    def test_fresh_ids(self):
        """Every request gets its own id."""
        a = create_request((), Amount("1", "TiB"), "alice", NOW)
        b = create_request((), Amount("1", "TiB"), "alice", NOW)
        assert a.id != b.id
        assert a.request_type.kind == RequestKind.INITIAL


class TestActiveRequest:
    """Tests for active request derivation."""

    def test_unsigned_request_is_active(self):
        request = create_request((), Amount("1", "TiB"), "alice", NOW)
        assert active_request((request,)) == request
        assert is_active((request,), request.id)

    def test_one_signer_still_active(self):
        request = add_signer(create_request((), Amount("1", "TiB"), "alice", NOW), make_signer("f1a"))
        assert active_request((request,)) == request
        assert not request.is_complete

    def test_complete_request_not_active(self):
        request = _signed(create_request((), Amount("1", "TiB"), "alice", NOW))
        assert active_request((request,)) is None
        assert not is_active((request,), request.id)
        assert incomplete_count((request,)) == 0

    def test_most_recent_incomplete_wins(self):
        initial = _signed(create_request((), Amount("1", "TiB"), "alice", NOW))
        refill = create_request((initial,), Amount("2", "TiB"), "bot", NOW, refill=True)
        assert active_request((initial, refill)) == refill

    def test_identity_by_id(self):
        """Appending a signer keeps the request's identity."""
        request = create_request((), Amount("1", "TiB"), "alice", NOW)
        signed = add_signer(request, make_signer("f1a"))
        assert signed == request
        assert signed.signers[0].signing_address == "f1a"
        assert request.signers == ()


class TestGrantedTotals:
    """Tests for the total-reached check."""

    def test_only_complete_requests_count(self):
        complete = _signed(create_request((), Amount("60", "TiB"), "alice", NOW))
        pending = create_request((complete,), Amount("40", "TiB"), "bot", NOW, refill=True)
        assert not total_reached((complete, pending), Amount("100", "TiB"))

    def test_reached_across_units(self):
        """1 PiB granted covers a 1024 TiB total."""
        complete = _signed(create_request((), Amount("1", "PiB"), "alice", NOW))
        assert total_reached((complete,), Amount("1024", "TiB"))

    def test_unknown_units_compared_verbatim(self):
        complete = _signed(create_request((), Amount("5", "units"), "alice", NOW))
        assert granted_totals((complete,)) == {"units": 5}
        assert total_reached((complete,), Amount("5", "units"))
        assert not total_reached((complete,), Amount("5", "other"))

    @pytest.mark.parametrize("quantity", ["-1", "abc", "NaN", "", "1e3", "5,000", "+5"])
    def test_invalid_amount(self, quantity):
        with pytest.raises(ValueError):
            Amount(quantity, "TiB")

    @pytest.mark.parametrize("unit", ["", " ", ",000 TiB", "Ti B"])
    def test_invalid_unit(self, unit):
        with pytest.raises(ValueError):
            Amount("5", unit)

    def test_parse(self):
        assert Amount.parse("100TiB") == Amount("100", "TiB")
        assert Amount.parse(" 2.5 PiB ") == Amount("2.5", "PiB")
        with pytest.raises(ValueError):
            Amount.parse("PiB")

    @pytest.mark.parametrize("text", ["5,000 TiB", "1e3 TiB", "5", "5 Ti B", ".5 TiB", "5. TiB"])
    def test_parse_rejects_whole_text(self, text):
        """Anything other than a plain decimal and one unit word is refused."""
        with pytest.raises(ValueError):
            Amount.parse(text)
