# allocgov/lifecycle/allocations.py
"""
Allocation request model.

An application holds its requests in creation order. The active request is
derived here and nowhere else: the most recent request that still lacks
signers. Requests are never edited except by appending a signer.
"""

from collections import defaultdict
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Optional, Sequence
from uuid import uuid4

from .models import AllocationRequest, Amount, RequestType, Signer


def new_request_id() -> str:
    """Fresh opaque id for an allocation request."""
    return str(uuid4())


def refill_count(allocations: Sequence[AllocationRequest]) -> int:
    """Number of refill requests made so far."""
    return sum(1 for a in allocations if a.request_type.is_refill)


def next_request_type(
    allocations: Sequence[AllocationRequest],
    refill: bool,
) -> RequestType:
    """Type for the next request; refills are numbered from 1."""
    if not refill:
        return RequestType.initial()
    return RequestType.refill(refill_count(allocations) + 1)


def create_request(
    allocations: Sequence[AllocationRequest],
    amount: Amount,
    actor: str,
    created_at: str,
    refill: bool = False,
) -> AllocationRequest:
    """Build a new, unsigned request following the existing ones."""
    return AllocationRequest(
        id=new_request_id(),
        request_type=next_request_type(allocations, refill),
        requested_amount=amount,
        actor=actor,
        created_at=created_at,
    )


def active_request(
    allocations: Sequence[AllocationRequest],
) -> Optional[AllocationRequest]:
    """Most recently created request whose signer list is not complete."""
    for request in reversed(allocations):
        if not request.is_complete:
            return request
    return None


def is_active(allocations: Sequence[AllocationRequest], request_id: str) -> bool:
    active = active_request(allocations)
    return active is not None and active.id == request_id


def incomplete_count(allocations: Sequence[AllocationRequest]) -> int:
    return sum(1 for a in allocations if not a.is_complete)


def add_signer(request: AllocationRequest, signer: Signer) -> AllocationRequest:
    """Append a signer; earlier signers are kept as recorded."""
    return replace(request, signers=request.signers + (signer,))


def granted_totals(allocations: Sequence[AllocationRequest]) -> Dict[str, Decimal]:
    """Sum of completed request amounts, keyed by normalized unit."""
    totals: Dict[str, Decimal] = defaultdict(Decimal)
    for request in allocations:
        if request.is_complete:
            magnitude, unit = request.requested_amount.normalized()
            totals[unit] += magnitude
    return dict(totals)


def total_reached(allocations: Sequence[AllocationRequest], total: Amount) -> bool:
    """True when completed requests cover the total requested amount."""
    magnitude, unit = total.normalized()
    return granted_totals(allocations).get(unit, Decimal(0)) >= magnitude
