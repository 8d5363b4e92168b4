# allocgov/lifecycle/models.py
"""
Value types for governance applications.

All types are frozen; a new value is derived for every change. Each type
renders its JSON document form; parsing documents back is done by the
pydantic schema in documents.py.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# Signatures needed before an allocation request is complete (2-of-2)
REQUIRED_SIGNERS = 2

# Byte multipliers for comparing amounts across units
_UNIT_BYTES: Dict[str, int] = {
    "B": 1,
    "KB": 10**3, "MB": 10**6, "GB": 10**9, "TB": 10**12, "PB": 10**15, "EB": 10**18,
    "KIB": 2**10, "MIB": 2**20, "GIB": 2**30, "TIB": 2**40, "PIB": 2**50, "EIB": 2**60,
}

# Whole-string grammars: a plain decimal quantity and a single-word unit
_QUANTITY = re.compile(r"^\d+(?:\.\d+)?$")
_UNIT = re.compile(r"^[A-Za-z]+$")
_AMOUNT = re.compile(r"^(\d+(?:\.\d+)?)\s*([A-Za-z]+)$")


class AppState(Enum):
    """
    Application lifecycle states.

    GOVERNANCE_REVIEW -> READY_TO_SIGN -> START_SIGN_DATACAP -> GRANTED
    """
    GOVERNANCE_REVIEW = "GovernanceReview"
    READY_TO_SIGN = "ReadyToSign"
    START_SIGN_DATACAP = "StartSignDatacap"
    GRANTED = "Granted"


class RequestKind(Enum):
    """Kinds of allocation request."""
    INITIAL = "Initial"
    REFILL = "Refill"


@dataclass(frozen=True)
class Amount:
    """A requested quantity with its unit, e.g. 100 TiB."""
    quantity: str
    unit: str

    def __post_init__(self):
        if not isinstance(self.quantity, str) or not _QUANTITY.match(self.quantity):
            raise ValueError(f"Invalid amount quantity: {self.quantity!r}")
        if not isinstance(self.unit, str) or not _UNIT.match(self.unit):
            raise ValueError(f"Invalid amount unit: {self.unit!r}")

    def __str__(self) -> str:
        return f"{self.quantity} {self.unit}"

    @property
    def value(self) -> Decimal:
        return Decimal(self.quantity)

    def normalized(self) -> Tuple[Decimal, str]:
        """(magnitude, unit) with byte units folded into bytes."""
        multiplier = _UNIT_BYTES.get(self.unit.upper())
        if multiplier is None:
            return self.value, self.unit
        return self.value * multiplier, "B"

    @classmethod
    def parse(cls, text: str) -> "Amount":
        """
        Parse "100 TiB" or "100TiB".

        Raises:
            ValueError: Unless the whole text is a plain decimal followed by a unit
        """
        match = _AMOUNT.match(text.strip())
        if not match:
            raise ValueError(f"Cannot parse amount: {text!r}")
        return cls(quantity=match.group(1), unit=match.group(2))

    def to_document(self) -> Dict[str, Any]:
        return {"quantity": self.quantity, "unit": self.unit}


@dataclass(frozen=True)
class RequestType:
    """Initial request, or the n-th refill."""
    kind: RequestKind
    sequence: Optional[int] = None

    @classmethod
    def initial(cls) -> "RequestType":
        return cls(RequestKind.INITIAL)

    @classmethod
    def refill(cls, sequence: int) -> "RequestType":
        return cls(RequestKind.REFILL, sequence)

    @property
    def is_refill(self) -> bool:
        return self.kind == RequestKind.REFILL

    def __str__(self) -> str:
        if self.is_refill:
            return f"Refill({self.sequence})"
        return self.kind.value

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"kind": self.kind.value}
        if self.is_refill:
            doc["sequence"] = self.sequence
        return doc


@dataclass(frozen=True)
class Signer:
    """A notary approval recorded on an allocation request."""
    signing_address: str
    time_of_signature: str
    message_reference: str  # On-chain message CID
    actor_identity: str

    def to_document(self) -> Dict[str, Any]:
        return {
            "signing_address": self.signing_address,
            "time_of_signature": self.time_of_signature,
            "message_reference": self.message_reference,
            "actor_identity": self.actor_identity,
        }


@dataclass(frozen=True)
class AllocationRequest:
    """One funding ask within an application."""
    id: str
    request_type: RequestType
    requested_amount: Amount
    actor: str
    created_at: str
    signers: Tuple[Signer, ...] = ()

    @property
    def is_complete(self) -> bool:
        return len(self.signers) >= REQUIRED_SIGNERS

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllocationRequest):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "request_type": self.request_type.to_document(),
            "requested_amount": self.requested_amount.to_document(),
            "actor": self.actor,
            "created_at": self.created_at,
            "signers": [s.to_document() for s in self.signers],
        }


@dataclass(frozen=True)
class Lifecycle:
    """Lifecycle state of an application."""
    state: AppState = AppState.GOVERNANCE_REVIEW
    is_active: bool = True
    validated_by: Optional[str] = None
    validated_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_active": self.is_active,
            "validated_by": self.validated_by,
            "validated_at": self.validated_at,
            "updated_at": self.updated_at,
        }

