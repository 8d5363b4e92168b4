# allocgov/lifecycle/documents.py
"""
Schema of the stored application document.

Validation is strict: no type coercion, no unknown keys. The lifecycle
state and request kind are matched by their stored value. Validated
documents convert to the frozen value types in models.py.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .models import (
    AllocationRequest,
    Amount,
    AppState,
    Lifecycle,
    RequestKind,
    RequestType,
    Signer,
)


class _Document(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)


class AmountDocument(_Document):
    quantity: str
    unit: str

    @model_validator(mode="after")
    def amount_must_be_valid(self):
        self.to_amount()
        return self

    def to_amount(self) -> Amount:
        return Amount(quantity=self.quantity, unit=self.unit)


class RequestTypeDocument(_Document):
    kind: RequestKind = Field(strict=False)
    sequence: Optional[int] = None

    @model_validator(mode="after")
    def sequence_matches_kind(self):
        if self.kind == RequestKind.INITIAL and "sequence" in self.model_fields_set:
            raise ValueError("initial request cannot carry a sequence")
        if self.kind == RequestKind.REFILL and (self.sequence is None or self.sequence < 1):
            raise ValueError("refill sequence must be a positive integer")
        return self

    def to_request_type(self) -> RequestType:
        if self.kind == RequestKind.REFILL:
            return RequestType.refill(self.sequence)
        return RequestType.initial()


class SignerDocument(_Document):
    signing_address: str
    time_of_signature: str
    message_reference: str
    actor_identity: str

    def to_signer(self) -> Signer:
        return Signer(
            signing_address=self.signing_address,
            time_of_signature=self.time_of_signature,
            message_reference=self.message_reference,
            actor_identity=self.actor_identity,
        )


class AllocationRequestDocument(_Document):
    id: str = Field(min_length=1)
    request_type: RequestTypeDocument
    requested_amount: AmountDocument
    actor: str
    created_at: str
    signers: List[SignerDocument]

    def to_request(self) -> AllocationRequest:
        return AllocationRequest(
            id=self.id,
            request_type=self.request_type.to_request_type(),
            requested_amount=self.requested_amount.to_amount(),
            actor=self.actor,
            created_at=self.created_at,
            signers=tuple(s.to_signer() for s in self.signers),
        )


class LifecycleDocument(_Document):
    state: AppState = Field(strict=False)
    is_active: bool
    validated_by: Optional[str] = None
    validated_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_lifecycle(self) -> Lifecycle:
        return Lifecycle(
            state=self.state,
            is_active=self.is_active,
            validated_by=self.validated_by,
            validated_at=self.validated_at,
            updated_at=self.updated_at,
        )


class ApplicationDocument(_Document):
    """The whole application file, as committed to the store."""
    id: str = Field(min_length=1)
    issue_number: str
    client: Dict[str, Any]
    project: Dict[str, Any]
    total_requested: AmountDocument
    allocations: List[AllocationRequestDocument]
    lifecycle: LifecycleDocument


def describe_errors(error: ValidationError) -> str:
    """One line naming each offending field, e.g. "lifecycle.state: Input should be ..."."""
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "document"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)
