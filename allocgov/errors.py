# allocgov/errors.py
"""
Error taxonomy for the application lifecycle.

Every failure the core reports carries an ErrorKind and a human-readable
reason. Nothing here is retried or swallowed; the caller decides.
"""

from enum import Enum
from typing import Any, Dict


class ErrorKind(Enum):
    """Structured error kinds surfaced to callers."""
    NOT_FOUND = "NotFound"
    CORRUPT_DOCUMENT = "CorruptDocument"
    INVALID_TRANSITION = "InvalidTransition"
    VERSION_CONFLICT = "VersionConflict"
    ALREADY_EXISTS = "AlreadyExists"
    ADAPTER_ERROR = "AdapterError"


class LifecycleError(Exception):
    """Base exception for lifecycle errors."""

    kind: ErrorKind = ErrorKind.ADAPTER_ERROR

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"{self.kind.value}: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for API responses and logs."""
        return {"kind": self.kind.value, "reason": self.reason}


class NotFound(LifecycleError):
    """No document (or ticket) at the expected location."""
    kind = ErrorKind.NOT_FOUND


class CorruptDocument(LifecycleError):
    """Bytes do not parse into the application schema."""
    kind = ErrorKind.CORRUPT_DOCUMENT


class InvalidTransition(LifecycleError):
    """Event is not valid for the application's current value."""
    kind = ErrorKind.INVALID_TRANSITION


class StateMismatch(InvalidTransition):
    """Event received while the application is in the wrong step."""

    def __init__(self, current: str, event: str, expected: str):
        self.current = current
        self.event = event
        self.expected = expected
        super().__init__(
            f"Event {event} requires step {expected}, application is in {current}"
        )


class InactiveRequest(InvalidTransition):
    """Referenced allocation request is not the active one."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Allocation request {request_id} is not active")


class VersionConflict(LifecycleError):
    """Conditional write rejected: someone else wrote first."""
    kind = ErrorKind.VERSION_CONFLICT


class AlreadyExists(LifecycleError):
    """Create attempted on an existing application or branch."""
    kind = ErrorKind.ALREADY_EXISTS


class AdapterError(LifecycleError):
    """Remote I/O failure not otherwise classified."""
    kind = ErrorKind.ADAPTER_ERROR
