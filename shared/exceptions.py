"""
shared/exceptions.py
Typed business-rule failures raised by the service layer.
main.py maps each class to an HTTP status; nothing here knows about HTTP
beyond the status hint.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for every expected, caller-visible failure."""

    status_code = 500
    kind = "unexpected"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind, "reason": self.reason}


class NotFound(DomainError):
    status_code = 404
    kind = "not_found"


class Conflict(DomainError):
    """Duplicate pair or exhausted capacity. `reason` tells them apart."""

    status_code = 409
    kind = "conflict"


class InvalidState(DomainError):
    status_code = 400
    kind = "invalid_state"


class PolicyDenied(DomainError):
    status_code = 403
    kind = "policy_denied"
