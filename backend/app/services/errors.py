"""Error taxonomy shared by the engagement and scheduling services."""

from __future__ import annotations

# purpose: give routes one family of caller-recoverable failures to translate into HTTP
# status: active
# depends_on: backend.app.routes._errors


class MentorshipError(RuntimeError):
    """Base error for engagement and scheduling flows."""


class ValidationError(MentorshipError):
    """Raised when input is malformed (time ordering, past dates, missing terms)."""


class InvalidState(MentorshipError):
    """Raised when the target entity is not in the state the operation requires."""


class GateNotCleared(InvalidState):
    """Raised when final acceptance is attempted before every gate has cleared."""


class SlotAlreadyBooked(MentorshipError):
    """Raised when another booking already holds the requested occurrence."""


class NotFound(MentorshipError):
    """Raised when a record does not exist or does not belong to the caller."""


class PreconditionFailed(MentorshipError):
    """Raised when a gate-dependent step runs before its prerequisite."""
