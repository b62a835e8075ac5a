"""
Typed failures raised by the coordination services.

Every error carries a ``category`` used by callers to map it onto their own
surface (HTTP status, CLI exit code, ...):

- ``validation``     malformed input, never retried
- ``not_found``      referenced entity does not exist
- ``state``          a workflow guard rejected the transition
- ``authorization``  the caller is not allowed to act on the entity
- ``consistency``    the store could not serialise the transaction in time
"""

from __future__ import annotations

from typing import Any


class CoordinationError(Exception):
    """Base class for every failure surfaced by the core."""

    category = "internal"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {
            "error": type(self).__name__,
            "category": self.category,
            "message": self.message,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


# --- validation -------------------------------------------------------------

class InvalidInputError(CoordinationError):
    category = "validation"


class InvalidWindowError(InvalidInputError):
    """Raised when an offering window ends at or before its start."""


# --- lookup -----------------------------------------------------------------

class NotFoundError(CoordinationError):
    category = "not_found"


# --- state guards -----------------------------------------------------------

class StateGuardError(CoordinationError):
    category = "state"


class InvalidStateError(StateGuardError):
    pass


class AlreadyCommittedError(StateGuardError):
    """The applicant already has an accepted sponsor."""


class CapacityExceededError(StateGuardError):
    """The sponsor has no capacity left for another applicant."""


class NoSlotsError(StateGuardError):
    pass


class OverlapError(StateGuardError):
    """Another offering of the same sponsor overlaps the requested window."""


class DuplicateRequestError(StateGuardError):
    pass


class HasCommittedRequestsError(StateGuardError):
    pass


class OfferingNotActiveError(StateGuardError):
    pass


# --- authorization ----------------------------------------------------------

class AccessDeniedError(CoordinationError):
    category = "authorization"


class NotOwnerError(AccessDeniedError):
    pass


class NotTargetSponsorError(AccessDeniedError):
    pass


class NotAuthorizedError(AccessDeniedError):
    pass


# --- consistency ------------------------------------------------------------

class StoreBusyError(CoordinationError):
    """The write lock could not be acquired before the busy timeout expired."""

    category = "consistency"


__all__ = [
    "CoordinationError",
    "InvalidInputError",
    "InvalidWindowError",
    "NotFoundError",
    "StateGuardError",
    "InvalidStateError",
    "AlreadyCommittedError",
    "CapacityExceededError",
    "NoSlotsError",
    "OverlapError",
    "DuplicateRequestError",
    "HasCommittedRequestsError",
    "OfferingNotActiveError",
    "AccessDeniedError",
    "NotOwnerError",
    "NotTargetSponsorError",
    "NotAuthorizedError",
    "StoreBusyError",
]
