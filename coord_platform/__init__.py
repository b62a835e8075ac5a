"""Sponsor/applicant coordination platform over a local SQLite store."""

__version__ = "1.0.0"

from .errors import (
    AccessDeniedError,
    AlreadyCommittedError,
    CapacityExceededError,
    CoordinationError,
    DuplicateRequestError,
    HasCommittedRequestsError,
    InvalidInputError,
    InvalidStateError,
    InvalidWindowError,
    NoSlotsError,
    NotAuthorizedError,
    NotFoundError,
    NotOwnerError,
    NotTargetSponsorError,
    OfferingNotActiveError,
    OverlapError,
    StateGuardError,
    StoreBusyError,
)
from .models import Actor, CoordinationRequest, DocumentArtifact, Offering
from .notifier import LoggingNotifier, Notifier
from .request_state_machine import (
    can_transition,
    is_committed_status,
    recompute_status,
    review_transition,
    upload_transition,
    validate_window,
)

__all__ = [
    "__version__",
    "Actor",
    "Offering",
    "CoordinationRequest",
    "DocumentArtifact",
    "Notifier",
    "LoggingNotifier",
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
    "can_transition",
    "is_committed_status",
    "recompute_status",
    "validate_window",
    "upload_transition",
    "review_transition",
]
