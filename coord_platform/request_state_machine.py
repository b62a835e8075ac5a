"""Request, offering and document state-machine helpers.

Everything here is pure: no connection, no clock. Services call these to
decide a transition and then apply it inside their own transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .errors import InvalidStateError, InvalidWindowError
from .runtime.utils import ensure_utc


# --- request lifecycle ------------------------------------------------------

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
DOCUMENT_PENDING = "document_pending"
COMPLETED = "completed"

REQUEST_STATUSES = (PENDING, APPROVED, REJECTED, DOCUMENT_PENDING, COMPLETED)

REQUEST_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({APPROVED, REJECTED}),
    APPROVED: frozenset({DOCUMENT_PENDING}),
    DOCUMENT_PENDING: frozenset({APPROVED, COMPLETED}),
    REJECTED: frozenset(),
    COMPLETED: frozenset(),
}

# Statuses that hold a sponsor's capacity and an offering slot
COMMITTED_STATUSES = frozenset({APPROVED, DOCUMENT_PENDING, COMPLETED})


def can_transition(current: str, target: str) -> bool:
    """Return True when *current* → *target* is an edge of the request graph."""
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


def require_transition(current: str, target: str, action: str) -> None:
    """Raise ``InvalidStateError`` unless *current* → *target* is allowed."""
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot {action} a request in status '{current}'",
            status=current,
            target=target,
        )


def require_pending(current: str, action: str) -> None:
    """Guard for the applicant/sponsor actions that only apply to pending requests."""
    if current != PENDING:
        raise InvalidStateError(
            f"Only pending requests can be {action}",
            status=current,
        )


def is_committed_status(status: str) -> bool:
    return status in COMMITTED_STATUSES


def empty_request_stats() -> dict[str, int]:
    """Return a zeroed per-status counter including the total."""
    stats = {status: 0 for status in REQUEST_STATUSES}
    stats["total"] = 0
    return stats


# --- offering windows -------------------------------------------------------

UPCOMING = "upcoming"
ACTIVE = "active"
CLOSED = "closed"

OFFERING_STATUSES = (UPCOMING, ACTIVE, CLOSED)


def recompute_status(window_start: datetime, window_end: datetime, now: datetime) -> str:
    """Map a window and the current time onto an offering status."""
    start, end, current = ensure_utc(window_start), ensure_utc(window_end), ensure_utc(now)
    if current < start:
        return UPCOMING
    if current <= end:
        return ACTIVE
    return CLOSED


def validate_window(window_start: datetime, window_end: datetime) -> None:
    if ensure_utc(window_end) <= ensure_utc(window_start):
        raise InvalidWindowError(
            "Window end must be after window start",
            window_start=ensure_utc(window_start).isoformat(),
            window_end=ensure_utc(window_end).isoformat(),
        )


# --- document review --------------------------------------------------------

PENDING_REVIEW = "pending_review"
DOC_ACCEPTED = "accepted"
DOC_REJECTED = "rejected"

DOCUMENT_STATUSES = (PENDING_REVIEW, DOC_ACCEPTED, DOC_REJECTED)

APPLICANT = "applicant"
SPONSOR = "sponsor"


def upload_transition(uploader_role: str, request_status: str) -> Optional[str]:
    """Return the request status an upload moves to, or None for no change.

    Applicants upload against an approved request, which then awaits review.
    Sponsors may add a counter-document while review is pending; that upload
    leaves the request status untouched.
    """
    if uploader_role == APPLICANT:
        if request_status != APPROVED:
            raise InvalidStateError(
                "Applicants can only upload documents for approved requests",
                status=request_status,
            )
        return DOCUMENT_PENDING
    if uploader_role == SPONSOR:
        if request_status != DOCUMENT_PENDING:
            raise InvalidStateError(
                "Sponsors can only upload documents while a document is under review",
                status=request_status,
            )
        return None
    raise InvalidStateError(f"Unknown uploader role '{uploader_role}'")


def review_transition(uploader_role: str, artifact_status: str,
                      request_status: str, decision: str) -> str:
    """Validate a document review and return the request status it leads to.

    Only the applicant's documents are reviewed; a sponsor counter-document
    never moves the request.
    """
    if uploader_role != APPLICANT:
        raise InvalidStateError(
            "Only documents uploaded by the applicant can be reviewed",
            uploader_role=uploader_role,
        )
    if artifact_status != PENDING_REVIEW:
        raise InvalidStateError(
            f"Only documents pending review can be {decision}",
            status=artifact_status,
        )
    target = COMPLETED if decision == DOC_ACCEPTED else APPROVED
    require_transition(request_status, target, "review the document of")
    return target
