"""Platform-owned request workflow service.

Every mutating operation re-reads the rows it guards inside one write
transaction and applies all of its writes there, so concurrent callers see
either the whole transition or none of it. Notifications go out only after
the transaction has committed.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

from contracts.v1 import RejectionReason, RequestStats, RequestSubmission, parse_contract
from coord_platform.errors import (
    AlreadyCommittedError,
    CapacityExceededError,
    DuplicateRequestError,
    InvalidStateError,
    NoSlotsError,
    NotAuthorizedError,
    NotFoundError,
    NotOwnerError,
    NotTargetSponsorError,
    OfferingNotActiveError,
)
from coord_platform.models import CoordinationRequest
from coord_platform.notifier import (
    REQUEST_APPROVED,
    REQUEST_REJECTED,
    REQUEST_SUBMITTED,
    Notifier,
    dispatch,
)
from coord_platform.persistence import ActorStore, OfferingStore, RequestStore, transaction
from coord_platform.request_state_machine import (
    ACTIVE,
    APPROVED,
    PENDING,
    REJECTED,
    empty_request_stats,
    recompute_status,
    require_pending,
)
from coord_platform.runtime.config import AUTO_REJECT_REASON
from coord_platform.runtime.utils import from_storage, utc_now
from coord_platform.services import identity_service, offering_service

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    """Outcome of an approval: the approved request and the siblings it closed."""
    request: CoordinationRequest
    auto_rejected_ids: list[str] = field(default_factory=list)


def _load(conn: sqlite3.Connection, request_id: str) -> dict:
    row = RequestStore.get(conn, request_id)
    if row is None:
        raise NotFoundError("Request not found", request_id=request_id)
    return row


def _email(conn: sqlite3.Connection, actor_id: str) -> str:
    row = ActorStore.get(conn, actor_id)
    return (row or {}).get("email") or ""


def submit_request(conn: sqlite3.Connection, applicant_id: str, offering_id: str,
                   topic: str, message: str = "", *,
                   notifier: Notifier | None = None,
                   now: datetime | None = None) -> CoordinationRequest:
    """Create a pending request from an applicant against an active offering.

    No slot is reserved here: many pending requests may compete for few
    slots, and only approval consumes one.
    """
    submission = parse_contract(RequestSubmission, {"topic": topic, "message": message or ""})
    now = now or utc_now()

    try:
        with transaction(conn):
            applicant = identity_service.require_role(conn, applicant_id, "applicant")
            if applicant.accepted_by:
                raise AlreadyCommittedError(
                    "You have already been accepted by a sponsor",
                    applicant_id=applicant_id,
                )

            offering = OfferingStore.get(conn, offering_id)
            if offering is None:
                raise NotFoundError("Offering not found", offering_id=offering_id)
            status = recompute_status(
                from_storage(offering["window_start"]), from_storage(offering["window_end"]), now
            )
            if status != ACTIVE:
                raise OfferingNotActiveError(
                    "This offering is not currently accepting requests",
                    offering_id=offering_id,
                    status=status,
                )
            if offering["available_slots"] <= 0:
                raise NoSlotsError("This offering has no available slots", offering_id=offering_id)
            if RequestStore.exists_for(conn, applicant_id, offering_id):
                raise DuplicateRequestError(
                    "You have already submitted a request for this offering",
                    offering_id=offering_id,
                )

            request_id = RequestStore.create(
                conn,
                applicant_id=applicant_id,
                sponsor_id=offering["sponsor_id"],
                offering_id=offering_id,
                topic=submission.topic,
                message=submission.message,
                now=now,
            )
            row = RequestStore.get(conn, request_id)
    except sqlite3.IntegrityError as e:
        raise DuplicateRequestError(
            "You have already submitted a request for this offering",
            offering_id=offering_id,
        ) from e

    request = CoordinationRequest.from_dict(row)
    logger.info("Request %s submitted by applicant %s for offering %s",
                request.id, applicant_id, offering_id)
    dispatch(notifier, REQUEST_SUBMITTED, {
        "request_id": request.id,
        "offering_id": offering_id,
        "offering_title": offering["title"],
        "applicant_name": applicant.display_name,
        "sponsor_email": _email(conn, request.sponsor_id),
        "topic": request.topic,
    })
    return request


def approve_request(conn: sqlite3.Connection, request_id: str, sponsor_id: str, *,
                    notifier: Notifier | None = None,
                    now: datetime | None = None) -> ApprovalResult:
    """Approve a pending request and commit the applicant to this sponsor.

    In one transaction: the request becomes approved, the applicant records
    the sponsor, the sponsor's committed count grows by one, the offering
    loses a slot, and every other pending request of the applicant is
    rejected. The guards are re-checked against the rows as they are now, so
    a concurrent approval that committed first makes this one fail cleanly.
    """
    now = now or utc_now()

    with transaction(conn):
        row = _load(conn, request_id)
        if row["sponsor_id"] != sponsor_id:
            raise NotTargetSponsorError(
                "You can only approve requests made to you",
                request_id=request_id,
            )
        applicant_id = row["applicant_id"]
        applicant = identity_service.get_actor(conn, applicant_id)
        sponsor = identity_service.get_actor(conn, sponsor_id)
        # The loser of a concurrent approval finds its request already
        # auto-rejected; it reports the commitment, not the status.
        if applicant.accepted_by and applicant.accepted_by != sponsor_id:
            raise AlreadyCommittedError(
                "Applicant already accepted by another sponsor",
                applicant_id=applicant_id,
            )
        require_pending(row["status"], "approved")

        if applicant.accepted_by:
            logger.warning("Approval of %s refused: applicant %s already accepted by %s",
                           request_id, applicant_id, applicant.accepted_by)
            raise AlreadyCommittedError(
                "Applicant already accepted by another sponsor",
                applicant_id=applicant_id,
            )
        if not sponsor.has_capacity():
            logger.warning("Approval of %s refused: sponsor %s at capacity (%s/%s)",
                           request_id, sponsor_id, sponsor.committed, sponsor.capacity)
            raise CapacityExceededError(
                "Sponsor has reached maximum applicant capacity",
                sponsor_id=sponsor_id,
                capacity=sponsor.capacity,
            )

        if not RequestStore.set_status(conn, request_id, APPROVED, expected_status=PENDING, now=now):
            raise InvalidStateError("Only pending requests can be approved", request_id=request_id)
        identity_service.set_accepted_sponsor(conn, applicant_id, sponsor_id)
        identity_service.increment_committed(conn, sponsor_id, 1)
        offering_service.reserve_slot(conn, row["offering_id"])
        auto_rejected = RequestStore.reject_pending_siblings(
            conn, applicant_id, request_id, AUTO_REJECT_REASON, now=now
        )
        updated = RequestStore.get(conn, request_id)

    request = CoordinationRequest.from_dict(updated)
    logger.info("Request %s approved by sponsor %s; %d sibling request(s) auto-rejected",
                request_id, sponsor_id, len(auto_rejected))

    applicant_email = applicant.email
    dispatch(notifier, REQUEST_APPROVED, {
        "request_id": request.id,
        "applicant_email": applicant_email,
        "sponsor_name": sponsor.display_name,
        "topic": request.topic,
    })
    for sibling_id in auto_rejected:
        dispatch(notifier, REQUEST_REJECTED, {
            "request_id": sibling_id,
            "applicant_email": applicant_email,
            "reason": AUTO_REJECT_REASON,
        })
    return ApprovalResult(request=request, auto_rejected_ids=auto_rejected)


def reject_request(conn: sqlite3.Connection, request_id: str, sponsor_id: str,
                   reason: str, *, notifier: Notifier | None = None,
                   now: datetime | None = None) -> CoordinationRequest:
    """Reject a pending request with a reason. Counters are untouched."""
    reason = parse_contract(RejectionReason, {"reason": reason or ""}).reason
    now = now or utc_now()

    with transaction(conn):
        row = _load(conn, request_id)
        if row["sponsor_id"] != sponsor_id:
            raise NotTargetSponsorError(
                "You can only reject requests made to you",
                request_id=request_id,
            )
        require_pending(row["status"], "rejected")
        RequestStore.set_status(conn, request_id, REJECTED, expected_status=PENDING,
                                rejection_reason=reason, now=now)
        updated = RequestStore.get(conn, request_id)

    request = CoordinationRequest.from_dict(updated)
    logger.info("Request %s rejected by sponsor %s", request_id, sponsor_id)
    dispatch(notifier, REQUEST_REJECTED, {
        "request_id": request.id,
        "applicant_email": _email(conn, request.applicant_id),
        "topic": request.topic,
        "reason": reason,
    })
    return request


def cancel_request(conn: sqlite3.Connection, request_id: str, applicant_id: str) -> None:
    """Withdraw (delete) a request the applicant submitted, while still pending."""
    with transaction(conn):
        row = _load(conn, request_id)
        if row["applicant_id"] != applicant_id:
            raise NotOwnerError("You can only cancel your own requests", request_id=request_id)
        require_pending(row["status"], "cancelled")
        RequestStore.delete_pending(conn, request_id)
    logger.info("Request %s cancelled by applicant %s", request_id, applicant_id)


def get_request(conn: sqlite3.Connection, request_id: str, actor_id: str) -> CoordinationRequest:
    """Load a request visible to *actor_id* (its applicant or its sponsor)."""
    request = CoordinationRequest.from_dict(_load(conn, request_id))
    if not request.involves(actor_id):
        raise NotAuthorizedError(
            "You are not authorized to view this request",
            request_id=request_id,
        )
    return request


def _actor_column(conn: sqlite3.Connection, actor_id: str) -> str:
    actor = identity_service.get_actor(conn, actor_id)
    return "applicant_id" if actor.is_applicant else "sponsor_id"


def list_requests_for_actor(conn: sqlite3.Connection, actor_id: str,
                            status: str | None = None) -> list[CoordinationRequest]:
    """Applicants see their own requests; sponsors see requests made to them."""
    column = _actor_column(conn, actor_id)
    rows = RequestStore.list_for_actor(conn, column, actor_id, status=status)
    return [CoordinationRequest.from_dict(r) for r in rows]


def request_stats(conn: sqlite3.Connection, actor_id: str) -> RequestStats:
    """Count an actor's requests per status."""
    column = _actor_column(conn, actor_id)
    stats = empty_request_stats()
    for status, count in RequestStore.count_by_status(conn, column, actor_id).items():
        stats[status] = count
        stats["total"] += count
    return RequestStats(**stats)
