"""Platform-owned document review service.

Artifact metadata only; the bytes are stored by an external collaborator and
referenced through ``storage_ref``.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime

from contracts.v1 import ArtifactMetadata, RejectionReason, parse_contract
from coord_platform.errors import InvalidStateError, NotAuthorizedError, NotFoundError, NotTargetSponsorError
from coord_platform.models import CoordinationRequest, DocumentArtifact
from coord_platform.notifier import (
    DOCUMENT_ACCEPTED,
    DOCUMENT_REJECTED,
    DOCUMENT_UPLOADED,
    Notifier,
    dispatch,
)
from coord_platform.persistence import ActorStore, DocumentStore, RequestStore, transaction
from coord_platform.request_state_machine import (
    APPLICANT,
    DOC_ACCEPTED,
    DOC_REJECTED,
    SPONSOR,
    review_transition,
    upload_transition,
)
from coord_platform.runtime.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReviewResult:
    """Outcome of a document review: the artifact and its request after the change."""
    artifact: DocumentArtifact
    request: CoordinationRequest


def _load_request(conn: sqlite3.Connection, request_id: str) -> dict:
    row = RequestStore.get(conn, request_id)
    if row is None:
        raise NotFoundError("Request not found", request_id=request_id)
    return row


def _load_artifact(conn: sqlite3.Connection, artifact_id: str) -> dict:
    row = DocumentStore.get(conn, artifact_id)
    if row is None:
        raise NotFoundError("Document not found", artifact_id=artifact_id)
    return row


def _party_role(request: dict, actor_id: str) -> str | None:
    if actor_id == request["applicant_id"]:
        return APPLICANT
    if actor_id == request["sponsor_id"]:
        return SPONSOR
    return None


def upload_document(conn: sqlite3.Connection, request_id: str, uploader_id: str,
                    uploader_role: str, metadata: dict, *,
                    notifier: Notifier | None = None,
                    now: datetime | None = None) -> DocumentArtifact:
    """Record an uploaded artifact on a request.

    The applicant uploads against an approved request, which moves it to
    ``document_pending``. The sponsor may upload while a document is under
    review; that counter-upload leaves the request status as it is.
    """
    meta = parse_contract(ArtifactMetadata, dict(metadata))
    now = now or utc_now()

    with transaction(conn):
        request = _load_request(conn, request_id)
        role = _party_role(request, uploader_id)
        if role is None or role != uploader_role:
            raise NotAuthorizedError(
                "You are not authorized to upload documents for this request",
                request_id=request_id,
            )
        target = upload_transition(role, request["status"])

        artifact_id = DocumentStore.create(
            conn,
            request_id=request_id,
            uploader_id=uploader_id,
            uploader_role=role,
            file_name=meta.file_name,
            original_name=meta.original_name,
            content_type=meta.content_type,
            size_bytes=meta.size_bytes,
            storage_ref=meta.storage_ref,
            now=now,
        )
        if target is not None:
            RequestStore.set_status(conn, request_id, target,
                                    expected_status=request["status"], now=now)
        row = DocumentStore.get(conn, artifact_id)

    artifact = DocumentArtifact.from_dict(row)
    logger.info("Document %s uploaded by %s %s on request %s",
                artifact.id, role, uploader_id, request_id)
    counterpart = request["sponsor_id"] if role == APPLICANT else request["applicant_id"]
    dispatch(notifier, DOCUMENT_UPLOADED, {
        "request_id": request_id,
        "artifact_id": artifact.id,
        "uploader_role": role,
        "recipient_email": (ActorStore.get(conn, counterpart) or {}).get("email") or "",
        "topic": request["topic"],
    })
    return artifact


def _review(conn: sqlite3.Connection, artifact_id: str, sponsor_id: str,
            decision: str, reason: str | None, now: datetime) -> ReviewResult:
    with transaction(conn):
        artifact = _load_artifact(conn, artifact_id)
        request = _load_request(conn, artifact["request_id"])
        if request["sponsor_id"] != sponsor_id:
            raise NotTargetSponsorError(
                "Only the request's sponsor can review its documents",
                artifact_id=artifact_id,
            )
        target = review_transition(
            artifact["uploader_role"], artifact["status"], request["status"], decision
        )

        if not DocumentStore.set_status(conn, artifact_id, decision,
                                        rejection_reason=reason, now=now):
            raise InvalidStateError(
                f"Only documents pending review can be {decision}",
                artifact_id=artifact_id,
            )
        RequestStore.set_status(conn, request["id"], target,
                                expected_status=request["status"], now=now)
        result = ReviewResult(
            artifact=DocumentArtifact.from_dict(DocumentStore.get(conn, artifact_id)),
            request=CoordinationRequest.from_dict(RequestStore.get(conn, request["id"])),
        )
    logger.info("Document %s %s by sponsor %s; request %s is now %s",
                artifact_id, decision, sponsor_id, request["id"], target)
    return result


def accept_document(conn: sqlite3.Connection, artifact_id: str, sponsor_id: str, *,
                    notifier: Notifier | None = None,
                    now: datetime | None = None) -> ReviewResult:
    """Accept a document under review; its request becomes completed."""
    result = _review(conn, artifact_id, sponsor_id, DOC_ACCEPTED, None, now or utc_now())
    dispatch(notifier, DOCUMENT_ACCEPTED, {
        "request_id": result.request.id,
        "artifact_id": artifact_id,
        "applicant_email": (ActorStore.get(conn, result.request.applicant_id) or {}).get("email") or "",
        "topic": result.request.topic,
    })
    return result


def reject_document(conn: sqlite3.Connection, artifact_id: str, sponsor_id: str,
                    reason: str, *, notifier: Notifier | None = None,
                    now: datetime | None = None) -> ReviewResult:
    """Reject a document under review; its request goes back to approved."""
    reason = parse_contract(RejectionReason, {"reason": reason or ""}).reason
    result = _review(conn, artifact_id, sponsor_id, DOC_REJECTED, reason, now or utc_now())
    dispatch(notifier, DOCUMENT_REJECTED, {
        "request_id": result.request.id,
        "artifact_id": artifact_id,
        "applicant_email": (ActorStore.get(conn, result.request.applicant_id) or {}).get("email") or "",
        "topic": result.request.topic,
        "reason": reason,
    })
    return result


def list_documents(conn: sqlite3.Connection, request_id: str,
                   actor_id: str) -> list[DocumentArtifact]:
    """List a request's documents, newest first, for either party of the request."""
    request = _load_request(conn, request_id)
    if _party_role(request, actor_id) is None:
        raise NotAuthorizedError(
            "You are not authorized to view documents for this request",
            request_id=request_id,
        )
    return [DocumentArtifact.from_dict(r) for r in DocumentStore.list_for_request(conn, request_id)]


def get_document(conn: sqlite3.Connection, artifact_id: str, actor_id: str) -> DocumentArtifact:
    """Load one document's metadata for either party of its request."""
    artifact = _load_artifact(conn, artifact_id)
    request = _load_request(conn, artifact["request_id"])
    if _party_role(request, actor_id) is None:
        raise NotAuthorizedError(
            "You are not authorized to access this document",
            artifact_id=artifact_id,
        )
    return DocumentArtifact.from_dict(artifact)
