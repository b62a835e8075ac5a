"""
Data structures for the coordination platform.

Stores hand back plain dicts; services turn them into these dataclasses with
``from_dict`` before returning them to callers.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .runtime.utils import from_storage


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Actor:
    """A sponsor or an applicant, as held by the identity store."""
    id: str
    role: str                          # sponsor, applicant
    display_name: str
    department: str = ""
    email: str = ""
    accepted_by: Optional[str] = None  # applicant only: id of the accepted sponsor
    capacity: Optional[int] = None     # sponsor only: max concurrent applicants
    committed: int = 0                 # sponsor only: applicants currently accepted
    created_at: Optional[datetime] = None

    @property
    def is_sponsor(self) -> bool:
        return self.role == "sponsor"

    @property
    def is_applicant(self) -> bool:
        return self.role == "applicant"

    def has_capacity(self) -> bool:
        return self.capacity is not None and self.committed < self.capacity

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "role": self.role,
            "display_name": self.display_name,
            "department": self.department,
            "email": self.email,
            "created_at": _iso(self.created_at),
        }
        if self.is_sponsor:
            result["capacity"] = self.capacity
            result["committed"] = self.committed
        else:
            result["accepted_by"] = self.accepted_by
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Actor":
        return cls(
            id=data["id"],
            role=data["role"],
            display_name=data.get("display_name", ""),
            department=data.get("department") or "",
            email=data.get("email") or "",
            accepted_by=data.get("accepted_by"),
            capacity=data.get("capacity"),
            committed=data.get("committed") or 0,
            created_at=from_storage(data.get("created_at")),
        )


@dataclass
class Offering:
    """A time-bounded, slot-limited window owned by one sponsor."""
    id: str
    sponsor_id: str
    title: str
    window_start: datetime
    window_end: datetime
    max_slots: int
    available_slots: int
    status: str = "upcoming"  # upcoming, active, closed
    description: str = ""
    sponsor_name: str = ""  # joined from the owning actor on reads
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_slots(self) -> bool:
        return self.available_slots > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sponsor_id": self.sponsor_id,
            "title": self.title,
            "description": self.description,
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "max_slots": self.max_slots,
            "available_slots": self.available_slots,
            "status": self.status,
            "sponsor_name": self.sponsor_name,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Offering":
        return cls(
            id=data["id"],
            sponsor_id=data["sponsor_id"],
            title=data.get("title", ""),
            description=data.get("description") or "",
            window_start=from_storage(data["window_start"]),
            window_end=from_storage(data["window_end"]),
            max_slots=data["max_slots"],
            available_slots=data["available_slots"],
            status=data.get("status", "upcoming"),
            sponsor_name=data.get("sponsor_name") or "",
            created_at=from_storage(data.get("created_at")),
            updated_at=from_storage(data.get("updated_at")),
        )


@dataclass
class CoordinationRequest:
    """An applicant's request to be coordinated by the sponsor of an offering."""
    id: str
    applicant_id: str
    sponsor_id: str
    offering_id: str
    topic: str
    message: str = ""
    status: str = "pending"  # pending, approved, rejected, document_pending, completed
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def involves(self, actor_id: str) -> bool:
        return actor_id in (self.applicant_id, self.sponsor_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "applicant_id": self.applicant_id,
            "sponsor_id": self.sponsor_id,
            "offering_id": self.offering_id,
            "topic": self.topic,
            "message": self.message,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CoordinationRequest":
        return cls(
            id=data["id"],
            applicant_id=data["applicant_id"],
            sponsor_id=data["sponsor_id"],
            offering_id=data["offering_id"],
            topic=data.get("topic", ""),
            message=data.get("message") or "",
            status=data.get("status", "pending"),
            rejection_reason=data.get("rejection_reason"),
            created_at=from_storage(data.get("created_at")),
            updated_at=from_storage(data.get("updated_at")),
        )


@dataclass
class DocumentArtifact:
    """Metadata for a file exchanged on a request; the bytes live elsewhere."""
    id: str
    request_id: str
    uploader_id: str
    uploader_role: str  # applicant, sponsor
    file_name: str
    original_name: str
    content_type: str
    size_bytes: int
    storage_ref: str = ""
    status: str = "pending_review"  # pending_review, accepted, rejected
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "uploader_id": self.uploader_id,
            "uploader_role": self.uploader_role,
            "file_name": self.file_name,
            "original_name": self.original_name,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "storage_ref": self.storage_ref,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentArtifact":
        return cls(
            id=data["id"],
            request_id=data["request_id"],
            uploader_id=data["uploader_id"],
            uploader_role=data["uploader_role"],
            file_name=data.get("file_name", ""),
            original_name=data.get("original_name", ""),
            content_type=data.get("content_type", ""),
            size_bytes=data.get("size_bytes", 0),
            storage_ref=data.get("storage_ref") or "",
            status=data.get("status", "pending_review"),
            rejection_reason=data.get("rejection_reason"),
            created_at=from_storage(data.get("created_at")),
            updated_at=from_storage(data.get("updated_at")),
        )


__all__ = ["Actor", "Offering", "CoordinationRequest", "DocumentArtifact"]
