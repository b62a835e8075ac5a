"""Pydantic contracts for the v1 coordination inputs and outputs."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coord_platform.runtime.config import (
    CONTENT_TYPE_MAX_LENGTH,
    DEFAULT_MAX_SLOTS,
    DEFAULT_SPONSOR_CAPACITY,
    FILE_NAME_MAX_LENGTH,
    MAX_SPONSOR_CAPACITY,
    MESSAGE_MAX_LENGTH,
    MIN_SPONSOR_CAPACITY,
    TITLE_MAX_LENGTH,
    TOPIC_MAX_LENGTH,
    TOPIC_MIN_LENGTH,
)


class _StrictModel(BaseModel):
    """Base model that rejects unknown fields and trims strings."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ActorRegistration(_StrictModel):
    role: Literal["sponsor", "applicant"]
    display_name: str = Field(min_length=1, max_length=255)
    department: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    capacity: int | None = Field(
        default=None, ge=MIN_SPONSOR_CAPACITY, le=MAX_SPONSOR_CAPACITY
    )

    @model_validator(mode="after")
    def _capacity_matches_role(self) -> "ActorRegistration":
        if self.role == "sponsor" and self.capacity is None:
            self.capacity = DEFAULT_SPONSOR_CAPACITY
        if self.role == "applicant" and self.capacity is not None:
            raise ValueError("capacity only applies to sponsors")
        return self


class OfferingDraft(_StrictModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = ""
    window_start: datetime
    window_end: datetime
    max_slots: int = Field(default=DEFAULT_MAX_SLOTS, ge=1)


class OfferingPatch(_StrictModel):
    """Partial update; only fields explicitly provided are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None
    max_slots: int | None = Field(default=None, ge=1)

    def changes(self) -> dict:
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class RequestSubmission(_StrictModel):
    topic: str = Field(min_length=TOPIC_MIN_LENGTH, max_length=TOPIC_MAX_LENGTH)
    message: str = Field(default="", max_length=MESSAGE_MAX_LENGTH)


class ArtifactMetadata(_StrictModel):
    file_name: str = Field(min_length=1, max_length=FILE_NAME_MAX_LENGTH)
    original_name: str = Field(min_length=1, max_length=FILE_NAME_MAX_LENGTH)
    content_type: str = Field(min_length=1, max_length=CONTENT_TYPE_MAX_LENGTH)
    size_bytes: int = Field(gt=0)
    storage_ref: str = ""


class RejectionReason(_StrictModel):
    reason: str = Field(min_length=1)


class RequestStats(_StrictModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    document_pending: int = 0
    completed: int = 0
    total: int = 0
