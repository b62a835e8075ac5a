"""v1 input/output contracts for the coordination platform."""

__version__ = "1.0.0"

from .adapters import parse_contract
from .schemas import (
    ActorRegistration,
    ArtifactMetadata,
    OfferingDraft,
    OfferingPatch,
    RejectionReason,
    RequestStats,
    RequestSubmission,
)

__all__ = [
    "__version__",
    "ActorRegistration",
    "ArtifactMetadata",
    "OfferingDraft",
    "OfferingPatch",
    "RejectionReason",
    "RequestStats",
    "RequestSubmission",
    "parse_contract",
]
