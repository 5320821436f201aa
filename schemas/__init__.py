"""
Pydantic schemas for the round tracker.

Contract-first design: these schemas define the data contracts
between the tracker core and the recruiting backend.
"""

from .round_template import JobOpening, RoundTemplate, RoundTemplatesResponse, StartRoundsResponse
from .candidate_round import (
    BatchOutcome,
    CandidateEvaluation,
    CandidateRoundRecord,
    FailedItem,
    RoundStatus,
    StatusUpdate,
)
from .listing import Pagination, RoundCandidate, RoundCandidatePage, RoundListing, TemplateInfo
from .api import BatchResponse, BulkCreateRequest, StatusUpdateRequest

__all__ = [
    # Templates
    "RoundTemplate",
    "RoundTemplatesResponse",
    "JobOpening",
    "StartRoundsResponse",
    # Records
    "RoundStatus",
    "CandidateRoundRecord",
    "CandidateEvaluation",
    "StatusUpdate",
    "FailedItem",
    "BatchOutcome",
    # Listings
    "Pagination",
    "TemplateInfo",
    "RoundCandidate",
    "RoundCandidatePage",
    "RoundListing",
    # Wire payloads
    "StatusUpdateRequest",
    "BulkCreateRequest",
    "BatchResponse",
]
