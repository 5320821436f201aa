"""Wire payloads for the candidate round endpoints."""

from typing import Any

from pydantic import Field

from .base import BaseSchema
from .candidate_round import StatusUpdate


class StatusUpdateRequest(BaseSchema):
    """Body of update-candidate-round-status."""

    job_round_template_id: str = Field(..., min_length=1)
    candidate_updates: list[StatusUpdate] = Field(default_factory=list)


class BulkCreateRequest(BaseSchema):
    """Body of candidate-rounds/bulk-create."""

    job_round_template_id: str = Field(..., min_length=1)
    candidates: list[StatusUpdate] = Field(default_factory=list)
    created_by: str = Field(..., min_length=1)


class BatchResponse(BaseSchema):
    """Counts returned by both batch endpoints.

    failed_candidates / failed_rounds entries are loosely shaped; each may
    be a dict with a candidate_id or a bare id string.
    """

    message: str = ""
    total_processed: int | None = None
    successful_count: int
    failed_count: int = 0
    failed_candidates: list[Any] | None = None
    failed_rounds: list[Any] | None = None

    @property
    def failures(self) -> list[Any]:
        return list(self.failed_candidates or []) + list(self.failed_rounds or [])
