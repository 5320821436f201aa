"""Candidate round record and batch outcome schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .base import BaseSchema, TimestampMixin


class RoundStatus(str, Enum):
    """Per-candidate outcome within a round."""

    ACTION_PENDING = "action_pending"
    SELECTED = "selected"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"


class CandidateEvaluation(BaseSchema):
    """An evaluation attached to a candidate round record."""

    id: str | None = None
    candidate_round_id: str | None = None
    evaluation_result: dict[str, Any] = Field(default_factory=dict)


class CandidateRoundRecord(BaseSchema, TimestampMixin):
    """Per (candidate, round template) status record."""

    id: str | None = Field(None, description="Server-side record ID")
    candidate_id: str
    job_round_template_id: str
    status: RoundStatus = RoundStatus.ACTION_PENDING
    is_evaluation: bool = Field(default=False, description="Evaluation completed")
    created_by: str | None = None
    evaluations: list[CandidateEvaluation] = Field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return self.candidate_id, self.job_round_template_id


class StatusUpdate(BaseSchema):
    """One candidate's status inside a batch request."""

    candidate_id: str = Field(..., min_length=1)
    status: RoundStatus


class FailedItem(BaseModel):
    """A single failed entry of a batch operation."""

    candidate_id: str | None = None
    reason: str = ""


class BatchOutcome(BaseModel):
    """Per-item outcome of a batch write."""

    submitted_ids: list[str] = Field(default_factory=list)
    successful_ids: list[str] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)

    @property
    def submitted_count(self) -> int:
        return len(self.submitted_ids)

    @property
    def successful_count(self) -> int:
        return len(self.successful_ids)

    @property
    def failed_count(self) -> int:
        return self.submitted_count - self.successful_count

    @property
    def failed_ids(self) -> list[str]:
        ok = set(self.successful_ids)
        return [cid for cid in self.submitted_ids if cid not in ok]

    @property
    def is_complete(self) -> bool:
        return self.failed_count == 0

    @classmethod
    def all_succeeded(cls, ids: list[str]) -> "BatchOutcome":
        return cls(submitted_ids=list(ids), successful_ids=list(ids))
