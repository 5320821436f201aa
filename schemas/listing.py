"""Round candidate listing schemas."""

from pydantic import Field

from .base import BaseSchema
from .candidate_round import CandidateRoundRecord, RoundStatus


class Pagination(BaseSchema):
    """Pagination block of a listing page."""

    current_page: int = 1
    total_pages: int = 1
    total_count: int = 0
    limit: int = 0
    has_next: bool = False
    has_previous: bool = False
    current_page_count: int = 0


class TemplateInfo(BaseSchema):
    """Template summary embedded in a listing."""

    round_name: str = ""
    round_type: str | None = None
    order_index: int | None = None
    round_id: str | None = None


class RoundCandidate(BaseSchema):
    """A candidate as listed under one round template."""

    id: str
    job_opening_id: str | None = None
    name: str = ""
    email: str = ""
    round_status: RoundStatus = RoundStatus.ACTION_PENDING
    candidate_rounds: list[CandidateRoundRecord] = Field(default_factory=list)

    @property
    def record(self) -> CandidateRoundRecord | None:
        return self.candidate_rounds[0] if self.candidate_rounds else None

    @property
    def status(self) -> RoundStatus:
        """Record status wins over the candidate-level round status."""
        record = self.record
        return record.status if record else self.round_status

    @property
    def is_evaluated(self) -> bool:
        record = self.record
        return bool(record and record.is_evaluation)


class RoundCandidatePage(BaseSchema):
    """One page of the by-job-round-template listing."""

    job_round_template_id: str
    template_info: TemplateInfo | None = None
    pagination: Pagination | None = None
    candidates: list[RoundCandidate] = Field(default_factory=list)


class RoundListing(BaseSchema):
    """All candidates of a round template, merged across pages."""

    template_id: str
    template_info: TemplateInfo | None = None
    candidates: list[RoundCandidate] = Field(default_factory=list)

    @property
    def candidate_ids(self) -> list[str]:
        return [c.id for c in self.candidates]

    def statuses(self) -> dict[str, RoundStatus]:
        return {c.id: c.status for c in self.candidates}
