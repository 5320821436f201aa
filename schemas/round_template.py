"""Round template schemas."""

from datetime import datetime

from pydantic import Field

from .base import BaseSchema


class RoundTemplate(BaseSchema):
    """An ordered stage in a job opening's hiring pipeline."""

    id: str = Field(..., min_length=1, description="Job round template ID")
    job_opening_id: str = Field(..., min_length=1, description="Owning job opening")
    round_id: str | None = Field(None, description="Library round this was built from")
    name: str = Field("", alias="round_name", description="Display name")
    round_type: str | None = Field(None, description="e.g. screening, interview")
    order_index: int = Field(..., ge=0, description="Position within the job")
    is_required: bool = Field(default=True, description="Mandatory round")
    is_active: bool = Field(default=False, description="Confirmed for use")
    custom_evaluation_criteria: str | None = None
    created_at: datetime | None = None


class RoundTemplatesResponse(BaseSchema):
    """Response of the round-templates listing endpoint."""

    job_round_templates: list[RoundTemplate] = Field(default_factory=list)


class JobOpening(BaseSchema):
    """A job opening and its ordered round templates."""

    id: str
    round_templates: list[RoundTemplate] = Field(default_factory=list)

    @property
    def ordered_templates(self) -> list[RoundTemplate]:
        return sorted(self.round_templates, key=lambda t: t.order_index)


class StartRoundsResponse(BaseSchema):
    """Response of the start-rounds endpoint."""

    message: str = ""
    job_opening: dict = Field(default_factory=dict)
