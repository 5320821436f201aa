"""HTTP routes for round templates, staged edits and progression."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from schemas.candidate_round import RoundStatus
from tracker.evaluation import candidate_score, score_band
from tracker.service import TrackerServices

router = APIRouter()


class StageRequest(BaseModel):
    candidate_id: str
    status: RoundStatus


class BulkStatusRequest(BaseModel):
    status: RoundStatus
    candidate_ids: list[str] = Field(default_factory=list)


class ProgressRequest(BaseModel):
    job_opening_id: str | None = Field(
        default=None, description="Load this job's templates before progressing"
    )


class StartRoundsRequest(BaseModel):
    statuses: dict[str, RoundStatus] = Field(default_factory=dict)
    created_by: str | None = None


def get_services(request: Request) -> TrackerServices:
    return request.app.state.services


@router.get("/jobs/{job_id}/rounds")
async def list_rounds(
    job_id: str,
    force_refresh: bool = False,
    services: TrackerServices = Depends(get_services),
) -> list[dict[str, Any]]:
    """Round templates of a job, ordered, with their round state."""
    templates = await services.registry.list(job_id, force_refresh=force_refresh)
    return [
        {**t.model_dump(mode="json"), "state": services.registry.state(t.id).value}
        for t in templates
    ]


@router.post("/jobs/{job_id}/start-rounds")
async def start_rounds(
    job_id: str,
    body: StartRoundsRequest,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    result = await services.controller.start_rounds(job_id, body.statuses, body.created_by)
    return result.to_dict()


@router.post("/rounds/{template_id}/confirm")
async def confirm_round(
    template_id: str,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    template = await services.registry.confirm(template_id)
    return {
        "template_id": template_id,
        "template": template.model_dump(mode="json") if template else None,
    }


@router.get("/rounds/{template_id}/candidates")
async def round_candidates(
    template_id: str,
    force_refresh: bool = False,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    """Load a round's population; staged edits for the round are discarded."""
    listing = await services.manager.load(template_id, force_refresh=force_refresh)
    candidates = []
    for candidate in listing.candidates:
        score = candidate_score(candidate)
        candidates.append(
            {
                "id": candidate.id,
                "name": candidate.name,
                "email": candidate.email,
                "status": candidate.status.value,
                "is_evaluated": candidate.is_evaluated,
                "score": score,
                "band": score_band(score).value if score is not None else None,
            }
        )
    return {"template_id": template_id, "candidates": candidates}


@router.post("/rounds/{template_id}/stage")
async def stage_status(
    template_id: str,
    body: StageRequest,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    is_pending = services.manager.stage(body.candidate_id, template_id, body.status)
    return {"candidate_id": body.candidate_id, "pending": is_pending}


@router.get("/rounds/{template_id}/pending")
async def pending_changes(
    template_id: str,
    services: TrackerServices = Depends(get_services),
) -> dict[str, str]:
    return {cid: s.value for cid, s in services.manager.pending(template_id).items()}


@router.post("/rounds/{template_id}/revert")
async def revert_changes(
    template_id: str,
    candidate_id: str | None = None,
    services: TrackerServices = Depends(get_services),
) -> dict[str, str]:
    services.manager.revert(template_id, candidate_id)
    return {cid: s.value for cid, s in services.manager.pending(template_id).items()}


@router.post("/rounds/{template_id}/commit")
async def commit_changes(
    template_id: str,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    result = await services.manager.commit(template_id)
    return result.to_dict()


@router.post("/rounds/{template_id}/bulk-status")
async def bulk_status(
    template_id: str,
    body: BulkStatusRequest,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    result = await services.manager.bulk_set_status(template_id, body.status, body.candidate_ids)
    return result.to_dict()


@router.post("/rounds/{template_id}/progress")
async def progress_round(
    template_id: str,
    body: ProgressRequest | None = None,
    services: TrackerServices = Depends(get_services),
) -> dict[str, Any]:
    if body is not None and body.job_opening_id:
        await services.registry.list(body.job_opening_id)
    result = await services.controller.progress_to_next_round(template_id)
    return result.to_dict()
