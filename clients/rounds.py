"""Round template and candidate round endpoints."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from clients.cache import TTLCache
from clients.http_client import HttpClient, decode_json
from core.errors import NotFoundError, PartialFailure, TransportError, ValidationError
from schemas.api import BatchResponse, BulkCreateRequest, StatusUpdateRequest
from schemas.candidate_round import BatchOutcome, FailedItem, StatusUpdate
from schemas.round_template import (
    RoundTemplate,
    RoundTemplatesResponse,
    StartRoundsResponse,
)

logger = structlog.get_logger()

CACHE_TTL_SECONDS = 30 * 60


def raise_for_status(response: httpx.Response, kind: str, identifier: str) -> None:
    """Map non-success responses onto the tracker error taxonomy."""
    if response.status_code == 404:
        raise NotFoundError(kind, identifier)
    if not response.is_success:
        raise TransportError(
            f"{kind} request failed with HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )


def _failed_item(entry: Any) -> FailedItem:
    if isinstance(entry, dict):
        candidate_id = entry.get("candidate_id") or entry.get("id")
        reason = entry.get("error") or entry.get("reason") or entry.get("message") or ""
        return FailedItem(
            candidate_id=str(candidate_id) if candidate_id else None,
            reason=str(reason),
        )
    return FailedItem(candidate_id=str(entry), reason="")


def batch_outcome(response: httpx.Response, submitted_ids: list[str], kind: str) -> BatchOutcome:
    """Turn a batch endpoint response into a per-item outcome.

    A 400 carrying successful_count is a partial result, not an error. A body
    without successful_count is a hard failure.

    Raises:
        PartialFailure: some submitted items failed (outcome attached)
        TransportError: the response does not describe an outcome
    """
    if not response.is_success and response.status_code != 400:
        raise_for_status(response, kind, "batch")

    data = decode_json(response)
    if not isinstance(data, dict) or "successful_count" not in data:
        raise TransportError(
            f"{kind} response lacks successful_count (HTTP {response.status_code})",
            status_code=response.status_code,
        )

    body = BatchResponse.model_validate(data)
    submitted = set(submitted_ids)
    failed = [
        item
        for item in (_failed_item(entry) for entry in body.failures)
        if item.candidate_id in submitted
    ]
    failed_ids = {item.candidate_id for item in failed}

    if not failed_ids and body.successful_count >= len(submitted_ids):
        return BatchOutcome.all_succeeded(submitted_ids)

    if failed_ids and len(submitted) - len(failed_ids) == body.successful_count:
        successful = [cid for cid in submitted_ids if cid not in failed_ids]
    else:
        # Unless the listed failures account for the count, no id is known to have succeeded.
        successful = []
        reported = {item.candidate_id for item in failed}
        failed = failed + [
            FailedItem(candidate_id=cid, reason="not reported by server")
            for cid in submitted_ids
            if cid not in reported
        ]

    outcome = BatchOutcome(
        submitted_ids=list(submitted_ids),
        successful_ids=successful,
        failed=failed,
    )
    logger.warning(
        "Partial batch result",
        kind=kind,
        submitted=outcome.submitted_count,
        successful=outcome.successful_count,
        failed=outcome.failed_count,
    )
    raise PartialFailure(outcome)


class RoundsApi:
    """Client for round templates and per-candidate round records."""

    def __init__(
        self,
        client: HttpClient,
        api_base_url: str,
        candidates_base_url: str,
        cache: TTLCache[list[RoundTemplate]] | None = None,
    ):
        self.client = client
        self.api_base_url = api_base_url.rstrip("/")
        self.candidates_base_url = candidates_base_url.rstrip("/")
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS)

    async def list_round_templates(
        self, job_opening_id: str, force_refresh: bool = False
    ) -> list[RoundTemplate]:
        """Round templates of a job, ordered by order_index. Cached per job."""
        if not job_opening_id:
            raise ValidationError("job_opening_id is required")

        if not force_refresh:
            cached = self.cache.get(job_opening_id)
            if cached is not None:
                logger.debug("Using cached round templates", job_opening_id=job_opening_id)
                return cached

        url = f"{self.api_base_url}/job-openings/{job_opening_id}/round-templates"
        response = await self.client.request("GET", url)
        raise_for_status(response, "job opening", job_opening_id)

        body = RoundTemplatesResponse.model_validate(decode_json(response))
        templates = sorted(body.job_round_templates, key=lambda t: t.order_index)
        self.cache.set(job_opening_id, templates)
        logger.info(
            "Fetched round templates", job_opening_id=job_opening_id, count=len(templates)
        )
        return templates

    async def start_rounds(self, job_opening_id: str) -> StartRoundsResponse:
        """Mark a job opening's rounds as started."""
        if not job_opening_id:
            raise ValidationError("job_opening_id is required")
        url = f"{self.api_base_url}/job-openings/{job_opening_id}/start-rounds"
        response = await self.client.request("POST", url)
        raise_for_status(response, "job opening", job_opening_id)
        return StartRoundsResponse.model_validate(decode_json(response))

    async def confirm_round_template(self, template_id: str) -> RoundTemplate | None:
        """Confirm (activate) a round template. Idempotent on the server."""
        if not template_id:
            raise ValidationError("job_round_template_id is required")
        url = f"{self.candidates_base_url}/job-round-template/{template_id}/confirm"
        response = await self.client.request("PATCH", url)
        raise_for_status(response, "round template", template_id)

        data = decode_json(response)
        if isinstance(data, dict):
            payload = data.get("job_round_template", data)
            if isinstance(payload, dict) and "order_index" in payload:
                return RoundTemplate.model_validate(payload)
        return None

    async def update_round_status(
        self, template_id: str, updates: list[StatusUpdate]
    ) -> BatchOutcome:
        """Upsert statuses for many candidates in one round template."""
        if not template_id:
            raise ValidationError("job_round_template_id is required")
        request = StatusUpdateRequest(
            job_round_template_id=template_id, candidate_updates=updates
        )
        submitted = [u.candidate_id for u in updates]
        if not submitted:
            return BatchOutcome()

        url = f"{self.candidates_base_url}/update-candidate-round-status"
        response = await self.client.request(
            "POST", url, json=request.model_dump(mode="json")
        )
        if response.status_code == 404:
            raise NotFoundError("round template", template_id)
        return batch_outcome(response, submitted, "status update")

    async def bulk_create_candidate_rounds(
        self, template_id: str, entries: list[StatusUpdate], created_by: str
    ) -> BatchOutcome:
        """Create or update candidate round records in bulk."""
        if not template_id:
            raise ValidationError("job_round_template_id is required")
        if not created_by:
            raise ValidationError("created_by is required")
        request = BulkCreateRequest(
            job_round_template_id=template_id,
            candidates=entries,
            created_by=created_by,
        )
        submitted = [e.candidate_id for e in entries]
        if not submitted:
            return BatchOutcome()

        url = f"{self.candidates_base_url}/candidate-rounds/bulk-create"
        response = await self.client.request(
            "POST", url, json=request.model_dump(mode="json")
        )
        if response.status_code == 404:
            raise NotFoundError("round template", template_id)
        return batch_outcome(response, submitted, "bulk create")
