"""Candidate round record stores."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import structlog

from clients.candidates import RoundCandidatesApi
from clients.rounds import RoundsApi
from core.errors import NotFoundError, PartialFailure, ValidationError
from schemas.candidate_round import (
    BatchOutcome,
    CandidateRoundRecord,
    FailedItem,
    StatusUpdate,
)
from schemas.listing import RoundCandidate, RoundListing

logger = structlog.get_logger()


class RecordStore(ABC):
    """Read/write access to per (candidate, round template) records.

    Writes are idempotent upserts keyed by (candidate id, template id).
    Records are never deleted. Batch writes raise PartialFailure when only
    some items succeed.
    """

    @abstractmethod
    async def list_for_round(
        self,
        template_id: str,
        force_refresh: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> RoundListing:
        """Candidates that have reached a round, with their records."""

    @abstractmethod
    async def upsert_statuses(
        self, template_id: str, updates: list[StatusUpdate]
    ) -> BatchOutcome:
        """Create or update the status of many records in one template."""

    @abstractmethod
    async def bulk_create(
        self, template_id: str, entries: list[StatusUpdate], created_by: str
    ) -> BatchOutcome:
        """Create (or update) records for candidates entering a template."""

    async def get(self, candidate_id: str, template_id: str) -> CandidateRoundRecord:
        """A single record. Raises NotFoundError if the candidate never reached the round."""
        listing = await self.list_for_round(template_id)
        for candidate in listing.candidates:
            if candidate.id == candidate_id:
                if candidate.record is not None:
                    return candidate.record
                return CandidateRoundRecord(
                    candidate_id=candidate_id,
                    job_round_template_id=template_id,
                    status=candidate.round_status,
                )
        raise NotFoundError("candidate", candidate_id)


class ApiRecordStore(RecordStore):
    """Record store backed by the candidates API."""

    def __init__(self, rounds_api: RoundsApi, candidates_api: RoundCandidatesApi):
        self.rounds_api = rounds_api
        self.candidates_api = candidates_api

    async def list_for_round(
        self,
        template_id: str,
        force_refresh: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> RoundListing:
        return await self.candidates_api.list_round_candidates(
            template_id, force_refresh=force_refresh, cancel=cancel
        )

    async def upsert_statuses(
        self, template_id: str, updates: list[StatusUpdate]
    ) -> BatchOutcome:
        return await self.rounds_api.update_round_status(template_id, updates)

    async def bulk_create(
        self, template_id: str, entries: list[StatusUpdate], created_by: str
    ) -> BatchOutcome:
        return await self.rounds_api.bulk_create_candidate_rounds(
            template_id, entries, created_by
        )


class InMemoryRecordStore(RecordStore):
    """Record store held in process memory.

    ``failing_ids`` lists candidates whose writes are rejected, mimicking a
    server that reports a partial batch result.
    """

    def __init__(self, known_templates: set[str] | None = None):
        self.known_templates = known_templates
        self.failing_ids: set[str] = set()
        self._records: dict[tuple[str, str], CandidateRoundRecord] = {}
        self._candidates: dict[str, RoundCandidate] = {}
        self.write_log: list[tuple[str, str, list[StatusUpdate]]] = []

    def add_candidate(self, candidate_id: str, name: str = "", email: str = "") -> None:
        self._candidates[candidate_id] = RoundCandidate(id=candidate_id, name=name, email=email)

    def record(self, candidate_id: str, template_id: str) -> CandidateRoundRecord | None:
        return self._records.get((candidate_id, template_id))

    def _check_template(self, template_id: str) -> None:
        if not template_id:
            raise ValidationError("job_round_template_id is required")
        if self.known_templates is not None and template_id not in self.known_templates:
            raise NotFoundError("round template", template_id)

    async def list_for_round(
        self,
        template_id: str,
        force_refresh: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> RoundListing:
        self._check_template(template_id)
        records = sorted(
            (r for r in self._records.values() if r.job_round_template_id == template_id),
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc),
        )
        candidates = []
        for record in records:
            base = self._candidates.get(record.candidate_id) or RoundCandidate(
                id=record.candidate_id
            )
            candidates.append(
                base.model_copy(
                    update={
                        "round_status": record.status,
                        "candidate_rounds": [record.model_copy()],
                    }
                )
            )
        return RoundListing(template_id=template_id, candidates=candidates)

    def _write(
        self,
        template_id: str,
        updates: list[StatusUpdate],
        created_by: str | None,
        kind: str,
    ) -> BatchOutcome:
        self._check_template(template_id)
        self.write_log.append((kind, template_id, list(updates)))

        now = datetime.now(timezone.utc)
        submitted: list[str] = []
        successful: list[str] = []
        failed: list[FailedItem] = []

        for update in updates:
            submitted.append(update.candidate_id)
            if update.candidate_id in self.failing_ids:
                failed.append(FailedItem(candidate_id=update.candidate_id, reason="rejected"))
                continue

            key = (update.candidate_id, template_id)
            existing = self._records.get(key)
            if existing is None:
                self._records[key] = CandidateRoundRecord(
                    id=f"{template_id}:{update.candidate_id}",
                    candidate_id=update.candidate_id,
                    job_round_template_id=template_id,
                    status=update.status,
                    created_by=created_by,
                    created_at=now,
                    updated_at=now,
                )
            else:
                self._records[key] = existing.model_copy(
                    update={"status": update.status, "updated_at": now}
                )
            successful.append(update.candidate_id)

        outcome = BatchOutcome(
            submitted_ids=submitted, successful_ids=successful, failed=failed
        )
        if failed:
            raise PartialFailure(outcome)
        return outcome

    async def upsert_statuses(
        self, template_id: str, updates: list[StatusUpdate]
    ) -> BatchOutcome:
        return self._write(template_id, updates, None, "status")

    async def bulk_create(
        self, template_id: str, entries: list[StatusUpdate], created_by: str
    ) -> BatchOutcome:
        if not created_by:
            raise ValidationError("created_by is required")
        return self._write(template_id, entries, created_by, "create")
