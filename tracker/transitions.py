"""Staging and committing per-candidate status edits."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from core.errors import NotFoundError, PartialFailure, ValidationError
from core.ids import unique_ids
from schemas.candidate_round import BatchOutcome, FailedItem, RoundStatus, StatusUpdate
from schemas.listing import RoundListing
from tracker.changes import PendingChangeSet
from tracker.registry import RoundTemplateRegistry
from tracker.store import RecordStore

logger = structlog.get_logger()


@dataclass
class CommitResult:
    """What a commit submitted and what the server accepted."""

    template_id: str
    submitted: list[str] = field(default_factory=list)
    committed: list[str] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)

    @property
    def failed_ids(self) -> list[str]:
        ok = set(self.committed)
        return [cid for cid in self.submitted if cid not in ok]

    @property
    def is_complete(self) -> bool:
        return not self.failed_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "submitted_count": len(self.submitted),
            "successful_count": len(self.committed),
            "failed_count": len(self.failed_ids),
            "failed": [item.model_dump() for item in self.failed],
        }


def coerce_status(value: RoundStatus | str) -> RoundStatus:
    try:
        return RoundStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown round status: {value!r}") from None


class StatusTransitionManager:
    """Holds a PendingChangeSet per round template and commits it in batches."""

    def __init__(self, store: RecordStore, registry: RoundTemplateRegistry | None = None):
        self.store = store
        self.registry = registry
        self._changes: dict[str, PendingChangeSet] = {}

    async def load(
        self,
        template_id: str,
        force_refresh: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> RoundListing:
        """Read a round's population and make it the baseline.

        Any staged edits for the round are discarded.
        """
        listing = await self.store.list_for_round(
            template_id, force_refresh=force_refresh, cancel=cancel
        )
        self.track(template_id, listing.statuses())
        return listing

    def track(
        self, template_id: str, baseline: Mapping[str, RoundStatus | str]
    ) -> PendingChangeSet:
        """Start tracking a round from known persisted statuses."""
        if not template_id:
            raise ValidationError("job_round_template_id is required")
        changes = PendingChangeSet(
            template_id, {cid: coerce_status(s) for cid, s in baseline.items()}
        )
        self._changes[template_id] = changes
        return changes

    def is_tracked(self, template_id: str) -> bool:
        return template_id in self._changes

    def changes(self, template_id: str) -> PendingChangeSet:
        try:
            return self._changes[template_id]
        except KeyError:
            raise NotFoundError("loaded round", template_id) from None

    def pending(self, template_id: str) -> dict[str, RoundStatus]:
        return self.changes(template_id).pending

    def population(self, template_id: str) -> list[str]:
        return self.changes(template_id).candidate_ids

    def stage(
        self, candidate_id: str, template_id: str, status: RoundStatus | str
    ) -> bool:
        """Stage a status edit. Returns True if the candidate is now pending.

        Raises:
            ValidationError: candidate id or status is missing/invalid
            NotFoundError: the round is not loaded or the candidate is not in it
        """
        if not candidate_id:
            raise ValidationError("candidate_id is required")
        new_status = coerce_status(status)
        changes = self.changes(template_id)
        if candidate_id not in changes.candidate_ids:
            raise NotFoundError("candidate", candidate_id)
        return changes.stage(candidate_id, new_status)

    def revert(self, template_id: str, candidate_id: str | None = None) -> None:
        self.changes(template_id).revert(candidate_id)

    async def commit(self, template_id: str) -> CommitResult:
        """Submit every pending change of a round as one batch.

        On partial success only the accepted candidates advance their
        baseline; the rest stay pending for a retry.
        """
        changes = self.changes(template_id)
        pending = changes.pending
        if not pending:
            return CommitResult(template_id=template_id)
        return await self._submit(changes, changes.updates(), "commit")

    async def bulk_set_status(
        self,
        template_id: str,
        status: RoundStatus | str,
        candidate_ids: Iterable[str],
    ) -> CommitResult:
        """Stage one status for many candidates, then commit."""
        ids = unique_ids(candidate_ids)
        if not ids:
            raise ValidationError("candidate_ids must not be empty")
        new_status = coerce_status(status)
        changes = self.changes(template_id)
        known = set(changes.candidate_ids)
        missing = [cid for cid in ids if cid not in known]
        if missing:
            raise NotFoundError("candidate", ", ".join(missing))
        for candidate_id in ids:
            changes.stage(candidate_id, new_status)
        return await self.commit(template_id)

    async def resync(self, template_id: str) -> CommitResult:
        """Persist the current status of every candidate, not only the pending ones."""
        changes = self.changes(template_id)
        updates = changes.updates(changes.candidate_ids)
        if not updates:
            return CommitResult(template_id=template_id)
        return await self._submit(changes, updates, "resync")

    async def _submit(
        self, changes: PendingChangeSet, updates: list[StatusUpdate], kind: str
    ) -> CommitResult:
        template_id = changes.template_id
        if self.registry is not None:
            self.registry.activate(template_id)

        try:
            outcome = await self.store.upsert_statuses(template_id, updates)
        except PartialFailure as e:
            outcome = e.outcome

        accepted = set(outcome.successful_ids)
        changes.mark_committed(
            {u.candidate_id: u.status for u in updates if u.candidate_id in accepted}
        )

        result = _result(template_id, updates, outcome)
        logger.info(
            "Statuses submitted",
            kind=kind,
            template_id=template_id,
            submitted=len(result.submitted),
            committed=len(result.committed),
            failed=len(result.failed_ids),
        )
        return result


def _result(
    template_id: str, updates: list[StatusUpdate], outcome: BatchOutcome
) -> CommitResult:
    return CommitResult(
        template_id=template_id,
        submitted=[u.candidate_id for u in updates],
        committed=list(outcome.successful_ids),
        failed=list(outcome.failed),
    )
