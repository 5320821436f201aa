"""Round progression: moving a round's whole population to the next round."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import structlog

from core.errors import (
    InvalidTransition,
    NotFoundError,
    PartialFailure,
    TrackerError,
    ValidationError,
)
from schemas.candidate_round import BatchOutcome, RoundStatus, StatusUpdate
from schemas.round_template import RoundTemplate
from tracker.registry import RoundTemplateRegistry
from tracker.states import RoundState
from tracker.store import RecordStore
from tracker.transitions import CommitResult, StatusTransitionManager, coerce_status

logger = structlog.get_logger()


class ProgressionStep(str, Enum):
    """Steps of a progression, in execution order."""

    RESOLVE_NEXT = "resolve_next"
    RESYNC_CURRENT = "resync_current"
    CARRY_FORWARD = "carry_forward"
    CONFIRM_NEXT = "confirm_next"
    SEED_NEXT = "seed_next"


@dataclass
class StepOutcome:
    """Counts for one completed step."""

    step: ProgressionStep
    submitted: int = 0
    succeeded: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_batch(cls, step: ProgressionStep, outcome: BatchOutcome) -> StepOutcome:
        return cls(
            step=step,
            submitted=outcome.submitted_count,
            succeeded=outcome.successful_count,
            failed_ids=outcome.failed_ids,
        )

    @classmethod
    def from_commit(cls, step: ProgressionStep, result: CommitResult) -> StepOutcome:
        return cls(
            step=step,
            submitted=len(result.submitted),
            succeeded=len(result.committed),
            failed_ids=result.failed_ids,
        )


class ProgressionObserver(Protocol):
    """Receives step notifications, e.g. to keep a run log."""

    def step_started(self, step: ProgressionStep, items: int) -> None: ...

    def step_finished(self, outcome: StepOutcome) -> None: ...

    def step_failed(self, step: ProgressionStep, error: Exception) -> None: ...


@dataclass
class ProgressionResult:
    """Result of progress_to_next_round / start_rounds."""

    current_template_id: str | None
    next_template: RoundTemplate
    carried: dict[str, RoundStatus] = field(default_factory=dict)
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return all(not s.failed_ids for s in self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_template_id": self.current_template_id,
            "next_template_id": self.next_template.id,
            "next_round_name": self.next_template.name,
            "carried": {cid: status.value for cid, status in self.carried.items()},
            "steps": [
                {
                    "step": s.step.value,
                    "submitted": s.submitted,
                    "succeeded": s.succeeded,
                    "failed_ids": s.failed_ids,
                }
                for s in self.steps
            ],
            "is_complete": self.is_complete,
        }


class RoundProgressionController:
    """Advances a round's entire candidate population to the next template.

    The sequence is not atomic. A failing step aborts the remaining ones and
    nothing already written is rolled back; re-running is safe because every
    step is an idempotent upsert or confirm.
    """

    def __init__(
        self,
        registry: RoundTemplateRegistry,
        manager: StatusTransitionManager,
        store: RecordStore,
        created_by: str = "system",
        observer: ProgressionObserver | None = None,
    ):
        self.registry = registry
        self.manager = manager
        self.store = store
        self.created_by = created_by
        self.observer = observer

    async def progress_to_next_round(self, current_template_id: str) -> ProgressionResult:
        """Carry every candidate of the current round into the next one.

        Rejected and pending candidates are carried too, each keeping its
        current status; filtering them out is a presentation concern.

        Raises:
            NoNextRound: no template follows; nothing has been written
            NotFoundError: the template or its loaded population is unknown
            InvalidTransition: the current round is still locked
            TransportError: a step failed; earlier steps stay committed
        """
        if not current_template_id:
            raise ValidationError("job_round_template_id is required")

        self.registry.get(current_template_id)
        if self.registry.state(current_template_id) is RoundState.LOCKED:
            raise InvalidTransition(current_template_id, RoundState.LOCKED.value, "progress")

        # Resolved before any write so NoNextRound leaves everything untouched.
        self._started(ProgressionStep.RESOLVE_NEXT, 1)
        try:
            next_template = self.registry.next_after(current_template_id)
            changes = self.manager.changes(current_template_id)
        except TrackerError as e:
            self._failed(ProgressionStep.RESOLVE_NEXT, e)
            raise
        population = changes.candidate_ids
        result = ProgressionResult(
            current_template_id=current_template_id, next_template=next_template
        )
        self._finished(result, StepOutcome(ProgressionStep.RESOLVE_NEXT, 1, 1))

        logger.info(
            "Progressing round",
            current=current_template_id,
            next=next_template.id,
            candidates=len(population),
        )

        step = ProgressionStep.RESYNC_CURRENT
        try:
            self._started(step, len(population))
            resync = await self.manager.resync(current_template_id)
            self._finished(result, StepOutcome.from_commit(step, resync))

            result.carried = {
                cid: changes.status_of(cid) or RoundStatus.ACTION_PENDING
                for cid in population
            }
            entries = [
                StatusUpdate(candidate_id=cid, status=status)
                for cid, status in result.carried.items()
            ]

            step = ProgressionStep.CARRY_FORWARD
            self._started(step, len(entries))
            self.registry.unlock(next_template.id)
            carry = await self._write(self.store.upsert_statuses, next_template.id, entries)
            self.registry.activate(next_template.id)
            self._finished(result, StepOutcome.from_batch(step, carry))

            step = ProgressionStep.CONFIRM_NEXT
            self._started(step, 1)
            confirmed = await self.registry.confirm(next_template.id)
            if confirmed is not None:
                result.next_template = confirmed
            self._finished(result, StepOutcome(step, 1, 1))

            step = ProgressionStep.SEED_NEXT
            self._started(step, len(entries))
            seed = await self._write(
                self.store.bulk_create, next_template.id, entries, self.created_by
            )
            self._finished(result, StepOutcome.from_batch(step, seed))
        except Exception as e:
            logger.error(
                "Progression aborted",
                current=current_template_id,
                next=next_template.id,
                step=step.value,
                completed=[s.step.value for s in result.steps],
                error=str(e),
            )
            self._failed(step, e)
            raise

        # A candidate is in the next round once either write persisted it.
        persisted = set(carry.successful_ids) | set(seed.successful_ids)
        self.manager.track(
            next_template.id,
            {cid: s for cid, s in result.carried.items() if cid in persisted},
        )
        return result

    async def start_rounds(
        self,
        job_opening_id: str,
        statuses: Mapping[str, RoundStatus | str],
        created_by: str | None = None,
    ) -> ProgressionResult:
        """Seed the first round of a job with its initial applicants.

        Raises:
            NotFoundError: the job has no round templates
        """
        if not job_opening_id:
            raise ValidationError("job_opening_id is required")
        carried = {cid: coerce_status(s) for cid, s in statuses.items() if cid}

        templates = await self.registry.list(job_opening_id, force_refresh=True)
        if not templates:
            raise NotFoundError("round templates for job", job_opening_id)
        first = templates[0]
        result = ProgressionResult(current_template_id=None, next_template=first, carried=carried)

        await self.registry.start_rounds(job_opening_id)
        confirmed = await self.registry.confirm(first.id)
        if confirmed is not None:
            result.next_template = confirmed
        result.steps.append(StepOutcome(ProgressionStep.CONFIRM_NEXT, 1, 1))

        entries = [StatusUpdate(candidate_id=c, status=s) for c, s in carried.items()]
        outcome = await self._write(
            self.store.bulk_create, first.id, entries, created_by or self.created_by
        )
        result.steps.append(StepOutcome.from_batch(ProgressionStep.SEED_NEXT, outcome))

        self.manager.track(
            first.id, {cid: s for cid, s in carried.items() if cid in outcome.successful_ids}
        )
        logger.info(
            "Rounds started",
            job_opening_id=job_opening_id,
            first_template=first.id,
            seeded=outcome.successful_count,
        )
        return result

    async def _write(
        self,
        write: Callable[..., Awaitable[BatchOutcome]],
        template_id: str,
        entries: list[StatusUpdate],
        *args: Any,
    ) -> BatchOutcome:
        if not entries:
            return BatchOutcome()
        try:
            return await write(template_id, entries, *args)
        except PartialFailure as e:
            return e.outcome

    def _started(self, step: ProgressionStep, items: int) -> None:
        if self.observer is not None:
            self.observer.step_started(step, items)

    def _finished(self, result: ProgressionResult, outcome: StepOutcome) -> None:
        result.steps.append(outcome)
        if self.observer is not None:
            self.observer.step_finished(outcome)

    def _failed(self, step: ProgressionStep, error: Exception) -> None:
        if self.observer is not None:
            self.observer.step_failed(step, error)
