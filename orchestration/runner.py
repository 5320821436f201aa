"""Run-level drivers: logged progression runs and batch evaluation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from clients.credentials import CredentialProvider
from clients.evaluation import EvaluationService
from core import verbose
from core.config import Settings, TrackerConfig, load_config
from core.context import RunContext, RunStatus
from schemas.listing import RoundListing
from tracker.evaluation import extract_score
from tracker.progression import ProgressionResult, ProgressionStep, StepOutcome
from tracker.service import TrackerServices, open_services

logger = structlog.get_logger()

STEP_DESCRIPTIONS: dict[ProgressionStep, str] = {
    ProgressionStep.RESOLVE_NEXT: "find the template that follows the current round",
    ProgressionStep.RESYNC_CURRENT: "persist every current-round status",
    ProgressionStep.CARRY_FORWARD: "write carried statuses into the next round",
    ProgressionStep.CONFIRM_NEXT: "mark the next round template active",
    ProgressionStep.SEED_NEXT: "bulk-create next-round records",
}


class RunLogObserver:
    """Mirrors progression steps into a RunContext's stage log and metrics."""

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    def step_started(self, step: ProgressionStep, items: int) -> None:
        self.ctx.start_stage(step.value, items_in=items)
        verbose.stage(step.value, STEP_DESCRIPTIONS[step])

    def step_finished(self, outcome: StepOutcome) -> None:
        metrics = self.ctx.metrics
        failed = len(outcome.failed_ids)
        if outcome.step is ProgressionStep.RESYNC_CURRENT:
            metrics.num_resynced += outcome.succeeded
            metrics.num_resync_failed += failed
        elif outcome.step is ProgressionStep.CARRY_FORWARD:
            metrics.num_carried_forward += outcome.succeeded
            metrics.num_carry_failed += failed
        elif outcome.step is ProgressionStep.SEED_NEXT:
            metrics.num_records_created += outcome.succeeded
            metrics.num_records_failed += failed

        for cid in outcome.failed_ids:
            verbose.detail(f"failed: {cid}")

        log = self.ctx.complete_stage(
            outcome.step.value,
            items_out=outcome.succeeded,
            errors=[f"{cid}: not accepted" for cid in outcome.failed_ids],
            status="completed" if not failed else "partial",
        )
        verbose.stage_end(
            outcome.step.value,
            items_out=outcome.succeeded,
            errors=failed,
            duration=log.duration_seconds if log and log.duration_seconds else 0.0,
        )

    def step_failed(self, step: ProgressionStep, error: Exception) -> None:
        self.ctx.complete_stage(step.value, errors=[str(error)], status="failed")
        verbose.step(f"{step.value} failed: {error}")


async def run_progression_async(
    job_opening_id: str,
    template_id: str,
    settings: Settings | None = None,
    tracker: TrackerConfig | None = None,
    config_path: Path | None = None,
    run_id: str | None = None,
    credentials: CredentialProvider | None = None,
    services: TrackerServices | None = None,
) -> tuple[RunContext, ProgressionResult]:
    """Load a round and progress its whole population to the next round.

    Args:
        job_opening_id: Job whose templates define the round order
        template_id: Round template to progress from
        settings: Optional pre-loaded settings
        tracker: Optional pre-loaded tracker config
        config_path: Path to tracker YAML (if tracker not provided)
        run_id: Optional explicit run ID
        credentials: Optional credential provider for the API backend
        services: Optional pre-built services (skips opening new ones)

    Returns:
        RunContext with metrics and stage logs, and the progression result
    """
    run_start = time.monotonic()

    if settings is None or tracker is None:
        settings, tracker = load_config(config_path, settings)

    verbose.configure(settings.verbose)
    ctx = RunContext.boot(settings, tracker, run_id)
    observer = RunLogObserver(ctx)

    verbose.header(f"Progression Run {ctx.run_id}")
    verbose.step(f"Backend: {settings.backend}")
    verbose.step(f"Job opening {job_opening_id}, round template {template_id}")

    try:
        if services is not None:
            previous = services.controller.observer
            services.controller.observer = observer
            try:
                result = await _progress(ctx, services, job_opening_id, template_id)
            finally:
                services.controller.observer = previous
        else:
            async with open_services(settings, tracker, credentials, observer) as opened:
                result = await _progress(ctx, opened, job_opening_id, template_id)
        ctx.complete_run(RunStatus.COMPLETED)
    except Exception as e:
        if ctx.stage_logs and str(e) not in ctx.stage_logs[-1].errors:
            ctx.stage_logs[-1].errors.append(str(e))
        ctx.complete_run(RunStatus.FAILED)
        logger.error("Progression run failed", run_id=ctx.run_id, error=str(e))
        raise

    total = time.monotonic() - run_start
    verbose.header(
        f"Done: {ctx.metrics.num_carried_forward} carried to "
        f"{result.next_template.name or result.next_template.id}, "
        f"{ctx.metrics.num_records_failed} record failures ({total:.2f}s)"
    )
    return ctx, result


async def _progress(
    ctx: RunContext,
    services: TrackerServices,
    job_opening_id: str,
    template_id: str,
) -> ProgressionResult:
    ctx.start_stage("load")
    verbose.stage("load", "read round templates and the current round population")
    templates = await services.registry.list(job_opening_id)
    listing = await services.manager.load(template_id)
    ctx.metrics.num_candidates = len(listing.candidates)
    verbose.step(f"{len(templates)} templates, {len(listing.candidates)} candidates")
    log = ctx.complete_stage("load", items_out=len(listing.candidates))
    verbose.stage_end(
        "load",
        items_out=len(listing.candidates),
        errors=0,
        duration=log.duration_seconds if log and log.duration_seconds else 0.0,
    )

    return await services.controller.progress_to_next_round(template_id)


def run_progression(
    job_opening_id: str,
    template_id: str,
    settings: Settings | None = None,
    tracker: TrackerConfig | None = None,
    config_path: Path | None = None,
    run_id: str | None = None,
) -> tuple[RunContext, ProgressionResult]:
    """Synchronous wrapper for run_progression_async."""
    return asyncio.run(
        run_progression_async(
            job_opening_id, template_id, settings, tracker, config_path, run_id
        )
    )


@dataclass
class EvaluationOutcome:
    """What happened to one candidate during batch evaluation."""

    candidate_id: str
    status: str  # evaluated | skipped | failed
    score: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "status": self.status,
            "score": self.score,
            "error": self.error,
        }


async def evaluate_round(
    listing: RoundListing,
    evaluator: EvaluationService,
    delay_seconds: float = 1.0,
    ctx: RunContext | None = None,
) -> list[EvaluationOutcome]:
    """Evaluate every not-yet-evaluated candidate of a round, one at a time.

    A fixed pause separates consecutive evaluation calls. A failing
    candidate is logged and the loop moves on.
    """
    if ctx is not None:
        ctx.start_stage("evaluate", items_in=len(listing.candidates))
    verbose.stage("evaluate", "run pending candidate evaluations sequentially")

    outcomes: list[EvaluationOutcome] = []
    errors: list[str] = []
    attempted = 0

    for candidate in listing.candidates:
        record = candidate.record
        if candidate.is_evaluated:
            outcomes.append(EvaluationOutcome(candidate.id, "skipped"))
            verbose.detail(f"{candidate.id}: already evaluated")
            continue
        if record is None or not record.id:
            outcomes.append(
                EvaluationOutcome(candidate.id, "skipped", error="no candidate round record")
            )
            verbose.detail(f"{candidate.id}: no candidate round record")
            continue

        if attempted and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        attempted += 1

        verbose.step(f"Evaluating {candidate.name or candidate.id}...")
        try:
            result = await evaluator.evaluate(candidate)
        except Exception as e:
            logger.warning("Evaluation failed", candidate_id=candidate.id, error=str(e))
            errors.append(f"{candidate.id}: {e}")
            outcomes.append(EvaluationOutcome(candidate.id, "failed", error=str(e)))
            continue

        score = extract_score(result)
        outcomes.append(EvaluationOutcome(candidate.id, "evaluated", score=score))
        verbose.detail(f"{candidate.id}: score {score if score is not None else 'n/a'}")

    evaluated = sum(1 for o in outcomes if o.status == "evaluated")
    skipped = sum(1 for o in outcomes if o.status == "skipped")
    logger.info(
        "Round evaluated",
        template_id=listing.template_id,
        evaluated=evaluated,
        failed=len(errors),
        skipped=skipped,
    )

    if ctx is not None:
        ctx.metrics.num_evaluated += evaluated
        ctx.metrics.num_evaluation_failed += len(errors)
        ctx.metrics.num_evaluation_skipped += skipped
        log = ctx.complete_stage(
            "evaluate",
            items_out=evaluated,
            errors=errors,
            status="completed" if not errors else "partial",
        )
        verbose.stage_end(
            "evaluate",
            items_out=evaluated,
            errors=len(errors),
            duration=log.duration_seconds if log and log.duration_seconds else 0.0,
        )

    return outcomes
