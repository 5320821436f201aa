"""Tests for the progression run driver and batch evaluation."""

import asyncio
import json

import pytest

from clients.evaluation import EvaluationService
from core.config import Settings, TrackerConfig
from core.context import RunContext, RunStatus
from core.errors import NoNextRound, TransportError
from orchestration.runner import evaluate_round, run_progression_async
from schemas.candidate_round import RoundStatus
from schemas.listing import RoundListing
from tests.conftest import JOB_ID, make_template, run, seed_round
from tracker.service import build_memory_services


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(backend="memory", runs_dir=str(tmp_path / "runs"), verbose=0)


@pytest.fixture
def services(settings):
    services = build_memory_services(settings, [make_template(order) for order in range(3)])
    seed_round(
        services.store,
        "tpl-0",
        {"cand-a": RoundStatus.SELECTED, "cand-b": RoundStatus.REJECTED},
    )
    return services


class TestRunProgression:
    """A logged progression run."""

    def test_run_records_stages_and_metrics(self, settings, services):
        ctx, result = run(
            run_progression_async(
                JOB_ID, "tpl-0", settings=settings, tracker=TrackerConfig(), services=services
            )
        )

        assert result.next_template.id == "tpl-1"
        assert ctx.status is RunStatus.COMPLETED
        assert ctx.metrics.num_candidates == 2
        assert ctx.metrics.num_resynced == 2
        assert ctx.metrics.num_carried_forward == 2
        assert ctx.metrics.num_records_created == 2
        assert [log.stage for log in ctx.stage_logs] == [
            "load",
            "resolve_next",
            "resync_current",
            "carry_forward",
            "confirm_next",
            "seed_next",
        ]
        assert all(log.status == "completed" for log in ctx.stage_logs)

    def test_run_writes_log_and_config(self, settings, services):
        ctx, _ = run(
            run_progression_async(
                JOB_ID,
                "tpl-0",
                settings=settings,
                tracker=TrackerConfig(),
                run_id="run-1",
                services=services,
            )
        )

        run_log = json.loads((ctx.run_dir / "run.json").read_text())
        config = json.loads((ctx.run_dir / "config.json").read_text())
        assert run_log["status"] == "completed"
        assert run_log["metrics"]["num_carried_forward"] == 2
        assert config["run_id"] == "run-1"

    def test_partial_failures_counted(self, settings, services):
        services.store.failing_ids = {"cand-b"}
        ctx, result = run(
            run_progression_async(
                JOB_ID, "tpl-0", settings=settings, tracker=TrackerConfig(), services=services
            )
        )
        assert not result.is_complete
        assert ctx.metrics.num_carry_failed == 1
        assert ctx.metrics.num_records_failed == 1
        carry = next(log for log in ctx.stage_logs if log.stage == "carry_forward")
        assert carry.status == "partial"
        assert carry.errors == ["cand-b: not accepted"]

    def test_failed_run_is_logged(self, settings, services, tmp_path):
        seed_round(services.store, "tpl-2", {"cand-a": RoundStatus.SELECTED})
        run(services.registry.list(JOB_ID))
        run(services.registry.confirm("tpl-2"))

        with pytest.raises(NoNextRound):
            run(
                run_progression_async(
                    JOB_ID,
                    "tpl-2",
                    settings=settings,
                    tracker=TrackerConfig(),
                    run_id="run-last",
                    services=services,
                )
            )

        run_log = json.loads((tmp_path / "runs" / "run-last" / "run.json").read_text())
        assert run_log["status"] == "failed"
        assert run_log["stages"][-1]["stage"] == "resolve_next"
        assert run_log["stages"][-1]["status"] == "failed"

    def test_injected_observer_is_restored(self, settings, services):
        original = object()
        services.controller.observer = None
        run(
            run_progression_async(
                JOB_ID, "tpl-0", settings=settings, tracker=TrackerConfig(), services=services
            )
        )
        assert services.controller.observer is None

        seed_round(services.store, "tpl-2", {"cand-a": RoundStatus.SELECTED})
        run(services.registry.confirm("tpl-2"))
        services.controller.observer = original
        with pytest.raises(NoNextRound):
            run(
                run_progression_async(
                    JOB_ID, "tpl-2", settings=settings, tracker=TrackerConfig(), services=services
                )
            )
        assert services.controller.observer is original


class FakeEvaluator(EvaluationService):
    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.calls: list[str] = []

    async def evaluate(self, candidate):
        self.calls.append(candidate.id)
        if candidate.id in self.failing:
            raise TransportError("evaluation service unavailable", status_code=503)
        return {"competency_evaluation": {"overall_percentage_score": 70}}


def candidate(cid, record_id=None, evaluated=False):
    data = {"id": cid, "name": cid.title()}
    if record_id is not None:
        data["candidate_rounds"] = [
            {
                "id": record_id or None,
                "candidate_id": cid,
                "job_round_template_id": "tpl-0",
                "is_evaluation": evaluated,
            }
        ]
    return data


@pytest.fixture
def eval_listing() -> RoundListing:
    return RoundListing.model_validate(
        {
            "template_id": "tpl-0",
            "candidates": [
                candidate("cand-a", "r-a"),
                candidate("cand-b", "r-b", evaluated=True),
                candidate("cand-c"),
                candidate("cand-d", "r-d"),
                candidate("cand-e", "r-e"),
                candidate("cand-f", ""),
            ],
        }
    )


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


class TestEvaluateRound:
    """Sequential, paced evaluation that survives failures."""

    def test_outcomes_per_candidate(self, eval_listing, sleeps):
        evaluator = FakeEvaluator(failing={"cand-d"})
        outcomes = run(evaluate_round(eval_listing, evaluator, delay_seconds=1.0))

        assert [(o.candidate_id, o.status) for o in outcomes] == [
            ("cand-a", "evaluated"),
            ("cand-b", "skipped"),
            ("cand-c", "skipped"),
            ("cand-d", "failed"),
            ("cand-e", "evaluated"),
            ("cand-f", "skipped"),
        ]
        assert outcomes[0].score == 70.0
        assert "unavailable" in outcomes[3].error
        assert evaluator.calls == ["cand-a", "cand-d", "cand-e"]

    def test_fixed_delay_between_calls(self, eval_listing, sleeps):
        run(evaluate_round(eval_listing, FakeEvaluator(), delay_seconds=1.0))
        assert sleeps == [1.0, 1.0]

    def test_zero_delay_never_sleeps(self, eval_listing, sleeps):
        run(evaluate_round(eval_listing, FakeEvaluator(), delay_seconds=0))
        assert sleeps == []

    def test_metrics_and_stage(self, eval_listing, sleeps, settings):
        ctx = RunContext.boot(settings, TrackerConfig(), "run-eval")
        run(evaluate_round(eval_listing, FakeEvaluator(failing={"cand-e"}), 1.0, ctx=ctx))

        assert ctx.metrics.num_evaluated == 2
        assert ctx.metrics.num_evaluation_failed == 1
        assert ctx.metrics.num_evaluation_skipped == 3
        stage = ctx.stage_logs[-1]
        assert stage.stage == "evaluate"
        assert stage.status == "partial"
        assert stage.items_in == 6
