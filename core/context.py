"""Run context and lifecycle management."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.config import Settings, TrackerConfig, snapshot_config
from core.ids import generate_run_id


class RunStatus(str, Enum):
    """Status of a tracker run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunMetrics(BaseModel):
    """Metrics collected during a run."""

    num_candidates: int = 0
    num_resynced: int = 0
    num_resync_failed: int = 0
    num_carried_forward: int = 0
    num_carry_failed: int = 0
    num_records_created: int = 0
    num_records_failed: int = 0
    num_evaluated: int = 0
    num_evaluation_failed: int = 0
    num_evaluation_skipped: int = 0


class StageLog(BaseModel):
    """Log entry for a run stage."""

    stage: str
    started_at: datetime
    completed_at: datetime | None = None
    status: str = "running"
    items_in: int = 0
    items_out: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float | None = None


class RunContext(BaseModel):
    """Context for a tracker run - travels through all stages."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    started_at: datetime
    status: RunStatus = RunStatus.PENDING
    completed_at: datetime | None = None

    settings: Settings
    tracker: TrackerConfig

    metrics: RunMetrics = Field(default_factory=RunMetrics)
    stage_logs: list[StageLog] = Field(default_factory=list)

    run_dir: Path | None = None

    @classmethod
    def boot(
        cls,
        settings: Settings,
        tracker: TrackerConfig | None = None,
        run_id: str | None = None,
    ) -> RunContext:
        """Boot a new run context and save its config snapshot."""
        tracker = tracker or TrackerConfig()
        run_id = run_id or generate_run_id()
        started_at = datetime.now(timezone.utc)

        run_dir = Path(settings.runs_dir) / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        config_data = snapshot_config(settings, tracker)
        config_data["run_id"] = run_id
        config_data["started_at"] = started_at.isoformat()

        with open(run_dir / "config.json", "w", encoding="utf-8") as f:
            json.dump(config_data, f, indent=2, default=str)

        return cls(
            run_id=run_id,
            started_at=started_at,
            status=RunStatus.RUNNING,
            settings=settings,
            tracker=tracker,
            run_dir=run_dir,
        )

    def start_stage(self, stage: str, items_in: int = 0) -> StageLog:
        """Record start of a stage."""
        log = StageLog(
            stage=stage,
            started_at=datetime.now(timezone.utc),
            items_in=items_in,
        )
        self.stage_logs.append(log)
        return log

    def complete_stage(
        self,
        stage: str,
        items_out: int = 0,
        errors: list[str] | None = None,
        status: str = "completed",
    ) -> StageLog | None:
        """Record completion of the most recent open stage with this name."""
        for log in reversed(self.stage_logs):
            if log.stage == stage and log.completed_at is None:
                log.completed_at = datetime.now(timezone.utc)
                log.items_out = items_out
                log.status = status
                if errors:
                    log.errors = errors
                log.duration_seconds = (
                    log.completed_at - log.started_at
                ).total_seconds()
                return log
        return None

    def complete_run(self, status: RunStatus = RunStatus.COMPLETED) -> None:
        """Mark the run as complete and persist its log."""
        self.status = status
        self.completed_at = datetime.now(timezone.utc)
        self.save()

    def save(self) -> Path | None:
        """Write run.json into the run directory."""
        if self.run_dir is None:
            return None
        path = self.run_dir / "run.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.summary(), f, indent=2, default=str)
        return path

    def summary(self) -> dict[str, Any]:
        """Get a summary of the run for display."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "metrics": self.metrics.model_dump(),
            "stages": [
                {
                    "stage": log.stage,
                    "status": log.status,
                    "items_in": log.items_in,
                    "items_out": log.items_out,
                    "duration": log.duration_seconds,
                    "errors": log.errors,
                }
                for log in self.stage_logs
            ],
        }
