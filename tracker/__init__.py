"""Round tracker core: templates, records, staged edits and progression."""

from tracker.changes import PendingChangeSet
from tracker.evaluation import EvaluationSummary, ScoreBand, aggregate, score_band
from tracker.progression import ProgressionResult, ProgressionStep, RoundProgressionController
from tracker.registry import (
    ApiTemplateSource,
    InMemoryTemplateSource,
    RoundTemplateRegistry,
    TemplateSource,
)
from tracker.states import RoundCommand, RoundState, RoundStateMachine
from tracker.store import ApiRecordStore, InMemoryRecordStore, RecordStore
from tracker.transitions import CommitResult, StatusTransitionManager

__all__ = [
    "TemplateSource",
    "ApiTemplateSource",
    "InMemoryTemplateSource",
    "RoundTemplateRegistry",
    "RoundState",
    "RoundCommand",
    "RoundStateMachine",
    "RecordStore",
    "ApiRecordStore",
    "InMemoryRecordStore",
    "PendingChangeSet",
    "CommitResult",
    "StatusTransitionManager",
    "ProgressionStep",
    "ProgressionResult",
    "RoundProgressionController",
    "ScoreBand",
    "EvaluationSummary",
    "score_band",
    "aggregate",
]
