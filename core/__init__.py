"""Core infrastructure: config, run context, errors, logging, and utilities."""

from core import verbose
from core.config import ConfigValidationError, Settings, TrackerConfig, load_config
from core.context import RunContext, RunStatus
from core.errors import (
    FetchCancelled,
    InvalidTransition,
    NoNextRound,
    NotFoundError,
    PartialFailure,
    TrackerError,
    TransportError,
    ValidationError,
)
from core.ids import generate_run_id, unique_ids

__all__ = [
    "Settings",
    "TrackerConfig",
    "ConfigValidationError",
    "load_config",
    "RunContext",
    "RunStatus",
    "TrackerError",
    "ValidationError",
    "NotFoundError",
    "PartialFailure",
    "NoNextRound",
    "TransportError",
    "InvalidTransition",
    "FetchCancelled",
    "generate_run_id",
    "unique_ids",
    "verbose",
]
