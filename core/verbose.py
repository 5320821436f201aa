"""Verbose output for tracker runs.

Module-level singleton. Call configure() once when a run boots; progression
steps and batch evaluation then report through header/stage/step/detail.

Levels:
    0 (OFF)   silent (default)
    1 (INFO)  run header, one line per progression step
    2 (DEBUG) + per-candidate steps
    3 (TRACE) + failed ids and scores
"""

from __future__ import annotations

import logging
import sys
from enum import IntEnum

import structlog

_level: int = 0


class Level(IntEnum):
    """Verbosity levels."""

    OFF = 0
    INFO = 1
    DEBUG = 2
    TRACE = 3


def configure(level: int) -> None:
    """Set verbosity level. Called once at boot."""
    global _level
    _level = level


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog events through stdlib logging at the given level."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def header(text: str) -> None:
    """Bold run-level header. Prints at INFO (1) or higher."""
    if _level >= Level.INFO:
        print(f"\n═══ {text} ═══\n")


def stage(name: str, description: str) -> None:
    """Stage header with brief explanation. Prints at INFO (1) or higher."""
    if _level >= Level.INFO:
        print(f"── {name}: {description} ──")


def stage_end(name: str, items_out: int, errors: int, duration: float) -> None:
    """Stage completion line. Prints at INFO (1) or higher."""
    if _level >= Level.INFO:
        print(
            f"── {name} done ({items_out} out, {errors} errors, {duration:.2f}s) ──\n"
        )


def step(text: str) -> None:
    """Indented sub-header within a stage. Prints at DEBUG (2) or higher."""
    if _level >= Level.DEBUG:
        print(f"  {text}")


def detail(text: str) -> None:
    """Further indented detail line. Prints at TRACE (3) only."""
    if _level >= Level.TRACE:
        print(f"    {text}")
