"""Shared fixtures for the round tracker tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from clients.http_client import HttpClient
from schemas.candidate_round import RoundStatus, StatusUpdate
from schemas.round_template import RoundTemplate
from tracker.progression import RoundProgressionController
from tracker.registry import InMemoryTemplateSource, RoundTemplateRegistry
from tracker.store import InMemoryRecordStore
from tracker.transitions import StatusTransitionManager

JOB_ID = "job-1"
ROUND_NAMES = ["Resume Screening", "Technical Interview", "Manager Interview", "Offer Rollout"]
API_BASE = "https://api.test"
CANDIDATES_BASE = "https://candidates.test"


def make_template(order: int, job_id: str = JOB_ID, **overrides: Any) -> RoundTemplate:
    data: dict[str, Any] = {
        "id": f"tpl-{order}",
        "job_opening_id": job_id,
        "round_name": ROUND_NAMES[order % len(ROUND_NAMES)],
        "order_index": order,
    }
    data.update(overrides)
    return RoundTemplate.model_validate(data)


def run(coro):
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


def seed_round(
    store: InMemoryRecordStore,
    template_id: str,
    statuses: dict[str, RoundStatus],
    created_by: str = "tester",
) -> None:
    """Create records for a round directly in the store."""
    entries = [StatusUpdate(candidate_id=c, status=s) for c, s in statuses.items()]
    run(store.bulk_create(template_id, entries, created_by))


def mock_client(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> HttpClient:
    """HttpClient over httpx.MockTransport with no pacing or retry backoff."""
    kwargs.setdefault("rate_limit", 0)
    kwargs.setdefault("max_retries", 1)
    return HttpClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture
def templates() -> list[RoundTemplate]:
    return [make_template(order) for order in range(4)]


@pytest.fixture
def source(templates) -> InMemoryTemplateSource:
    return InMemoryTemplateSource(templates)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def registry(source) -> RoundTemplateRegistry:
    registry = RoundTemplateRegistry(source)
    run(registry.list(JOB_ID))
    return registry


@pytest.fixture
def manager(store, registry) -> StatusTransitionManager:
    return StatusTransitionManager(store, registry)


@pytest.fixture
def controller(registry, manager, store) -> RoundProgressionController:
    return RoundProgressionController(registry, manager, store, created_by="tester")


@pytest.fixture
def first_round(store, manager) -> str:
    """Round 0 seeded with one selected, one rejected and one pending candidate, loaded."""
    seed_round(
        store,
        "tpl-0",
        {
            "cand-a": RoundStatus.SELECTED,
            "cand-b": RoundStatus.REJECTED,
            "cand-c": RoundStatus.ACTION_PENDING,
        },
    )
    run(manager.load("tpl-0"))
    return "tpl-0"
