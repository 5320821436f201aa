"""Wiring of the tracker components for a configured backend."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from clients.cache import TTLCache
from clients.candidates import RoundCandidatesApi
from clients.credentials import CredentialProvider, StaticCredentialProvider
from clients.evaluation import EvaluationApi, EvaluationService
from clients.http_client import HttpClient
from clients.rounds import RoundsApi
from core.config import Settings, TrackerConfig
from schemas.round_template import RoundTemplate
from tracker.progression import ProgressionObserver, RoundProgressionController
from tracker.registry import (
    ApiTemplateSource,
    InMemoryTemplateSource,
    RoundTemplateRegistry,
    TemplateSource,
)
from tracker.store import ApiRecordStore, InMemoryRecordStore, RecordStore
from tracker.transitions import StatusTransitionManager

logger = structlog.get_logger()


@dataclass
class TrackerServices:
    """Everything a caller needs to drive the tracker."""

    settings: Settings
    source: TemplateSource
    store: RecordStore
    registry: RoundTemplateRegistry
    manager: StatusTransitionManager
    controller: RoundProgressionController
    evaluator: EvaluationService | None = None


def build_services(
    settings: Settings,
    source: TemplateSource,
    store: RecordStore,
    evaluator: EvaluationService | None = None,
    observer: ProgressionObserver | None = None,
) -> TrackerServices:
    registry = RoundTemplateRegistry(source)
    manager = StatusTransitionManager(store, registry)
    controller = RoundProgressionController(
        registry, manager, store, created_by=settings.created_by, observer=observer
    )
    return TrackerServices(
        settings=settings,
        source=source,
        store=store,
        registry=registry,
        manager=manager,
        controller=controller,
        evaluator=evaluator,
    )


def build_memory_services(
    settings: Settings,
    templates: list[RoundTemplate] | None = None,
    observer: ProgressionObserver | None = None,
) -> TrackerServices:
    """In-process services with no network access."""
    return build_services(
        settings,
        InMemoryTemplateSource(templates),
        InMemoryRecordStore(),
        observer=observer,
    )


def build_api_services(
    settings: Settings,
    client: HttpClient,
    tracker: TrackerConfig | None = None,
    observer: ProgressionObserver | None = None,
) -> TrackerServices:
    """Services backed by the recruiting API through an open HttpClient."""
    tracker = tracker or TrackerConfig()
    rounds_api = RoundsApi(
        client,
        settings.api_base_url,
        settings.candidates_base_url,
        cache=TTLCache(settings.cache_ttl_seconds),
    )
    candidates_api = RoundCandidatesApi(
        client,
        settings.candidates_base_url,
        page_size=settings.page_size,
        concurrency=settings.page_concurrency,
        include_custom_fields=tracker.pagination.include_custom_fields,
        include_evaluations=tracker.pagination.include_evaluations,
        cache=TTLCache(settings.cache_ttl_seconds),
    )
    evaluator = EvaluationApi(client, settings.evaluation_url) if settings.evaluation_url else None

    return build_services(
        settings,
        ApiTemplateSource(rounds_api),
        ApiRecordStore(rounds_api, candidates_api),
        evaluator=evaluator,
        observer=observer,
    )


@asynccontextmanager
async def open_services(
    settings: Settings,
    tracker: TrackerConfig | None = None,
    credentials: CredentialProvider | None = None,
    observer: ProgressionObserver | None = None,
) -> AsyncIterator[TrackerServices]:
    """Open services for ``settings.backend``; the HTTP client closes on exit."""
    if settings.backend == "memory":
        logger.info("Using in-memory backend")
        yield build_memory_services(settings, observer=observer)
        return

    credentials = credentials or StaticCredentialProvider(settings.api_token or None)
    async with HttpClient(
        credentials=credentials,
        timeout=settings.default_timeout,
        rate_limit=settings.default_rate_limit,
        max_retries=settings.max_retries,
    ) as client:
        yield build_api_services(settings, client, tracker, observer=observer)
