"""Round template registry: ordering, lookup and confirmation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter

import structlog

from clients.rounds import RoundsApi
from core.errors import NoNextRound, NotFoundError, ValidationError
from schemas.round_template import RoundTemplate
from tracker.states import RoundCommand, RoundState, RoundStateMachine

logger = structlog.get_logger()


class TemplateSource(ABC):
    """Where round templates are read from and confirmed."""

    @abstractmethod
    async def list_templates(
        self, job_opening_id: str, force_refresh: bool = False
    ) -> list[RoundTemplate]:
        """Templates of a job opening in any order."""

    @abstractmethod
    async def confirm(self, template_id: str) -> RoundTemplate | None:
        """Mark a template active. Raises NotFoundError if it does not exist."""

    @abstractmethod
    async def start_rounds(self, job_opening_id: str) -> None:
        """Flag a job opening as having started its rounds."""


class ApiTemplateSource(TemplateSource):
    """Template source backed by the rounds API (with its read cache)."""

    def __init__(self, api: RoundsApi):
        self.api = api

    async def list_templates(
        self, job_opening_id: str, force_refresh: bool = False
    ) -> list[RoundTemplate]:
        return await self.api.list_round_templates(job_opening_id, force_refresh)

    async def confirm(self, template_id: str) -> RoundTemplate | None:
        return await self.api.confirm_round_template(template_id)

    async def start_rounds(self, job_opening_id: str) -> None:
        await self.api.start_rounds(job_opening_id)


class InMemoryTemplateSource(TemplateSource):
    """Template source held in process memory."""

    def __init__(self, templates: list[RoundTemplate] | None = None):
        self._templates: dict[str, RoundTemplate] = {}
        self.started_jobs: set[str] = set()
        self.confirm_calls: list[str] = []
        for template in templates or []:
            self.add(template)

    def add(self, template: RoundTemplate) -> None:
        self._templates[template.id] = template

    async def list_templates(
        self, job_opening_id: str, force_refresh: bool = False
    ) -> list[RoundTemplate]:
        templates = [t for t in self._templates.values() if t.job_opening_id == job_opening_id]
        if not templates:
            raise NotFoundError("job opening", job_opening_id)
        return [t.model_copy() for t in templates]

    async def confirm(self, template_id: str) -> RoundTemplate | None:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError("round template", template_id)
        self.confirm_calls.append(template_id)
        confirmed = template.model_copy(update={"is_active": True})
        self._templates[template_id] = confirmed
        return confirmed.model_copy()

    async def start_rounds(self, job_opening_id: str) -> None:
        if not any(t.job_opening_id == job_opening_id for t in self._templates.values()):
            raise NotFoundError("job opening", job_opening_id)
        self.started_jobs.add(job_opening_id)


def _check_order(job_opening_id: str, templates: list[RoundTemplate]) -> None:
    counts = Counter(t.order_index for t in templates)
    duplicates = sorted(order for order, n in counts.items() if n > 1)
    if duplicates:
        raise ValidationError(
            f"Job {job_opening_id} has duplicate round order indexes: {duplicates}"
        )


class RoundTemplateRegistry:
    """Ordered round templates per job opening and their round states."""

    def __init__(self, source: TemplateSource, states: RoundStateMachine | None = None):
        self.source = source
        self.states = states or RoundStateMachine()
        self._templates: dict[str, RoundTemplate] = {}

    async def list(
        self, job_opening_id: str, force_refresh: bool = False
    ) -> list[RoundTemplate]:
        """Templates of a job sorted by order index."""
        if not job_opening_id:
            raise ValidationError("job_opening_id is required")

        templates = await self.source.list_templates(job_opening_id, force_refresh)
        _check_order(job_opening_id, templates)
        ordered = sorted(templates, key=lambda t: t.order_index)

        for template in ordered:
            known = self._templates.get(template.id)
            if known is not None and known.is_active and not template.is_active:
                # A cached listing may predate our own confirmation.
                template = template.model_copy(update={"is_active": True})
            self._templates[template.id] = template
        self.states.seed(ordered)

        return [self._templates[t.id] for t in ordered]

    def get(self, template_id: str) -> RoundTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise NotFoundError("round template", template_id) from None

    def templates_for(self, job_opening_id: str) -> list[RoundTemplate]:
        """Already loaded templates of a job, ordered."""
        return sorted(
            (t for t in self._templates.values() if t.job_opening_id == job_opening_id),
            key=lambda t: t.order_index,
        )

    def first(self, job_opening_id: str) -> RoundTemplate:
        templates = self.templates_for(job_opening_id)
        if not templates:
            raise NotFoundError("round templates for job", job_opening_id)
        return templates[0]

    def next_after(self, template_id: str) -> RoundTemplate:
        """The template whose order index is exactly one greater.

        Raises:
            NoNextRound: there is no such template
        """
        current = self.get(template_id)
        for template in self.templates_for(current.job_opening_id):
            if template.order_index == current.order_index + 1:
                return template
        raise NoNextRound(template_id, current.order_index)

    def state(self, template_id: str) -> RoundState:
        return self.states.state(template_id)

    def unlock(self, template_id: str) -> RoundState:
        return self.states.apply(template_id, RoundCommand.UNLOCK)

    def activate(self, template_id: str) -> RoundState | None:
        """Open a template for writes. Templates the registry never loaded are left alone."""
        if template_id not in self.states:
            return None
        return self.states.apply(template_id, RoundCommand.ACTIVATE)

    async def confirm(self, template_id: str) -> RoundTemplate | None:
        """Mark a template active. Confirming twice is a no-op success.

        Raises:
            NotFoundError: the template does not exist
        """
        if not template_id:
            raise ValidationError("job_round_template_id is required")

        if template_id in self.states and self.state(template_id) is RoundState.CONFIRMED:
            return self._templates.get(template_id)

        confirmed = await self.source.confirm(template_id)

        if template_id not in self._templates and confirmed is not None:
            await self.list(confirmed.job_opening_id)

        if template_id in self.states:
            self.unlock(template_id)
            self.states.apply(template_id, RoundCommand.CONFIRM)

        known = self._templates.get(template_id)
        if known is not None:
            known = known.model_copy(update={"is_active": True})
            self._templates[template_id] = known
            logger.info("Round template confirmed", template_id=template_id)
            return known
        return confirmed

    async def start_rounds(self, job_opening_id: str) -> None:
        await self.source.start_rounds(job_opening_id)
