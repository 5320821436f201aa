"""Paged candidate listing per round template."""

from __future__ import annotations

import asyncio

import structlog

from clients.cache import TTLCache
from clients.http_client import HttpClient, decode_json
from clients.rounds import CACHE_TTL_SECONDS, raise_for_status
from core.errors import FetchCancelled, ValidationError
from schemas.listing import RoundCandidate, RoundCandidatePage, RoundListing

logger = structlog.get_logger()


class RoundCandidatesApi:
    """Reads the candidate population of a round template.

    Page 1 is fetched alone to learn total_pages; the rest are fetched in
    batches of ``concurrency`` requests so the API never sees more than that
    many listing calls at once.
    """

    def __init__(
        self,
        client: HttpClient,
        candidates_base_url: str,
        page_size: int = 50,
        concurrency: int = 3,
        include_custom_fields: bool = True,
        include_evaluations: bool = True,
        cache: TTLCache[RoundListing] | None = None,
    ):
        self.client = client
        self.candidates_base_url = candidates_base_url.rstrip("/")
        self.page_size = page_size
        self.concurrency = max(1, concurrency)
        self.include_custom_fields = include_custom_fields
        self.include_evaluations = include_evaluations
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS)

    async def fetch_page(self, template_id: str, page: int) -> RoundCandidatePage:
        """Fetch a single listing page."""
        url = f"{self.candidates_base_url}/candidates/by-job-round-template/{template_id}"
        params = {
            "page": page,
            "limit": self.page_size,
            "include_custom_fields": str(self.include_custom_fields).lower(),
            "include_evaluations": str(self.include_evaluations).lower(),
        }
        response = await self.client.request("GET", url, params=params)
        raise_for_status(response, "round template", template_id)
        return RoundCandidatePage.model_validate(decode_json(response))

    async def list_round_candidates(
        self,
        template_id: str,
        force_refresh: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> RoundListing:
        """All candidates of a round template, merged across pages.

        Raises:
            FetchCancelled: ``cancel`` was set before a batch was started
        """
        if not template_id:
            raise ValidationError("job_round_template_id is required")

        if not force_refresh:
            cached = self.cache.get(template_id)
            if cached is not None:
                logger.debug("Using cached round candidates", template_id=template_id)
                return cached

        _check_cancel(cancel, template_id)
        first = await self.fetch_page(template_id, 1)
        pages = [first]

        total_pages = first.pagination.total_pages if first.pagination else 1
        remaining = list(range(2, total_pages + 1))

        for start in range(0, len(remaining), self.concurrency):
            _check_cancel(cancel, template_id)
            batch = remaining[start : start + self.concurrency]
            results = await asyncio.gather(
                *(self.fetch_page(template_id, page) for page in batch)
            )
            pages.extend(results)

        listing = RoundListing(
            template_id=template_id,
            template_info=first.template_info,
            candidates=_merge_candidates(pages),
        )
        self.cache.set(template_id, listing)
        logger.info(
            "Fetched round candidates",
            template_id=template_id,
            pages=len(pages),
            count=len(listing.candidates),
        )
        return listing


def _check_cancel(cancel: asyncio.Event | None, template_id: str) -> None:
    if cancel is not None and cancel.is_set():
        raise FetchCancelled(f"Listing for {template_id} cancelled")


def _merge_candidates(pages: list[RoundCandidatePage]) -> list[RoundCandidate]:
    seen: set[str] = set()
    merged: list[RoundCandidate] = []
    for page in pages:
        for candidate in page.candidates:
            if candidate.id not in seen:
                seen.add(candidate.id)
                merged.append(candidate)
    return merged
