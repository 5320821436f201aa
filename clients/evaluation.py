"""External evaluation service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from clients.http_client import HttpClient, decode_json
from clients.rounds import raise_for_status
from core.errors import ValidationError
from schemas.listing import RoundCandidate


class EvaluationService(ABC):
    """Opaque evaluation collaborator; only success or failure matters."""

    @abstractmethod
    async def evaluate(self, candidate: RoundCandidate) -> dict[str, Any]:
        """Evaluate one candidate's round record."""


class EvaluationApi(EvaluationService):
    """Posts a candidate round to the evaluation endpoint."""

    def __init__(self, client: HttpClient, url: str):
        self.client = client
        self.url = url

    async def evaluate(self, candidate: RoundCandidate) -> dict[str, Any]:
        record = candidate.record
        if record is None or not record.id:
            raise ValidationError(f"Candidate {candidate.id} has no candidate_round_id")

        response = await self.client.request(
            "POST",
            self.url,
            json={
                "candidate_round_id": record.id,
                "candidate_id": candidate.id,
                "job_opening_id": candidate.job_opening_id,
            },
        )
        raise_for_status(response, "candidate round", record.id)
        data = decode_json(response)
        return data if isinstance(data, dict) else {"result": data}
