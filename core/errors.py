"""Error taxonomy for the round tracker."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from schemas.candidate_round import BatchOutcome


class TrackerError(Exception):
    """Base class for all tracker errors."""


class ValidationError(TrackerError):
    """A required field is missing or malformed before any request is sent."""


class NotFoundError(TrackerError):
    """A round template or candidate does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class PartialFailure(TrackerError):
    """A batch operation succeeded for only a subset of its items."""

    def __init__(self, outcome: BatchOutcome):
        super().__init__(
            f"{outcome.successful_count} of {outcome.submitted_count} items succeeded"
        )
        self.outcome = outcome


class NoNextRound(TrackerError):
    """Progression was attempted past the last round template."""

    def __init__(self, template_id: str, order_index: int | None = None):
        detail = f" (order {order_index})" if order_index is not None else ""
        super().__init__(f"No round follows template {template_id}{detail}")
        self.template_id = template_id
        self.order_index = order_index


class TransportError(TrackerError):
    """Network or transport failure; the outcome of the request is unknown."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidTransition(TrackerError):
    """A round state machine command is not allowed from the current state."""

    def __init__(self, template_id: str, state: str, command: str):
        super().__init__(f"Cannot {command} round {template_id} while {state}")
        self.template_id = template_id
        self.state = state
        self.command = command


class FetchCancelled(TrackerError):
    """A paged fetch was aborted through its cancellation signal."""
