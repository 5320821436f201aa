"""Per-template round state machine."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

import structlog

from core.errors import InvalidTransition, NotFoundError
from schemas.round_template import RoundTemplate

logger = structlog.get_logger()


class RoundState(str, Enum):
    """Lifecycle of a round template within one job opening."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"
    ACTIVE = "active"
    CONFIRMED = "confirmed"


class RoundCommand(str, Enum):
    """Commands that move a template forward."""

    UNLOCK = "unlock"
    ACTIVATE = "activate"
    CONFIRM = "confirm"


_RANK = {
    RoundState.LOCKED: 0,
    RoundState.UNLOCKED: 1,
    RoundState.ACTIVE: 2,
    RoundState.CONFIRMED: 3,
}

_TARGET = {
    RoundCommand.UNLOCK: RoundState.UNLOCKED,
    RoundCommand.ACTIVATE: RoundState.ACTIVE,
    RoundCommand.CONFIRM: RoundState.CONFIRMED,
}

_TRANSITIONS = {
    (RoundState.LOCKED, RoundCommand.UNLOCK): RoundState.UNLOCKED,
    (RoundState.UNLOCKED, RoundCommand.ACTIVATE): RoundState.ACTIVE,
    (RoundState.UNLOCKED, RoundCommand.CONFIRM): RoundState.CONFIRMED,
    (RoundState.ACTIVE, RoundCommand.CONFIRM): RoundState.CONFIRMED,
}


class RoundStateMachine:
    """Tracks locked/unlocked/active/confirmed for every known template.

    States only ever move forward. A command whose target state has already
    been reached is a no-op, which keeps retried progressions safe.
    """

    def __init__(self) -> None:
        self._states: dict[str, RoundState] = {}

    def seed(self, templates: Iterable[RoundTemplate]) -> None:
        """Register templates of one job; known templates are never demoted."""
        ordered = sorted(templates, key=lambda t: t.order_index)
        for position, template in enumerate(ordered):
            if template.is_active:
                initial = RoundState.CONFIRMED
            elif position == 0:
                initial = RoundState.UNLOCKED
            else:
                initial = RoundState.LOCKED

            known = self._states.get(template.id)
            if known is None or _RANK[initial] > _RANK[known]:
                self._states[template.id] = initial

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._states

    def state(self, template_id: str) -> RoundState:
        try:
            return self._states[template_id]
        except KeyError:
            raise NotFoundError("round template", template_id) from None

    def apply(self, template_id: str, command: RoundCommand) -> RoundState:
        """Apply a command and return the resulting state.

        Raises:
            InvalidTransition: the command is not allowed from the current state
        """
        current = self.state(template_id)
        if _RANK[current] >= _RANK[_TARGET[command]]:
            return current

        new_state = _TRANSITIONS.get((current, command))
        if new_state is None:
            raise InvalidTransition(template_id, current.value, command.value)

        self._states[template_id] = new_state
        logger.debug(
            "Round state changed",
            template_id=template_id,
            command=command.value,
            old=current.value,
            new=new_state.value,
        )
        return new_state

    def snapshot(self) -> dict[str, str]:
        return {tid: state.value for tid, state in self._states.items()}
