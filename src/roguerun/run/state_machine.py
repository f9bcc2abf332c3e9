from __future__ import annotations

import logging
from typing import Dict, FrozenSet

from ..errors import InvalidTransition
from .models import RunStateType

logger = logging.getLogger(__name__)

S = RunStateType

ALLOWED_TRANSITIONS: Dict[RunStateType, FrozenSet[RunStateType]] = {
    S.INIT: frozenset({S.EXPLORING}),
    S.EXPLORING: frozenset({S.COMBAT, S.EVENT, S.REST, S.ENDED}),
    S.COMBAT: frozenset({S.RESOLUTION, S.ENDED}),
    S.EVENT: frozenset({S.RESOLUTION}),
    S.REST: frozenset({S.RESOLUTION}),
    S.RESOLUTION: frozenset({S.BLESSING_SELECT, S.EXPLORING, S.ENDED}),
    S.BLESSING_SELECT: frozenset({S.EXPLORING}),
    S.ENDED: frozenset(),
}


def _check_table() -> None:
    missing = set(RunStateType) - set(ALLOWED_TRANSITIONS)
    if missing:
        raise RuntimeError(f"Transition table misses states: {sorted(s.value for s in missing)}")


_check_table()


def can_transition(current: RunStateType, target: RunStateType) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: RunStateType, target: RunStateType) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def ensure_state(current: RunStateType, expected: RunStateType, action: str) -> None:
    """Reject ``action`` unless the run sits in ``expected``."""
    if current is not expected:
        raise InvalidTransition(current, action=action)
