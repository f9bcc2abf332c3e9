from __future__ import annotations

import pytest

from roguerun.errors import InvalidTransition
from roguerun.run.models import RunStateType as S
from roguerun.run.state_machine import ALLOWED_TRANSITIONS, can_transition, ensure_state, ensure_transition


def test_table_covers_every_state():
    assert set(ALLOWED_TRANSITIONS) == set(S)
    assert ALLOWED_TRANSITIONS[S.ENDED] == frozenset()


@pytest.mark.parametrize(
    "current,target",
    [
        (S.INIT, S.EXPLORING),
        (S.EXPLORING, S.COMBAT),
        (S.EXPLORING, S.ENDED),
        (S.COMBAT, S.RESOLUTION),
        (S.COMBAT, S.ENDED),
        (S.EVENT, S.RESOLUTION),
        (S.REST, S.RESOLUTION),
        (S.RESOLUTION, S.BLESSING_SELECT),
        (S.BLESSING_SELECT, S.EXPLORING),
    ],
)
def test_allowed(current, target):
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (S.INIT, S.COMBAT),
        (S.EVENT, S.ENDED),
        (S.REST, S.EXPLORING),
        (S.BLESSING_SELECT, S.ENDED),
        (S.ENDED, S.EXPLORING),
        (S.COMBAT, S.COMBAT),
    ],
)
def test_rejected(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransition) as exc:
        ensure_transition(current, target)
    assert exc.value.current is current
    assert exc.value.target is target


def test_ensure_state_names_action():
    with pytest.raises(InvalidTransition, match="advance"):
        ensure_state(S.COMBAT, S.EXPLORING, "advance")
